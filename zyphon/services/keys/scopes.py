"""Scope catalogue and authorization predicate."""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum
from typing import Protocol


class Scope(StrEnum):
    """Capabilities an API key may be granted."""

    CHAT_READ = "chat:read"
    CHAT_WRITE = "chat:write"
    KNOWLEDGE_READ = "knowledge:read"
    IMAGE_GENERATE = "image:generate"
    PDF_GENERATE = "pdf:generate"


VALID_SCOPES: frozenset[str] = frozenset(scope.value for scope in Scope)


class _Scoped(Protocol):
    scopes: list[str]


def has_scope(key: _Scoped, required_scope: str) -> bool:
    """True iff ``required_scope`` is granted to ``key``.

    Exact, case-sensitive membership. No wildcards, no hierarchy.
    """
    return str(required_scope) in key.scopes


def invalid_scopes(scopes: Iterable[str]) -> list[str]:
    """Return the entries of ``scopes`` that are not in the catalogue."""
    return [scope for scope in scopes if scope not in VALID_SCOPES]
