"""Unit tests for the scope predicate."""

from __future__ import annotations

from dataclasses import dataclass, field

from zyphon.services.keys.scopes import VALID_SCOPES, Scope, has_scope, invalid_scopes


@dataclass
class _Key:
    scopes: list[str] = field(default_factory=list)


class TestHasScope:
    def test_granted_scope(self):
        assert has_scope(_Key(["chat:write"]), "chat:write") is True

    def test_chat_only_key_cannot_generate_images(self):
        assert has_scope(_Key(["chat:write"]), "image:generate") is False

    def test_accepts_enum_members(self):
        assert has_scope(_Key(["pdf:generate"]), Scope.PDF_GENERATE) is True

    def test_case_sensitive(self):
        assert has_scope(_Key(["Chat:Write"]), "chat:write") is False

    def test_no_wildcards_or_hierarchy(self):
        assert has_scope(_Key(["*"]), "chat:write") is False
        assert has_scope(_Key(["chat"]), "chat:write") is False
        assert has_scope(_Key(["chat:write"]), "chat") is False

    def test_empty_scopes(self):
        assert has_scope(_Key([]), "chat:write") is False


class TestCatalogue:
    def test_catalogue(self):
        assert VALID_SCOPES == {
            "chat:read",
            "chat:write",
            "knowledge:read",
            "image:generate",
            "pdf:generate",
        }

    def test_invalid_scopes(self):
        assert invalid_scopes(["chat:write", "admin:all", "pdf"]) == ["admin:all", "pdf"]
        assert invalid_scopes(["chat:write"]) == []
