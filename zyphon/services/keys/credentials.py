"""API key material: generation, hashing, comparison, header parsing.

Key format: ``zy_`` + 40 random bytes, base64url (~57 chars total).
Storage: the first 12 chars as a display prefix + HMAC-SHA256(pepper, key).
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import NamedTuple

KEY_FORMAT_PREFIX = "zy_"
KEY_DISPLAY_LEN = 12  # chars stored as key_prefix for identification
_RANDOM_BYTES = 40
_BEARER = "Bearer "


class GeneratedKey(NamedTuple):
    """Freshly minted key. ``plaintext`` must be shown once and dropped."""

    plaintext: str
    key_hash: str
    key_prefix: str


def generate_key(pepper: str) -> GeneratedKey:
    """Generate a new API key with its hash and display prefix."""
    plaintext = f"{KEY_FORMAT_PREFIX}{secrets.token_urlsafe(_RANDOM_BYTES)}"
    return GeneratedKey(
        plaintext=plaintext,
        key_hash=hash_key(plaintext, pepper),
        key_prefix=plaintext[:KEY_DISPLAY_LEN],
    )


def hash_key(plaintext: str, pepper: str) -> str:
    """Deterministic one-way hash of a plaintext key.

    Args:
        plaintext: The plaintext API key
        pepper: Server-side secret

    Returns:
        HMAC-SHA256 hex digest
    """
    return hmac.new(
        pepper.encode(),
        plaintext.encode(),
        hashlib.sha256,
    ).hexdigest()


def hashes_match(presented_hash: str, stored_hash: str) -> bool:
    """Constant-time comparison of two full hex digests."""
    return hmac.compare_digest(presented_hash, stored_hash)


def has_key_format(token: str) -> bool:
    """Whether ``token`` looks like a Zyphon key at all."""
    return token.startswith(KEY_FORMAT_PREFIX) and len(token) > len(KEY_FORMAT_PREFIX)


def extract_bearer_token(auth_header: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header.

    Returns None for absent, non-Bearer or empty headers.
    """
    if not auth_header or not auth_header.startswith(_BEARER):
        return None
    token = auth_header[len(_BEARER):].strip()
    return token or None


def mask_key(prefix: str) -> str:
    """Render a prefix for display, e.g. ``zy_AbCdEfGhI••••••••``."""
    return f"{prefix}••••••••"
