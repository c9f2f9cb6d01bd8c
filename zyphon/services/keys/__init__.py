"""API key credentials, storage, verification and lifecycle."""

from zyphon.services.keys.credentials import (
    extract_bearer_token,
    generate_key,
    hash_key,
    mask_key,
)
from zyphon.services.keys.lifecycle import ApiKeyService, IssuedKey
from zyphon.services.keys.scopes import VALID_SCOPES, Scope, has_scope
from zyphon.services.keys.store import ApiKeyStore
from zyphon.services.keys.verifier import KeyVerifier, VerifyReason, VerifyResult

__all__ = [
    "ApiKeyService",
    "ApiKeyStore",
    "IssuedKey",
    "KeyVerifier",
    "Scope",
    "VALID_SCOPES",
    "VerifyReason",
    "VerifyResult",
    "extract_bearer_token",
    "generate_key",
    "has_scope",
    "hash_key",
    "mask_key",
]
