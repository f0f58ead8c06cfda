"""API key generation and hashing utilities.

Only the SHA-256 hex digest of a key is ever stored or compared.
Clients may send either the raw key or its digest; ``ensure_api_key_hash``
normalizes both to the same digest without hashing twice.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets

KEY_PREFIX = "lns_"
_SHA256_HEX = re.compile(r"^[0-9a-fA-F]{64}$")


def is_sha256_hash(value: str) -> bool:
    """True if *value* already has the shape of a SHA-256 hex digest."""
    return bool(_SHA256_HEX.match(value.strip()))


def hash_api_key(key: str) -> str:
    """Hash an API key for lookup.

    Args:
        key: The full API key string.

    Returns:
        Lowercase SHA-256 hex digest of the key.

    Raises:
        ValueError: if the key is empty.
    """
    if not key:
        raise ValueError("API key must be a non-empty string")
    return hashlib.sha256(key.encode()).hexdigest()


def ensure_api_key_hash(key: str) -> str:
    """Return the lookup digest for a raw or pre-hashed key.

    Idempotent: ``ensure_api_key_hash(ensure_api_key_hash(k)) ==
    ensure_api_key_hash(k)`` for every key.
    """
    if is_sha256_hash(key):
        return key.strip().lower()
    return hash_api_key(key)


def verify_api_key(key: str, stored_hash: str) -> bool:
    """Constant-time comparison of a candidate key against a stored digest."""
    return hmac.compare_digest(ensure_api_key_hash(key), stored_hash.lower())


def generate_api_key() -> tuple[str, str, str]:
    """Generate API key, return (full_key, key_hash, key_prefix).

    Full key is shown only once at creation time.
    Only hash and prefix are stored in DB.
    """
    full_key = f"{KEY_PREFIX}{secrets.token_urlsafe(36)}"
    key_hash = hash_api_key(full_key)
    key_prefix = full_key[: len(KEY_PREFIX) + 8]
    return full_key, key_hash, key_prefix
