"""
Deterministic hashing utilities.

All comparison hashing in the security kernel goes through this module so
that password-history checks and breach lookups agree byte for byte.
"""

import hashlib


def sha256_hex(data: str) -> str:
    """Hex-encoded SHA-256 of a UTF-8 string (64 characters)."""
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def sha1_hex_upper(data: str) -> str:
    """Upper-case hex SHA-1, the format used by the breach-database range API."""
    return hashlib.sha1(data.encode("utf-8")).hexdigest().upper()
