"""Utility modules for the security kernel."""

from security_kernel.utils.hashing import sha1_hex_upper, sha256_hex

__all__ = [
    "sha1_hex_upper",
    "sha256_hex",
]
