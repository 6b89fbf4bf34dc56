"""Encryption, masking and per-field codec."""

from security_kernel.crypto.engine import CryptoEngine
from security_kernel.crypto.fields import (
    CLIENT_SENSITIVE_FIELDS,
    COMPANY_SENSITIVE_FIELDS,
    EncryptedField,
    SensitiveFieldCodec,
)
from security_kernel.crypto.masking import (
    DEFAULT_POLICY,
    SensitiveFieldPolicy,
    mask_mapping,
    mask_sensitive_data,
)

__all__ = [
    "CryptoEngine",
    "SensitiveFieldCodec",
    "EncryptedField",
    "COMPANY_SENSITIVE_FIELDS",
    "CLIENT_SENSITIVE_FIELDS",
    "SensitiveFieldPolicy",
    "DEFAULT_POLICY",
    "mask_mapping",
    "mask_sensitive_data",
]
