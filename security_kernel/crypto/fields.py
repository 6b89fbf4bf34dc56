"""
Sensitive-field codec.

Encrypts and decrypts the protected columns of a record one field at a time,
on the way into and out of persistence.

Partial-failure isolation:
    ``decrypt_record`` never aborts on a bad field.  A field that fails to
    decrypt resolves to ``None`` (logged as a warning with the field name)
    while its siblings decrypt normally.  A corrupted bank-account column
    must not make a company's legal name unreadable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from security_kernel.crypto.engine import CryptoEngine
from security_kernel.crypto.masking import mask_sensitive_data
from security_kernel.exceptions import DecryptionError
from security_kernel.logging_config import get_logger

logger = get_logger("crypto.fields")

COMPANY_SENSITIVE_FIELDS: frozenset[str] = frozenset(
    {"legal_name", "tax_id", "address", "phone", "bank_account"}
)

CLIENT_SENSITIVE_FIELDS: frozenset[str] = frozenset(
    {"full_name", "tax_id", "address", "phone", "bank_account_number", "notes"}
)


class SensitiveFieldCodec:
    """Applies CryptoEngine field by field over a designated subset of keys."""

    def __init__(self, engine: CryptoEngine):
        self._engine = engine

    def encrypt_record(
        self,
        record: Mapping[str, Any],
        sensitive_fields: Iterable[str],
    ) -> dict[str, Any]:
        """
        Return a copy of ``record`` with every sensitive, non-None value encrypted.

        Non-sensitive fields pass through untouched.  Non-string sensitive
        values are stringified before encryption.
        """
        sensitive = frozenset(sensitive_fields)
        encrypted: dict[str, Any] = {}
        for key, value in record.items():
            if key in sensitive and value is not None:
                encrypted[key] = self._engine.encrypt(str(value))
            else:
                encrypted[key] = value
        return encrypted

    def decrypt_record(
        self,
        record: Mapping[str, Any],
        sensitive_fields: Iterable[str],
    ) -> dict[str, Any]:
        """
        Return a copy of ``record`` with every sensitive value decrypted.

        A field that fails to decrypt becomes ``None``; the others proceed.
        ConfigurationError is NOT isolated: a missing master key is fatal.
        """
        sensitive = frozenset(sensitive_fields)
        decrypted: dict[str, Any] = {}
        failed: list[str] = []
        for key, value in record.items():
            if key not in sensitive or value is None or value == "":
                decrypted[key] = value
                continue
            try:
                decrypted[key] = self._engine.decrypt(value)
            except DecryptionError:
                logger.warning("field_decryption_failed", extra={"field": key})
                decrypted[key] = None
                failed.append(key)

        if failed:
            logger.warning(
                "record_partially_decrypted",
                extra={"failed_fields": failed, "field_count": len(sensitive)},
            )
        return decrypted

    def prepare_company_for_storage(self, company: Mapping[str, Any]) -> dict[str, Any]:
        """Encrypt the protected columns of a company record."""
        return self.encrypt_record(company, COMPANY_SENSITIVE_FIELDS)

    def retrieve_company_from_storage(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """Decrypt the protected columns of a stored company row."""
        return self.decrypt_record(row, COMPANY_SENSITIVE_FIELDS)

    def prepare_client_for_storage(self, client: Mapping[str, Any]) -> dict[str, Any]:
        """Encrypt the protected columns of a client record."""
        return self.encrypt_record(client, CLIENT_SENSITIVE_FIELDS)

    def retrieve_client_from_storage(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """Decrypt the protected columns of a stored client row."""
        return self.decrypt_record(row, CLIENT_SENSITIVE_FIELDS)


@dataclass(frozen=True)
class EncryptedField:
    """A single plaintext value that knows how to persist and log itself."""

    value: str

    def to_database(self, engine: CryptoEngine) -> str:
        return engine.encrypt(self.value)

    @classmethod
    def from_database(cls, engine: CryptoEngine, payload: str) -> "EncryptedField":
        return cls(engine.decrypt(payload))

    def to_log_safe(self) -> str:
        return mask_sensitive_data(self.value)

    def __repr__(self) -> str:
        return f"EncryptedField({self.to_log_safe()!r})"
