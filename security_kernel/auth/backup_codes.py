"""
MFA backup codes.

A batch of one-time recovery codes is stored as a single encrypted blob:

    encrypt(json([{"code": "AB12CD34", "used": false, "used_at": null}, ...]))

Verification is pure with respect to the stored blob.  A successful verify
returns a NEW blob with the code marked used; until the caller persists that
blob, the old one is still the source of truth and the code is not consumed.
"""

from __future__ import annotations

import hmac
import json
import secrets
from dataclasses import dataclass
from datetime import datetime

from security_config.schema import BackupCodeSettings
from security_kernel.crypto.engine import CryptoEngine
from security_kernel.domain.clock import Clock, SystemClock
from security_kernel.exceptions import DecryptionError
from security_kernel.logging_config import get_logger

logger = get_logger("auth.backup_codes")


@dataclass(frozen=True)
class BackupCode:
    code: str
    used: bool = False
    used_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "used": self.used,
            "used_at": self.used_at.isoformat() if self.used_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BackupCode":
        used_at = data.get("used_at")
        return cls(
            code=str(data["code"]),
            used=bool(data.get("used", False)),
            used_at=datetime.fromisoformat(used_at) if used_at else None,
        )


@dataclass(frozen=True)
class BackupCodeVerification:
    valid: bool
    updated_codes: str | None = None


def generate_backup_codes(
    count: int | None = None,
    settings: BackupCodeSettings | None = None,
) -> list[str]:
    """``count`` codes drawn with ``secrets`` from the configured alphabet."""
    settings = settings or BackupCodeSettings()
    count = settings.count if count is None else count
    if count < 0:
        raise ValueError("count must be >= 0")
    return [
        "".join(secrets.choice(settings.alphabet) for _ in range(settings.length))
        for _ in range(count)
    ]


def format_backup_code(code: str) -> str:
    """``AB12CD34`` -> ``AB12-CD34``; other lengths are returned unchanged."""
    if len(code) != 8:
        return code
    return f"{code[:4]}-{code[4:]}"


def normalize_backup_code(code: str) -> str:
    return code.replace("-", "").strip().upper()


class BackupCodeManager:
    """Encrypts, decrypts and verifies batches of backup codes."""

    def __init__(
        self,
        engine: CryptoEngine,
        clock: Clock | None = None,
        settings: BackupCodeSettings | None = None,
    ):
        self._engine = engine
        self._clock = clock or SystemClock()
        self._settings = settings or BackupCodeSettings()

    def generate_backup_codes(self, count: int | None = None) -> list[str]:
        return generate_backup_codes(count, self._settings)

    def _seal(self, codes: list[BackupCode]) -> str:
        return self._engine.encrypt(json.dumps([c.to_dict() for c in codes]))

    def encrypt_backup_codes(self, codes: list[str]) -> str:
        """Wrap every code as unused and encrypt the batch as one blob."""
        return self._seal([BackupCode(code=normalize_backup_code(c)) for c in codes])

    def decrypt_backup_codes(self, blob: str) -> list[BackupCode]:
        """
        Decrypt a batch.  An unreadable blob yields an empty list.

        ConfigurationError (missing master key) is not swallowed.
        """
        try:
            raw = json.loads(self._engine.decrypt(blob))
            return [BackupCode.from_dict(item) for item in raw]
        except (DecryptionError, ValueError, KeyError, TypeError) as exc:
            logger.warning(
                "backup_codes_unreadable",
                extra={"error_type": type(exc).__name__},
            )
            return []

    def verify_backup_code(self, blob: str, input_code: str) -> BackupCodeVerification:
        """
        Consume ``input_code`` if it matches an unused code.

        Returns:
            ``valid=True`` with the re-encrypted batch to persist, or
            ``valid=False`` with nothing to persist.
        """
        codes = self.decrypt_backup_codes(blob)
        candidate_bytes = normalize_backup_code(input_code).encode()

        match = None
        for index, code in enumerate(codes):
            # Scan every entry so timing does not depend on the match position.
            equal = hmac.compare_digest(code.code.encode(), candidate_bytes)
            if equal and not code.used and match is None:
                match = index

        if match is None:
            logger.info("backup_code_rejected")
            return BackupCodeVerification(valid=False)

        updated = list(codes)
        updated[match] = BackupCode(
            code=codes[match].code, used=True, used_at=self._clock.now()
        )
        logger.info(
            "backup_code_consumed",
            extra={"remaining": sum(1 for c in updated if not c.used)},
        )
        return BackupCodeVerification(valid=True, updated_codes=self._seal(updated))

    def get_remaining_backup_codes(self, blob: str) -> int:
        return sum(1 for c in self.decrypt_backup_codes(blob) if not c.used)
