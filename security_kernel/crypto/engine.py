"""
CryptoEngine -- envelope encryption and one-way hashing primitives.

Responsibility:
    Symmetric authenticated encryption of sensitive values, deterministic
    comparison hashing, and salted hashing of secondary secrets.  Foundation
    for the field codec, the backup-code manager and the audit masking path.

Architecture position:
    Kernel > Crypto -- pure functions over bytes plus one lazy read of the
    master secret.  No database, no network.

Payload format:
    ``base64(salt):base64(iv):base64(tag):base64(ciphertext)``

    - salt: 64 random bytes, fresh per call
    - iv:   16 random bytes, fresh per call
    - key:  PBKDF2-HMAC-SHA512(master secret, salt, 100 000 iterations) -> 32 bytes
    - AES-256-GCM, 16-byte authentication tag

Invariants enforced:
    - Identical plaintexts never produce identical payloads (fresh salt + IV).
    - Decryption fails closed: a malformed payload, a tag mismatch or a wrong
      key raises DecryptionError and never returns partial plaintext.
    - The master secret is validated lazily, on first use, not at import.

Failure modes:
    - ConfigurationError: master secret absent or shorter than the minimum.
      Fatal; propagated unchanged from both encrypt() and decrypt().
    - EncryptionError: cipher backend failure while encrypting.
    - DecryptionError: anything else that goes wrong while decrypting.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import os
import secrets
from typing import Callable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from security_config.schema import CryptoSettings
from security_kernel.crypto.masking import mask_sensitive_data
from security_kernel.exceptions import (
    ConfigurationError,
    DecryptionError,
    EncryptionError,
)
from security_kernel.logging_config import get_logger
from security_kernel.utils.hashing import sha256_hex

logger = get_logger("crypto.engine")

PAYLOAD_SEPARATOR = ":"
GCM_TAG_LENGTH = 16

MasterKeySource = str | Callable[[], str | None] | None


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(segment: str) -> bytes:
    return base64.b64decode(segment.encode("ascii"), validate=True)


class CryptoEngine:
    """
    Symmetric encryption, hashing and masking over a process-wide master secret.

    Contract:
        ``decrypt(encrypt(s)) == s`` for every string ``s``.

    Guarantees:
        - Each ``encrypt`` call draws new salt and IV from ``os.urandom``.
        - ``decrypt`` re-derives the key from the salt embedded in the payload.

    Non-goals:
        - Account password storage (delegated to the identity provider).
        - Key rotation.
    """

    def __init__(
        self,
        master_key: MasterKeySource = None,
        settings: CryptoSettings | None = None,
    ):
        """
        Args:
            master_key: The secret itself, or a zero-argument callable that
                returns it. Resolved on every operation that needs a key.
            settings: Crypto parameters. Defaults to production values.
        """
        self._master_key_source = master_key
        self._settings = settings or CryptoSettings()

    @property
    def settings(self) -> CryptoSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Key handling
    # ------------------------------------------------------------------

    def _master_key(self) -> str:
        source = self._master_key_source
        key = source() if callable(source) else source
        minimum = self._settings.min_master_key_length
        if not key or len(key) < minimum:
            raise ConfigurationError(
                self._settings.master_key_env,
                f"must be at least {minimum} characters",
            )
        return key

    def _derive_key(self, master_key: str, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA512(),
            length=self._settings.key_length,
            salt=salt,
            iterations=self._settings.pbkdf2_iterations,
        )
        return kdf.derive(master_key.encode("utf-8"))

    def check_configuration(self) -> None:
        """Raise ConfigurationError now instead of at first encryption."""
        self._master_key()

    # ------------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt ``plaintext`` into an EncryptedPayload string.

        Raises:
            ConfigurationError: master secret missing or too short.
            EncryptionError: cipher failure.
        """
        master_key = self._master_key()
        try:
            salt = os.urandom(self._settings.salt_length)
            iv = os.urandom(self._settings.iv_length)
            key = self._derive_key(master_key, salt)

            encryptor = Cipher(algorithms.AES(key), modes.GCM(iv)).encryptor()
            ciphertext = encryptor.update(plaintext.encode("utf-8")) + encryptor.finalize()
        except (ValueError, TypeError) as exc:
            logger.error("encryption_failed", extra={"error_type": type(exc).__name__})
            raise EncryptionError() from exc

        return PAYLOAD_SEPARATOR.join(
            (_b64(salt), _b64(iv), _b64(encryptor.tag), _b64(ciphertext))
        )

    def decrypt(self, payload: str) -> str:
        """
        Decrypt an EncryptedPayload string.

        Raises:
            ConfigurationError: master secret missing or too short.
            DecryptionError: malformed payload, tag mismatch or wrong key.
        """
        master_key = self._master_key()

        parts = payload.split(PAYLOAD_SEPARATOR) if isinstance(payload, str) else []
        if len(parts) != 4:
            logger.warning("decryption_failed", extra={"reason": "invalid_format"})
            raise DecryptionError("Invalid encrypted data format")

        try:
            salt, iv, tag, ciphertext = (_unb64(p) for p in parts)
        except (binascii.Error, ValueError) as exc:
            logger.warning("decryption_failed", extra={"reason": "invalid_base64"})
            raise DecryptionError("Invalid encrypted data format") from exc

        if not salt or not iv or len(tag) != GCM_TAG_LENGTH:
            logger.warning("decryption_failed", extra={"reason": "invalid_segment_length"})
            raise DecryptionError("Invalid encrypted data format")

        try:
            key = self._derive_key(master_key, salt)
            decryptor = Cipher(algorithms.AES(key), modes.GCM(iv, tag)).decryptor()
            plaintext = decryptor.update(ciphertext) + decryptor.finalize()
            return plaintext.decode("utf-8")
        except InvalidTag as exc:
            logger.warning("decryption_failed", extra={"reason": "authentication_failed"})
            raise DecryptionError() from exc
        except (ValueError, UnicodeDecodeError) as exc:
            logger.warning("decryption_failed", extra={"reason": type(exc).__name__})
            raise DecryptionError() from exc

    # ------------------------------------------------------------------
    # Hashing
    # ------------------------------------------------------------------

    def hash(self, data: str) -> str:
        """Deterministic SHA-256 hex digest. For comparisons only."""
        return sha256_hex(data)

    def hash_secret(self, secret: str) -> str:
        """
        Salted PBKDF2-SHA512 hash of a secondary secret: ``salt_hex:hash_hex``.

        Account passwords are NOT hashed here; the identity provider owns them.
        """
        salt = secrets.token_hex(16)
        return f"{salt}:{self._pbkdf2_hex(secret, salt)}"

    def verify_secret(self, secret: str, stored_hash: str) -> bool:
        """Constant-time check of ``secret`` against a ``hash_secret`` value."""
        salt, sep, expected = stored_hash.partition(":")
        if not sep or not salt or not expected:
            return False
        return hmac.compare_digest(self._pbkdf2_hex(secret, salt), expected)

    def _pbkdf2_hex(self, secret: str, salt: str) -> str:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA512(),
            length=64,
            salt=salt.encode("utf-8"),
            iterations=self._settings.pbkdf2_iterations,
        )
        return kdf.derive(secret.encode("utf-8")).hex()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def generate_secure_token(length: int = 32) -> str:
        """Hex string of ``length`` cryptographically random bytes."""
        return secrets.token_hex(length)

    @staticmethod
    def mask_sensitive_data(data: str, show_chars: int = 4) -> str:
        """See :func:`security_kernel.crypto.masking.mask_sensitive_data`."""
        return mask_sensitive_data(data, show_chars)
