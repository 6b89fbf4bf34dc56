"""
MFA backup codes.

Verification is pure with respect to the stored blob: only the returned
``updated_codes`` records consumption.
"""

import json
import re

import pytest

from security_config.schema import BackupCodeSettings
from security_kernel.auth.backup_codes import (
    BackupCode,
    BackupCodeManager,
    format_backup_code,
    generate_backup_codes,
    normalize_backup_code,
)
from security_kernel.crypto.engine import CryptoEngine
from security_kernel.exceptions import ConfigurationError

CODE_RE = re.compile(r"^[A-Z0-9]{8}$")


@pytest.fixture
def manager(crypto_engine, clock):
    return BackupCodeManager(crypto_engine, clock)


class TestGeneration:
    def test_default_batch(self):
        codes = generate_backup_codes()
        assert len(codes) == 10
        assert len(set(codes)) == 10
        assert all(CODE_RE.match(c) for c in codes)

    def test_custom_count(self):
        assert len(generate_backup_codes(3)) == 3
        assert generate_backup_codes(0) == []

    def test_negative_count_rejected(self):
        with pytest.raises(ValueError):
            generate_backup_codes(-1)

    def test_settings_drive_shape(self):
        codes = generate_backup_codes(
            settings=BackupCodeSettings(count=2, length=6, alphabet="AB")
        )
        assert len(codes) == 2
        assert all(len(c) == 6 and set(c) <= {"A", "B"} for c in codes)

    def test_manager_uses_settings(self, crypto_engine):
        manager = BackupCodeManager(crypto_engine, settings=BackupCodeSettings(count=4))
        assert len(manager.generate_backup_codes()) == 4


class TestFormatting:
    def test_format(self):
        assert format_backup_code("AB12CD34") == "AB12-CD34"

    def test_format_other_length_unchanged(self):
        assert format_backup_code("ABC") == "ABC"

    @pytest.mark.parametrize("raw", ["ab12-cd34", " AB12CD34 ", "AB12-CD34", "ab12cd34"])
    def test_normalize(self, raw):
        assert normalize_backup_code(raw) == "AB12CD34"


class TestEncryption:
    def test_round_trip_all_unused(self, manager):
        blob = manager.encrypt_backup_codes(["AB12CD34", "EF56GH78"])
        codes = manager.decrypt_backup_codes(blob)
        assert codes == [BackupCode("AB12CD34"), BackupCode("EF56GH78")]

    def test_blob_is_opaque(self, manager):
        blob = manager.encrypt_backup_codes(["AB12CD34"])
        assert "AB12CD34" not in blob

    def test_formatted_codes_normalized_on_encrypt(self, manager):
        blob = manager.encrypt_backup_codes(["ab12-cd34"])
        assert manager.decrypt_backup_codes(blob)[0].code == "AB12CD34"

    def test_unreadable_blob_yields_empty(self, manager, captured_logs):
        assert manager.decrypt_backup_codes("garbage") == []
        assert any(r["message"] == "backup_codes_unreadable" for r in captured_logs())

    def test_non_list_payload_yields_empty(self, manager, crypto_engine):
        blob = crypto_engine.encrypt(json.dumps({"code": "X"}))
        assert manager.decrypt_backup_codes(blob) == []

    def test_missing_master_key_propagates(self, manager):
        blob = manager.encrypt_backup_codes(["AB12CD34"])
        broken = BackupCodeManager(CryptoEngine(None))
        with pytest.raises(ConfigurationError):
            broken.decrypt_backup_codes(blob)


class TestVerification:
    def test_valid_code_consumed(self, manager, clock):
        blob = manager.encrypt_backup_codes(["AB12CD34", "EF56GH78"])

        result = manager.verify_backup_code(blob, "ab12-cd34")

        assert result.valid is True
        assert result.updated_codes is not None
        updated = manager.decrypt_backup_codes(result.updated_codes)
        assert updated[0].used is True
        assert updated[0].used_at == clock.now()
        assert updated[1].used is False

    def test_second_use_rejected(self, manager):
        blob = manager.encrypt_backup_codes(["AB12CD34"])
        first = manager.verify_backup_code(blob, "AB12CD34")
        second = manager.verify_backup_code(first.updated_codes, "AB12CD34")
        assert second.valid is False
        assert second.updated_codes is None

    def test_original_blob_untouched(self, manager):
        blob = manager.encrypt_backup_codes(["AB12CD34"])
        manager.verify_backup_code(blob, "AB12CD34")

        # Not persisted: the old blob still holds an unused code.
        assert manager.get_remaining_backup_codes(blob) == 1
        assert manager.verify_backup_code(blob, "AB12CD34").valid is True

    def test_unknown_code_rejected(self, manager):
        blob = manager.encrypt_backup_codes(["AB12CD34"])
        assert manager.verify_backup_code(blob, "ZZZZZZZZ").valid is False

    def test_non_ascii_input_rejected(self, manager):
        blob = manager.encrypt_backup_codes(["AB12CD34"])
        assert manager.verify_backup_code(blob, "ÀB12CD34").valid is False

    def test_corrupt_blob_rejected(self, manager):
        assert manager.verify_backup_code("a:b:c:d", "AB12CD34").valid is False

    def test_remaining_count(self, manager):
        blob = manager.encrypt_backup_codes(generate_backup_codes())
        codes = manager.decrypt_backup_codes(blob)
        result = manager.verify_backup_code(blob, codes[3].code)
        assert manager.get_remaining_backup_codes(result.updated_codes) == 9

    def test_duplicate_codes_consume_one(self, manager):
        blob = manager.encrypt_backup_codes(["AB12CD34", "AB12CD34"])
        result = manager.verify_backup_code(blob, "AB12CD34")
        assert manager.get_remaining_backup_codes(result.updated_codes) == 1


class TestBackupCodeSerialization:
    def test_dict_round_trip_with_timestamp(self, clock):
        code = BackupCode("AB12CD34", used=True, used_at=clock.now())
        assert BackupCode.from_dict(code.to_dict()) == code
