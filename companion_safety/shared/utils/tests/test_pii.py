"""Tests for PII hashing helpers."""
from unittest.mock import MagicMock, patch

import pytest

from companion_safety.shared.utils import pii
from companion_safety.shared.utils import (
    configure_pii_salt,
    hash_pii,
    hash_text_for_audit,
    is_pii_salt_configured,
    load_pii_salt,
)


class TestConfigurePiiSalt:
    def test_short_salt_rejected(self):
        with pytest.raises(ValueError):
            configure_pii_salt("too_short")

    def test_empty_salt_rejected(self):
        with pytest.raises(ValueError):
            configure_pii_salt("")

    def test_configured_flag(self):
        configure_pii_salt("test_salt_that_is_at_least_32_characters_long")
        assert is_pii_salt_configured() is True


class TestHashPii:
    def test_hash_is_consistent(self):
        configure_pii_salt("test_salt_that_is_at_least_32_characters_long")
        assert hash_pii("user_123") == hash_pii("user_123")

    def test_hash_differs_per_value(self):
        configure_pii_salt("test_salt_that_is_at_least_32_characters_long")
        assert hash_pii("user_123") != hash_pii("user_456")

    def test_hash_is_hex_sha256(self):
        configure_pii_salt("test_salt_that_is_at_least_32_characters_long")
        hashed = hash_pii("user_123")
        assert len(hashed) == 64
        assert "user_123" not in hashed

    def test_unconfigured_salt_raises(self, monkeypatch):
        monkeypatch.setattr(pii, "_PII_SALT", None)
        with pytest.raises(RuntimeError):
            hash_pii("user_123")


class TestHashTextForAudit:
    def test_text_hash_has_no_content(self):
        digest = hash_text_for_audit("I miss her so much")
        assert len(digest) == 64
        assert "miss" not in digest


class TestLoadPiiSalt:
    def test_env_salt(self, monkeypatch):
        monkeypatch.delenv("PII_SALT_SECRET_ARN", raising=False)
        monkeypatch.setenv("PII_HASH_SALT", "x" * 40)

        assert load_pii_salt() == "x" * 40

    def test_dev_default_is_usable(self, monkeypatch):
        monkeypatch.delenv("PII_SALT_SECRET_ARN", raising=False)
        monkeypatch.delenv("PII_HASH_SALT", raising=False)

        configure_pii_salt(load_pii_salt())

        assert is_pii_salt_configured() is True

    def test_secret_takes_precedence(self, monkeypatch):
        monkeypatch.setenv("PII_SALT_SECRET_ARN", "arn:aws:secretsmanager:salt")
        monkeypatch.setenv("PII_HASH_SALT", "x" * 40)
        client = MagicMock()
        client.get_secret_value.return_value = {"SecretString": "s" * 48}

        with patch("boto3.client", return_value=client):
            assert load_pii_salt() == "s" * 48


class TestSurrogateText:
    def test_text_hash_accepts_lone_surrogate(self):
        assert len(hash_text_for_audit("I want to die \ud800")) == 64

    def test_pii_hash_accepts_lone_surrogate(self):
        configure_pii_salt("test_salt_that_is_at_least_32_characters_long")

        assert hash_pii("user_\udc80") != hash_pii("user_")
