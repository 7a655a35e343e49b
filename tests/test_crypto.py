"""
Unit tests for token encryption at rest.
"""
from __future__ import annotations

import pytest
from cryptography.fernet import Fernet, InvalidToken

import notionsync.crypto as crypto_mod
from notionsync.crypto import decrypt_token, encrypt_token, mask_token
from notionsync.config import Settings
from notionsync.errors import ConfigurationMissing


@pytest.fixture(autouse=True)
def reset_fernet():
    """Reset cached Fernet instance so key changes take effect."""
    crypto_mod._fernet = None
    yield
    crypto_mod._fernet = None


def test_encrypt_decrypt_roundtrip():
    plaintext = "secret_abc123_workspace_token"
    token = encrypt_token(plaintext)
    assert token != plaintext
    assert decrypt_token(token) == plaintext


def test_encrypt_produces_different_tokens():
    t1 = encrypt_token("same_secret")
    t2 = encrypt_token("same_secret")
    assert t1 != t2
    assert decrypt_token(t1) == decrypt_token(t2) == "same_secret"


def test_decrypt_invalid_token_raises():
    with pytest.raises(InvalidToken):
        decrypt_token("not-a-valid-fernet-token")


def test_empty_string_passthrough():
    assert encrypt_token("") == ""
    assert decrypt_token("") == ""


def _use_key(monkeypatch, key: str) -> None:
    monkeypatch.setattr(crypto_mod, "get_settings", lambda: Settings(config_encryption_key=key))


def test_missing_key_raises_configuration_missing(monkeypatch):
    _use_key(monkeypatch, "")
    with pytest.raises(ConfigurationMissing, match="CONFIG_ENCRYPTION_KEY"):
        encrypt_token("test")


def test_invalid_key_raises_configuration_missing(monkeypatch):
    _use_key(monkeypatch, "too-short")
    with pytest.raises(ConfigurationMissing, match="not a valid Fernet key"):
        encrypt_token("test")


def test_mask_token():
    assert mask_token(None) == "NOT SET"
    assert mask_token("") == "NOT SET"
    assert mask_token("secret_1234abcd") == "***abcd"


def test_key_comes_from_settings(monkeypatch):
    """A key supplied only through settings (e.g. .env) is the one used."""
    key = Fernet.generate_key().decode()
    _use_key(monkeypatch, key)

    token = encrypt_token("secret_from_dotenv")

    assert Fernet(key.encode()).decrypt(token.encode()).decode() == "secret_from_dotenv"
