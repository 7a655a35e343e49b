"""
Fernet encryption for workspace and storefront tokens kept in the tenant store.
Never logs plaintext values; use mask_token() when a token must be shown.
"""
from __future__ import annotations

import logging

from cryptography.fernet import Fernet, InvalidToken

from notionsync.config import get_settings
from notionsync.errors import ConfigurationMissing

logger = logging.getLogger(__name__)

_fernet: Fernet | None = None


def _get_fernet() -> Fernet:
    global _fernet
    if _fernet is None:
        key = get_settings().config_encryption_key.strip()
        if not key:
            raise ConfigurationMissing(
                "CONFIG_ENCRYPTION_KEY is not set; stored tokens cannot be read"
            )
        try:
            _fernet = Fernet(key.encode())
        except ValueError as exc:
            raise ConfigurationMissing(
                "CONFIG_ENCRYPTION_KEY is not a valid Fernet key"
            ) from exc
    return _fernet


def encrypt_token(plaintext: str) -> str:
    if not plaintext:
        return ""
    return _get_fernet().encrypt(plaintext.encode()).decode()


def decrypt_token(token: str) -> str:
    """Raises InvalidToken if the ciphertext was tampered with or the key rotated."""
    if not token:
        return ""
    try:
        return _get_fernet().decrypt(token.encode()).decode()
    except InvalidToken:
        logger.error("Failed to decrypt stored token – key mismatch or tampered data")
        raise


def mask_token(token: str | None) -> str:
    if not token:
        return "NOT SET"
    return "***" + token[-4:]
