"""
Fernet field-level encryption.

The key comes from settings.FIELD_ENCRYPTION_KEY (urlsafe base64, 32 bytes).
Without a key values are stored as plaintext, so development databases keep
working. Values that fail to decrypt (legacy plaintext, or a rotated key) are
returned unchanged.
"""
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings

logger = logging.getLogger(__name__)

# (key, Fernet) pair for the key currently configured
_fernet_cache: dict = {"key": None, "fernet": None}


def generate_encryption_key() -> str:
    """Return a fresh key suitable for FIELD_ENCRYPTION_KEY."""
    return Fernet.generate_key().decode()


def get_fernet() -> Optional[Fernet]:
    """Return the cached Fernet for the configured key, or None when no key is set."""
    key = getattr(settings, "FIELD_ENCRYPTION_KEY", "") or ""
    if not key:
        return None
    if _fernet_cache["key"] != key:
        _fernet_cache["fernet"] = Fernet(key.encode() if isinstance(key, str) else key)
        _fernet_cache["key"] = key
    return _fernet_cache["fernet"]


def encrypt_value(value: str) -> str:
    if not value:
        return value
    fernet = get_fernet()
    if fernet is None:
        return value
    return fernet.encrypt(value.encode()).decode()


def decrypt_value(token: str) -> str:
    if not token:
        return token
    fernet = get_fernet()
    if fernet is None:
        return token
    try:
        return fernet.decrypt(token.encode()).decode()
    except (InvalidToken, ValueError):
        logger.debug("Value could not be decrypted, returning it unchanged")
        return token


def encrypt_bytes(data: bytes, key: Optional[str] = None) -> bytes:
    """Encrypt a binary payload (backup archives). Raises when no key is available."""
    fernet = Fernet(key.encode()) if key else get_fernet()
    if fernet is None:
        raise ValueError("FIELD_ENCRYPTION_KEY is not configured")
    return fernet.encrypt(data)


def decrypt_bytes(data: bytes, key: Optional[str] = None) -> bytes:
    """Decrypt a binary payload. Raises cryptography.fernet.InvalidToken on a bad key or data."""
    fernet = Fernet(key.encode()) if key else get_fernet()
    if fernet is None:
        raise ValueError("FIELD_ENCRYPTION_KEY is not configured")
    return fernet.decrypt(data)
