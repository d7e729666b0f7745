"""Encryption of OAuth tokens stored in the database."""

from __future__ import annotations

import base64
import hashlib
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from ..config import settings
from ..errors import IntegrationError


@lru_cache(maxsize=1)
def _fernet() -> Fernet:
    key = settings.TOKEN_ENCRYPTION_KEY
    if not key:
        # Fernet wants 32 url-safe base64 bytes
        key = base64.urlsafe_b64encode(hashlib.sha256(settings.JWT_SECRET.encode("utf-8")).digest()).decode("ascii")
    return Fernet(key.encode("ascii"))


def encrypt_token(token: str) -> str:
    return _fernet().encrypt(token.encode("utf-8")).decode("ascii")


def decrypt_token(stored: str) -> str:
    """Return the plaintext token, or raise `IntegrationError` if it cannot be read."""
    try:
        return _fernet().decrypt(stored.encode("ascii")).decode("utf-8")
    except (InvalidToken, UnicodeError) as exc:
        raise IntegrationError("stored Google token cannot be decrypted; reconnect the account") from exc
