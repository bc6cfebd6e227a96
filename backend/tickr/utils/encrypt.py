"""Fernet sealing for secrets kept in the database."""

from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from tickr.config import settings

def get_fernet() -> Fernet:
    return Fernet(settings.encryption_key.encode('utf-8'))

def seal_secret(secret: str) -> str:
    return get_fernet().encrypt(secret.encode('utf-8')).decode('utf-8')

def open_secret(sealed: str) -> Optional[str]:
    """Decrypt ``sealed``; None when it was sealed under a different key."""
    try:
        return get_fernet().decrypt(sealed.encode('utf-8')).decode('utf-8')
    except InvalidToken:
        return None
