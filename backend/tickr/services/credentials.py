"""Key/secret store for Jira API tokens, encrypted at rest."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tickr.models.credential import Credential
from tickr.utils.encrypt import open_secret, seal_secret

log = logging.getLogger(__name__)


class CredentialNotFoundError(LookupError):
    """No secret is stored under the requested key."""

    def __init__(self, key: str):
        super().__init__(f"No credential stored for '{key}'")
        self.key = key


class CredentialStore:
    """
    Opaque key -> secret lookup.

    Secrets never sit in plaintext next to the account rows; they are
    Fernet-encrypted in their own table and only decrypted on ``get``.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str) -> str:
        """Return the secret for ``key`` or raise :class:`CredentialNotFoundError`."""
        record = self.db.get(Credential, key)
        if record is None:
            raise CredentialNotFoundError(key)
        secret = open_secret(record.secret)
        if secret is None:
            # Rotated ENCRYPTION_KEY; the user has to enter the token again.
            log.warning(f"Credential for key '{key}' cannot be decrypted with the current key")
            raise CredentialNotFoundError(key)
        return secret

    def set(self, key: str, secret: str) -> None:
        record = self.db.get(Credential, key)
        if record is None:
            record = Credential(key=key, secret=seal_secret(secret))
            self.db.add(record)
        else:
            record.secret = seal_secret(secret)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        log.debug(f"Stored credential for key '{key}'")

    def delete(self, key: str) -> None:
        record = self.db.get(Credential, key)
        if record is None:
            return
        self.db.delete(record)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        log.debug(f"Deleted credential for key '{key}'")
