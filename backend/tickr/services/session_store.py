"""Persistence adapter for time entries. No business logic lives here."""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tickr.models.account import Account
from tickr.models.time_entry import TimeEntry

log = logging.getLogger(__name__)


class SessionStore:
    """
    Transactional CRUD over ``time_entries``.

    Every write commits immediately. On failure the transaction is rolled
    back and the error re-raised, so callers never see a half-applied write.
    """

    def __init__(self, db: Session):
        self.db = db

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            log.error("Time entry commit failed; rolling back", exc_info=True)
            self.db.rollback()
            raise

    def insert(self, entry: TimeEntry) -> TimeEntry:
        self.db.add(entry)
        self._commit()
        return entry

    def save(self, entry: TimeEntry) -> TimeEntry:
        """Upsert the mutated fields of ``entry``."""
        entry = self.db.merge(entry)
        self._commit()
        return entry

    def delete(self, entry: TimeEntry) -> None:
        self.db.delete(entry)
        self._commit()

    def query_running(self) -> List[TimeEntry]:
        """Entries without an end time, most recently started first."""
        return (
            self.db.query(TimeEntry)
            .filter(TimeEntry.end_time.is_(None))
            .order_by(TimeEntry.start_time.desc())
            .all()
        )

    def query_entries(self, unsynced_only: bool = False, limit: int = 100) -> List[TimeEntry]:
        query = self.db.query(TimeEntry)
        if unsynced_only:
            query = query.filter(TimeEntry.end_time.isnot(None), TimeEntry.is_synced.is_(False))
        return query.order_by(TimeEntry.start_time.desc()).limit(limit).all()

    def fetch_account(self, account_id: str) -> Optional[Account]:
        """Load the account fresh from the database, discarding any cached state."""
        return self.db.get(Account, account_id, populate_existing=True)
