"""Glue between the timer manager and whatever renders it."""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tickr.connectors.errors import JiraAPIError
from tickr.connectors.jira_client import JiraClient
from tickr.database import utcnow
from tickr.models.account import Account
from tickr.models.time_entry import TimeEntry
from tickr.schemas.jira import JiraIssue
from tickr.services.credentials import CredentialNotFoundError, CredentialStore
from tickr.services.timer_manager import AccountNotFoundError, SessionManager

log = logging.getLogger(__name__)


class SyncCoordinator:
    """
    Holds the selected account and its issue list, and forwards errors
    outward as ``error_message`` instead of raising them.
    """

    def __init__(
        self,
        db: Session,
        client: JiraClient,
        credentials: CredentialStore,
        timer_manager: SessionManager,
    ):
        self.db = db
        self.client = client
        self.credentials = credentials
        self.timer_manager = timer_manager

        self.selected_account: Optional[Account] = None
        self.issues: List[JiraIssue] = []
        self.is_loading = False
        self.error_message: Optional[str] = None

    def load_initial_account(self) -> Optional[Account]:
        """Pick the active account, or activate the first one by name."""
        active = self.db.query(Account).filter(Account.is_active.is_(True)).first()
        if active is not None:
            self.selected_account = active
            return active
        first = self.db.query(Account).order_by(Account.name).first()
        if first is not None:
            return self.select_account(first.id)
        return None

    def select_account(self, account_id: str) -> Account:
        account = self.db.get(Account, account_id, populate_existing=True)
        if account is None:
            raise AccountNotFoundError(account_id)

        for other in self.db.query(Account).all():
            other.is_active = other.id == account_id
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            # Activation is a preference; the selection still applies in memory.
            self.db.rollback()
            log.warning(f"Could not persist active account {account_id}: {e}")

        self.selected_account = account
        self.issues = []
        log.info(f"Selected account '{account.name}'")
        return account

    async def refresh_issues(self) -> List[JiraIssue]:
        account = None
        if self.selected_account is not None:
            account = self.db.get(Account, self.selected_account.id, populate_existing=True)
        if account is None:
            self.selected_account = None
            self.error_message = "No account selected"
            self.issues = []
            return self.issues
        self.selected_account = account

        self.is_loading = True
        self.error_message = None
        try:
            token = self.credentials.get(account.credential_key)
            self.issues = await self.client.fetch_assigned_issues(account, token)
        except (JiraAPIError, CredentialNotFoundError) as e:
            log.warning(f"Issue refresh for '{account.name}' failed: {e}")
            self.error_message = str(e)
            self.issues = []
        else:
            account.last_synced_at = utcnow()
            try:
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                log.warning(f"Could not record sync time for '{account.name}': {e}")
        finally:
            self.is_loading = False
        return self.issues

    async def stop_and_refresh(self, issue_key: str) -> TimeEntry:
        """Stop a timer, then reload issues so Jira's time spent is current."""
        try:
            entry = await self.timer_manager.stop(issue_key)
        except Exception as e:
            self.error_message = f"Failed to stop timer: {e}"
            raise
        await self.refresh_issues()
        return entry
