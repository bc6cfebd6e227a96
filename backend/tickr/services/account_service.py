"""Account management: create, delete and connection tests."""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tickr.connectors.errors import JiraAPIError
from tickr.connectors.jira_client import JiraClient
from tickr.models.account import Account, AccountType
from tickr.services.credentials import CredentialStore
from tickr.services.timer_manager import AccountNotFoundError, SessionManager

log = logging.getLogger(__name__)


class AccountInUseError(RuntimeError):
    def __init__(self, account_id: str):
        super().__init__(f"Account {account_id} has a running timer or a worklog still being submitted")
        self.account_id = account_id


class AccountService:
    """
    CRUD for Jira accounts. The token is written to the credential store
    under the account's derived key and never to the account row.
    """

    def __init__(self, db: Session, client: JiraClient, credentials: Optional[CredentialStore] = None):
        self.db = db
        self.client = client
        self.credentials = credentials or CredentialStore(db)

    def list_accounts(self) -> List[Account]:
        return self.db.query(Account).order_by(Account.name).all()

    def get_account(self, account_id: str) -> Account:
        account = self.db.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def create_account(
        self,
        name: str,
        base_url: str,
        email: str,
        token: str,
        account_type: AccountType = AccountType.CLOUD,
    ) -> Account:
        account = Account(
            name=name,
            base_url=base_url,
            email=email if account_type == AccountType.CLOUD else "",
            account_type=account_type,
            is_active=False,
        )
        self.db.add(account)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.credentials.set(account.credential_key, token)
        log.info(f"Created account '{name}' ({account_type.value}) for {base_url}")

        # Profile details are cosmetic; a failure here must not undo the account.
        try:
            username, avatar_url = await self.client.fetch_user_info(account, token)
            account.username = username
            account.avatar_url = avatar_url
            self.db.commit()
        except JiraAPIError as e:
            log.warning(f"Could not fetch user info for account '{name}': {e}")
        except SQLAlchemyError as e:
            self.db.rollback()
            log.warning(f"Could not store user info for account '{name}': {e}")
        return account

    def delete_account(self, account_id: str, timer_manager: Optional[SessionManager] = None) -> None:
        """Delete the account, its time entries and its stored token."""
        account = self.get_account(account_id)
        if timer_manager is not None and timer_manager.has_pending_work(account_id):
            raise AccountInUseError(account_id)

        key = account.credential_key
        self.db.delete(account)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.credentials.delete(key)
        log.info(f"Deleted account {account_id}")

    async def test_connection(self, account_id: str) -> bool:
        account = self.get_account(account_id)
        token = self.credentials.get(account.credential_key)
        return await self.client.test_connection(account, token)

    async def test_credentials(
        self,
        base_url: str,
        email: str,
        token: str,
        account_type: AccountType = AccountType.CLOUD,
    ) -> bool:
        """Check credentials typed into a form before anything is saved."""
        candidate = Account(name="candidate", base_url=base_url, email=email, account_type=account_type)
        return await self.client.test_connection(candidate, token)
