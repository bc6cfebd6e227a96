import os
from datetime import datetime, timedelta, timezone

from cryptography.fernet import Fernet

# Settings are read at import time, so the environment must be ready first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode())

import pytest
from unittest.mock import AsyncMock
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.orm import Session

from tickr.connectors.jira_client import JiraClient
from tickr.database import Base, SessionLocal, engine
import tickr.models  # noqa: F401
from tickr.models.account import Account, AccountType
from tickr.services.credentials import CredentialStore
from tickr.services.session_store import SessionStore
from tickr.services.timer_manager import SessionManager

T0 = datetime(2026, 10, 18, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def db() -> Session:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def credentials(db) -> CredentialStore:
    return CredentialStore(db)


@pytest.fixture
def account(db, credentials) -> Account:
    acc = Account(
        name="Acme Cloud",
        base_url="https://acme.atlassian.net",
        email="me@acme.com",
        account_type=AccountType.CLOUD,
        is_active=True,
    )
    db.add(acc)
    db.commit()
    credentials.set(acc.credential_key, "cloud-token")
    return acc


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> AsyncIOScheduler:
    # Never started: jobs stay pending, which is enough to observe the tick loop.
    return AsyncIOScheduler()


@pytest.fixture
def jira_client() -> AsyncMock:
    client = AsyncMock(spec=JiraClient)
    client.submit_worklog.return_value = "10001"
    client.fetch_assigned_issues.return_value = []
    return client


@pytest.fixture
def store(db) -> SessionStore:
    return SessionStore(db)


@pytest.fixture
def make_manager(store, jira_client, credentials, scheduler, clock):
    def factory(**kwargs) -> SessionManager:
        return SessionManager(
            store=kwargs.get("store", store),
            client=kwargs.get("client", jira_client),
            credentials=credentials,
            scheduler=scheduler,
            clock=clock,
        )
    return factory


@pytest.fixture
def manager(make_manager) -> SessionManager:
    return make_manager()
