"""Jira account model."""

import enum
import uuid

from sqlalchemy import Column, String, Boolean, Enum
from sqlalchemy.orm import relationship

from tickr.database import Base, UTCDateTime, utcnow


class AccountType(str, enum.Enum):
    """Jira deployment variant; selects the wire dialect."""

    CLOUD = "Cloud"
    DATA_CENTER = "Data Center"


class Account(Base):
    """A Jira site the user logs work against. The API token lives in the credential store."""

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    base_url = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, default="")
    account_type = Column(
        Enum(AccountType, values_callable=lambda e: [m.value for m in e], name="account_type"),
        nullable=False,
        default=AccountType.CLOUD,
    )
    is_active = Column(Boolean, default=False, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    last_synced_at = Column(UTCDateTime, nullable=True)
    username = Column(String(255), nullable=True)
    avatar_url = Column(String(512), nullable=True)

    # Relationships
    time_entries = relationship("TimeEntry", back_populates="account", cascade="all, delete-orphan")

    @property
    def credential_key(self) -> str:
        """Credential store key: personal access tokens are per site, cloud tokens per user."""
        if self.account_type == AccountType.DATA_CENTER:
            return f"pat@{self.base_url}"
        return f"{self.email}@{self.base_url}"

    @property
    def api_version(self) -> str:
        return "2" if self.account_type == AccountType.DATA_CENTER else "3"

    @property
    def sanitized_base_url(self) -> str:
        return sanitize_base_url(self.base_url)

    def __repr__(self):
        return f"<Account(id={self.id}, name='{self.name}', type='{self.account_type.value}')>"


def sanitize_base_url(url: str) -> str:
    """Force a scheme (https unless http is given) and drop one trailing slash."""
    url = url.strip()
    if not url.startswith("http://") and not url.startswith("https://"):
        url = f"https://{url}"
    if url.endswith("/"):
        url = url[:-1]
    return url
