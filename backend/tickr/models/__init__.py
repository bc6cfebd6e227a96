"""Database models."""

from tickr.models.account import Account, AccountType
from tickr.models.time_entry import TimeEntry
from tickr.models.credential import Credential

__all__ = [
    "Account",
    "AccountType",
    "TimeEntry",
    "Credential",
]
