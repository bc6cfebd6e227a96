from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, field_validator

from tickr.models.account import AccountType


def _require_base_url(v: str) -> str:
    v = v.strip()
    if v.rstrip("/") in ("", "http:", "https:"):
        raise ValueError("Base URL must name a Jira host")
    return v

class AccountBase(BaseModel):
    name: str
    base_url: str
    email: str = ""
    account_type: AccountType = AccountType.CLOUD

class AccountCreate(AccountBase):
    api_token: str # Stored in the credential store, never on the account row

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        return _require_base_url(v)

class AccountInDB(AccountBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    is_active: bool
    created_at: datetime
    last_synced_at: Optional[datetime] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None

class CredentialsTestRequest(BaseModel):
    base_url: str
    email: str = ""
    api_token: str
    account_type: AccountType = AccountType.CLOUD

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        return _require_base_url(v)

class ConnectionTestResult(BaseModel):
    valid: bool
    message: str
