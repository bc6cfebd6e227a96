from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict

from tickr.schemas.jira import JiraIssue

class TimerStartRequest(BaseModel):
    issue_key: str
    issue_summary: str = ""
    account_id: Optional[str] = None  # Defaults to the selected account

class TimeEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    issue_key: str
    issue_summary: str
    start_time: datetime
    end_time: Optional[datetime] = None
    comment: Optional[str] = None
    is_synced: bool
    synced_at: Optional[datetime] = None
    worklog_id: Optional[str] = None
    account_id: str
    formatted_duration: str

class ActiveTimer(BaseModel):
    issue_key: str
    issue_summary: str
    account_id: str
    start_time: datetime
    elapsed: str  # HH:MM:SS

class ElapsedResponse(BaseModel):
    issue_key: str
    active: bool
    elapsed: str

class IssueListResponse(BaseModel):
    account_id: Optional[str] = None
    issues: List[JiraIssue]
    error_message: Optional[str] = None
