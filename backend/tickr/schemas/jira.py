"""Pydantic models for Jira REST payloads and the flattened issue view."""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field


class _JiraModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class JiraStatusCategory(_JiraModel):
    color_name: str = Field(alias="colorName")


class JiraStatus(_JiraModel):
    name: str
    status_category: Optional[JiraStatusCategory] = Field(None, alias="statusCategory")


class JiraUser(_JiraModel):
    display_name: str = Field(alias="displayName")
    email_address: Optional[str] = Field(None, alias="emailAddress")


class JiraNamed(_JiraModel):
    name: str


class JiraTimeTracking(_JiraModel):
    time_spent_seconds: Optional[int] = Field(None, alias="timeSpentSeconds")


class JiraParentFields(_JiraModel):
    summary: str


class JiraParent(_JiraModel):
    key: str
    fields: JiraParentFields


class JiraFields(_JiraModel):
    summary: str
    status: JiraStatus
    assignee: Optional[JiraUser] = None
    priority: Optional[JiraNamed] = None
    issuetype: JiraNamed
    timetracking: Optional[JiraTimeTracking] = None
    parent: Optional[JiraParent] = None


class JiraIssueAPI(_JiraModel):
    id: str
    key: str
    fields: JiraFields


class JiraIssuesResponse(_JiraModel):
    issues: List[JiraIssueAPI]
    total: Optional[int] = None
    is_last: Optional[bool] = Field(None, alias="isLast")


class JiraIssue(BaseModel):
    """Flattened issue as shown to the user."""

    id: str
    key: str
    summary: str
    status: str
    status_category: Optional[str] = None
    assignee: Optional[str] = None
    priority: Optional[str] = None
    issue_type: str
    time_spent_seconds: Optional[int] = None
    parent_key: Optional[str] = None
    parent_summary: Optional[str] = None

    @classmethod
    def from_api(cls, api_issue: JiraIssueAPI) -> "JiraIssue":
        fields = api_issue.fields
        return cls(
            id=api_issue.id,
            key=api_issue.key,
            summary=fields.summary,
            status=fields.status.name,
            status_category=fields.status.status_category.color_name if fields.status.status_category else None,
            assignee=fields.assignee.display_name if fields.assignee else None,
            priority=fields.priority.name if fields.priority else None,
            issue_type=fields.issuetype.name,
            time_spent_seconds=fields.timetracking.time_spent_seconds if fields.timetracking else None,
            parent_key=fields.parent.key if fields.parent else None,
            parent_summary=fields.parent.fields.summary if fields.parent else None,
        )

    @computed_field
    @property
    def display_name(self) -> str:
        return f"{self.key}: {self.summary}"

    @computed_field
    @property
    def formatted_time_spent(self) -> Optional[str]:
        seconds = self.time_spent_seconds
        if not seconds or seconds <= 0:
            return None
        hours, minutes = seconds // 3600, (seconds % 3600) // 60
        if hours > 0:
            return f"{hours}h {minutes}m"
        if minutes > 0:
            return f"{minutes}m"
        return f"{seconds}s"


class JiraAvatarUrls(_JiraModel):
    the_48x48: Optional[str] = Field(None, alias="48x48")


class JiraUserInfo(_JiraModel):
    display_name: str = Field(alias="displayName")
    avatar_urls: JiraAvatarUrls = Field(default_factory=JiraAvatarUrls, alias="avatarUrls")


class JiraWorklogResponse(_JiraModel):
    id: Union[str, int]
    issue_id: Optional[Union[str, int]] = Field(None, alias="issueId")
    time_spent_seconds: Optional[int] = Field(None, alias="timeSpentSeconds")
