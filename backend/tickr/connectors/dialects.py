"""
Per-deployment wire differences between Jira Cloud and Jira Data Center.

Everything dialect-specific is a pure function of ``AccountType``: the auth
header, the REST API version, the issue search path and the shape of the
worklog comment. ``DIALECTS`` maps each type to its strategy.
"""

import base64
from dataclasses import dataclass
from typing import Any, Callable, Dict

from tickr.models.account import AccountType


def _basic_auth(email: str, token: str) -> str:
    raw = f"{email}:{token}".encode("utf-8")
    return f"Basic {base64.b64encode(raw).decode('ascii')}"


def _bearer_auth(email: str, token: str) -> str:
    return f"Bearer {token}"


def _rich_text_comment(text: str) -> Dict[str, Any]:
    # Cloud only accepts Atlassian Document Format bodies.
    return {
        "type": "doc",
        "version": 1,
        "content": [
            {
                "type": "paragraph",
                "content": [{"type": "text", "text": text}],
            }
        ],
    }


def _plain_comment(text: str) -> str:
    return text


@dataclass(frozen=True)
class JiraDialect:
    api_version: str
    search_path: str
    auth_header: Callable[[str, str], str]
    comment_body: Callable[[str], Any]

    def path(self, suffix: str) -> str:
        return f"/rest/api/{self.api_version}/{suffix.lstrip('/')}"


DIALECTS: Dict[AccountType, JiraDialect] = {
    AccountType.CLOUD: JiraDialect(
        api_version="3",
        search_path="/rest/api/3/search/jql",
        auth_header=_basic_auth,
        comment_body=_rich_text_comment,
    ),
    AccountType.DATA_CENTER: JiraDialect(
        api_version="2",
        search_path="/rest/api/2/search",
        auth_header=_bearer_auth,
        comment_body=_plain_comment,
    ),
}


def dialect_for(account_type: AccountType) -> JiraDialect:
    return DIALECTS[AccountType(account_type)]
