import httpx
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar
from urllib.parse import quote
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from tickr.config import settings
from tickr.connectors.dialects import dialect_for
from tickr.connectors.errors import (
    DecodingError,
    InvalidURLError,
    NetworkError,
    ServerError,
    UnauthorizedError,
)
from tickr.models.account import Account
from tickr.schemas.jira import (
    JiraIssue,
    JiraIssuesResponse,
    JiraUserInfo,
    JiraWorklogResponse,
)

log = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def format_started(started_at: datetime, timezone: Optional[str] = None) -> str:
    """
    Render a worklog start as ``yyyy-MM-ddTHH:mm:ss.SSS+HHMM`` in local time.
    Jira stores the wall clock literally, so the offset must be the user's own.
    """
    local = started_at.astimezone(ZoneInfo(timezone)) if timezone else started_at.astimezone()
    millis = local.microsecond // 1000
    return f"{local.strftime('%Y-%m-%dT%H:%M:%S')}.{millis:03d}{local.strftime('%z')}"


class JiraClient:
    """
    Stateless Jira REST client for both Cloud and Data Center.

    Each call opens its own HTTP client, sends one request and returns one
    outcome. Failures always surface as a ``JiraAPIError`` subclass.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timezone: Optional[str] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.timezone = timezone if timezone is not None else settings.timezone
        self._transport = transport

    def _build_url(self, account: Account, path: str) -> httpx.URL:
        # Check the host before appending the path: "https:/" plus "/rest/api" parses with host "rest".
        base = account.sanitized_base_url
        try:
            base_url = httpx.URL(base)
            if not base_url.host:
                raise InvalidURLError(base)
            return httpx.URL(f"{base}{path}")
        except httpx.InvalidURL as e:
            raise InvalidURLError(base) from e

    async def _send(self, method: str, account: Account, token: str, path: str, **kwargs) -> httpx.Response:
        """Send an authenticated request; transport failures become ``NetworkError``."""
        url = self._build_url(account, path)
        dialect = dialect_for(account.account_type)
        headers = {
            "Accept": "application/json",
            "Authorization": dialect.auth_header(account.email or "", token),
        }
        if "json" in kwargs:
            headers["Content-Type"] = "application/json"

        try:
            log.trace(f"Jira API {method} {url} params={kwargs.get('params', 'none')}")
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
            log.trace(f"Jira API response for {url}: {response.status_code}")
            return response
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            log.error(f"Invalid Jira URL {url}: {e}")
            raise InvalidURLError(str(url)) from e
        except httpx.RequestError as e:
            log.error(f"Request error for {url}: {e!r}")
            raise NetworkError(e) from e

    @staticmethod
    def _check(response: httpx.Response) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        if status == 401:
            log.error(f"Jira authentication failed for {response.request.url}")
            raise UnauthorizedError()
        body = response.text or "Unknown error"
        log.error(f"HTTP error for {response.request.url}: {status} - {body}")
        raise ServerError(status, body)

    @staticmethod
    def _decode(response: httpx.Response, model: Type[ModelT]) -> ModelT:
        try:
            return model.model_validate(response.json())
        except ValueError as e:
            # Covers both malformed JSON and a payload of the wrong shape.
            log.error(f"Could not decode {model.__name__} from {response.request.url}: {e}")
            raise DecodingError(e) from e

    async def fetch_assigned_issues(self, account: Account, token: str) -> List[JiraIssue]:
        """Issues assigned to the current user, newest Jira ordering, capped by settings."""
        dialect = dialect_for(account.account_type)
        params = {
            "jql": "assignee = currentUser()",
            "maxResults": str(settings.issue_max_results),
            "fields": settings.issue_fields,
        }
        response = await self._send("GET", account, token, dialect.search_path, params=params)
        self._check(response)
        payload = self._decode(response, JiraIssuesResponse)
        issues = [JiraIssue.from_api(issue) for issue in payload.issues]
        log.info(f"Fetched {len(issues)} assigned issues for account '{account.name}'")
        return issues

    async def submit_worklog(
        self,
        issue_key: str,
        seconds: int,
        started_at: datetime,
        account: Account,
        token: str,
        comment: Optional[str] = None,
    ) -> str:
        """Create a worklog on ``issue_key`` and return its Jira id."""
        dialect = dialect_for(account.account_type)
        body: Dict[str, Any] = {
            "timeSpentSeconds": seconds,
            "started": format_started(started_at, self.timezone),
            "comment": dialect.comment_body(comment or settings.worklog_comment),
        }
        path = dialect.path(f"issue/{quote(issue_key, safe='')}/worklog")
        response = await self._send("POST", account, token, path, json=body)
        self._check(response)
        worklog = self._decode(response, JiraWorklogResponse)
        log.info(f"Submitted worklog {worklog.id} for {issue_key} ({seconds}s)")
        return str(worklog.id)

    async def test_connection(self, account: Account, token: str) -> bool:
        """True when ``/myself`` answers 200 with these credentials."""
        dialect = dialect_for(account.account_type)
        response = await self._send("GET", account, token, dialect.path("myself"))
        return response.status_code == 200

    async def fetch_user_info(self, account: Account, token: str) -> Tuple[str, Optional[str]]:
        """Return ``(display_name, avatar_url)`` for the authenticated user."""
        dialect = dialect_for(account.account_type)
        response = await self._send("GET", account, token, dialect.path("myself"))
        self._check(response)
        info = self._decode(response, JiraUserInfo)
        return info.display_name, info.avatar_urls.the_48x48
