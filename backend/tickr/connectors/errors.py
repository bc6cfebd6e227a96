"""Error taxonomy for Jira REST calls. Every failed call raises exactly one of these."""

from typing import Optional


class JiraAPIError(Exception):
    """Base class for all Jira API failures."""

    kind = "jira_error"


class InvalidURLError(JiraAPIError):
    kind = "invalid_url"

    def __init__(self, url: str):
        super().__init__(f"Invalid Jira URL: {url}")
        self.url = url


class UnauthorizedError(JiraAPIError):
    kind = "unauthorized"

    def __init__(self):
        super().__init__("Unauthorized. Please check your API token.")


class ServerError(JiraAPIError):
    kind = "server_error"

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Server error ({status_code}): {body}")
        self.status_code = status_code
        self.body = body


class NetworkError(JiraAPIError):
    """Transport failure, including timeouts."""

    kind = "network_error"

    def __init__(self, cause: Optional[BaseException]):
        super().__init__(f"Network error: {cause}")
        self.cause = cause


class DecodingError(JiraAPIError):
    kind = "decoding_error"

    def __init__(self, cause: Optional[BaseException]):
        super().__init__(f"Failed to parse response: {cause}")
        self.cause = cause
