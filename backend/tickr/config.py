"""Application configuration management."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from zoneinfo import ZoneInfo


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if self.debug and self.log_level.upper() != "TRACE":
            self.log_level = "DEBUG"

    # Database
    database_url: str = "sqlite:///./tickr.db"

    # Security
    secret_key: str
    encryption_key: str  # Fernet key for the credential store
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 1440

    # CORS
    cors_origins: str = "http://localhost:5173"

    # Admin User
    admin_username: str = "admin"
    admin_password: str = "changeme"

    # Application
    debug: bool = False
    log_level: str = "INFO"
    api_v1_str: str = "/api/v1"

    # Timers
    tick_interval_seconds: float = 1.0
    min_worklog_seconds: int = 60  # Jira rejects worklogs under one minute
    worklog_comment: str = "Work logged via Tickr"
    timezone: Optional[str] = None  # IANA name; None means the system local zone

    # Jira
    request_timeout: float = 30.0
    issue_max_results: int = 30
    issue_fields: str = "summary,status,assignee,priority,issuetype,timetracking,parent"

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Reject unknown zones at startup rather than on the first worklog."""
        if not v:
            return None
        try:
            ZoneInfo(v)
        except Exception:
            raise ValueError(f'Invalid timezone: {v}')
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]


# Global settings instance
settings = Settings()
