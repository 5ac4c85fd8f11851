"""
Pydantic Settings configuration for Inbox Placement.

Loads configuration from environment variables (and ``.env``). Monitored
accounts and provider overrides are JSON values, e.g.::

    ACCOUNTS='[{"provider": "gmail", "address": "probe1@gmail.com", "password": "app-pass"}]'
    PROVIDERS='{"outlook": {"host": "outlook.office365.com", "folders": ["INBOX", "Junk"]}}'
"""

from functools import lru_cache

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings

from inbox_placement.models import FolderCategory


class AccountCredentials(BaseModel):
    """One monitored mailbox."""

    provider: str = Field(..., pattern=r"^[a-z0-9_-]+$")
    address: str = Field(..., min_length=3)
    password: SecretStr = Field(SecretStr(""))


class ProviderSettings(BaseModel):
    """IMAP endpoint and folder layout for one provider."""

    host: str = Field(..., pattern=r"^[a-zA-Z0-9.-]+$")
    port: int = Field(993, ge=1, le=65535)
    # Highest-priority folder first
    folders: list[str] = Field(default_factory=lambda: ["INBOX"], min_length=1)
    folder_map: dict[str, FolderCategory] = Field(default_factory=dict)
    # Seconds to wait after checking an account before the next one
    pacing_delay: float = Field(2.0, ge=0, le=120)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Monitored mailboxes
    accounts: list[AccountCredentials] = Field(default_factory=list)
    # Merged over the built-in gmail/outlook profiles
    providers: dict[str, ProviderSettings] = Field(default_factory=dict)

    # Mailbox checks
    connect_timeout: float = Field(30.0, ge=1, le=300)

    # Recovery sweep
    stuck_threshold_minutes: int = Field(10, ge=1, le=1440)
    sweep_interval_seconds: int = Field(120, ge=10, le=3600)
    sweep_batch_size: int = Field(2, ge=1, le=50)
    sweep_test_delay: float = Field(45.0, ge=0, le=600)

    # Tests older than this are neither picked up nor kept
    retention_hours: int = Field(24, ge=1, le=720)

    # Scoring
    spam_penalty: float = Field(30.0, ge=0, le=100)
    error_penalty: float = Field(15.0, ge=0, le=100)

    # Completion notification
    smtp_host: str = Field("smtp.gmail.com", pattern=r"^[a-zA-Z0-9.-]+$")
    smtp_port: int = Field(587, ge=1, le=65535)
    smtp_user: str | None = Field(None)
    smtp_pass: SecretStr | None = Field(None)
    smtp_sender_name: str = Field("Email Deliverability Report")

    # Reports
    frontend_url: str | None = Field(None)

    # Path settings
    data_path: str = Field("./data/tests")

    # Logging settings
    log_format: str = Field("console")  # "json" or "console"
    debug: bool = Field(False)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache so the environment is parsed once per process.
    """
    return Settings()
