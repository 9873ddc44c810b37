import logging
import os
import sys
from importlib.metadata import PackageNotFoundError, version
from typing import Optional
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _set_app_version():
    try:
        app_version = version("autoclaim")
    except PackageNotFoundError:
        return "DEV"

    if os.environ.get("DEV", False):
        return f"{app_version}-dev"

    return app_version


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="allow")

    app_version: str = _set_app_version()

    # Remote clue queue
    queue_base_url: str = "https://easylearn.baidu.com"
    queue_user_agent: str = DEFAULT_USER_AGENT
    queue_page_size: int = 20  # "rn" parameter of the list endpoint
    queue_request_timeout_seconds: float = 10.0
    queue_connect_timeout_seconds: float = 5.0
    queue_timezone: str = "Asia/Shanghai"  # Queue timestamps are naive wall-clock times in this zone

    # Retry of transient network failures (exponential backoff with jitter)
    queue_retry_attempts: int = 3
    queue_retry_min_wait_seconds: float = 0.5
    queue_retry_max_wait_seconds: float = 5.0

    # Poll loop
    max_consecutive_list_failures: int = 5  # Session stops after this many failed list calls in a row
    minimum_poll_interval_seconds: float = 0.1

    # Claim scheduler
    claim_queue_size_per_worker: int = 2  # Queue bound = concurrent_claims * this

    # Defaults applied to start requests that omit a value
    default_task_type: str = "audittask"
    default_claim_limit: int = 10
    default_poll_interval_seconds: float = 1.0
    default_concurrent_claims: int = 10

    # Server
    api_prefix: str = "/api/v1"
    server_host: str = "127.0.0.1"
    server_port: int = 8123
    shutdown_timeout_seconds: float = 15.0  # Drain time for a running session on shutdown

    # Dev
    testing: bool = False
    dev: bool = False

    @field_validator("queue_base_url")
    @classmethod
    def validate_queue_base_url(cls, value: str) -> str:
        parsed = urlparse(value.strip())
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"queue_base_url must be an http(s) URL, got: {value}")
        return value.strip().rstrip("/")

    @field_validator("queue_timezone")
    @classmethod
    def validate_queue_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"queue_timezone is not a known time zone: {value}") from exc
        return value

    @model_validator(mode="after")
    def validate_worker_settings(self):
        """Ensure poll and retry configuration values are sane."""
        if self.queue_page_size <= 0:
            logging.error(
                "QUEUE_PAGE_SIZE must be greater than zero. Current value: %s",
                self.queue_page_size,
            )
            sys.exit(1)

        if self.queue_retry_attempts < 1:
            logging.error(
                "QUEUE_RETRY_ATTEMPTS must be at least 1. Current value: %s",
                self.queue_retry_attempts,
            )
            sys.exit(1)

        if self.queue_retry_min_wait_seconds > self.queue_retry_max_wait_seconds:
            logging.error(
                "QUEUE_RETRY_MIN_WAIT_SECONDS (%s) exceeds QUEUE_RETRY_MAX_WAIT_SECONDS (%s).",
                self.queue_retry_min_wait_seconds,
                self.queue_retry_max_wait_seconds,
            )
            sys.exit(1)

        if self.max_consecutive_list_failures <= 0:
            logging.error(
                "MAX_CONSECUTIVE_LIST_FAILURES must be greater than zero. Current value: %s",
                self.max_consecutive_list_failures,
            )
            sys.exit(1)

        if self.claim_queue_size_per_worker <= 0:
            logging.error(
                "CLAIM_QUEUE_SIZE_PER_WORKER must be greater than zero. Current value: %s",
                self.claim_queue_size_per_worker,
            )
            sys.exit(1)

        if self.default_poll_interval_seconds < self.minimum_poll_interval_seconds:
            logging.warning(
                "DEFAULT_POLL_INTERVAL_SECONDS (%s) is below the minimum (%s), using the minimum.",
                self.default_poll_interval_seconds,
                self.minimum_poll_interval_seconds,
            )
            self.default_poll_interval_seconds = self.minimum_poll_interval_seconds

        return self


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get settings singleton, creating it if needed.

    Returns:
        Settings: The application settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Override settings (primarily for testing).

    Args:
        settings: The Settings instance to use.
    """
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Reset settings to None (for test cleanup)."""
    global _settings
    _settings = None


def get_loglevel():
    loglevel = os.getenv("LOGLEVEL", "INFO")

    match loglevel:
        case "INFO":
            return logging.INFO
        case "WARNING":
            return logging.WARNING
        case "ERROR":
            return logging.ERROR
        case "CRITICAL":
            return logging.CRITICAL
        case "DEBUG":
            return logging.DEBUG
        case _:
            return logging.INFO
