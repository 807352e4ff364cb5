"""Application configuration via environment variables."""

import logging

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./paygate.db"
    log_level: str = "INFO"
    purchase_timeout_seconds: float = 30.0  # Deadline for the outbound purchase call
    mock_failure_rate: float = 0.0  # Simulated failure rate of the mock gateway
    mock_latency_ms: int = 0  # Simulated provider latency
    notification_secret: str = "change-me"  # Shared secret for signed notifications

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "PAYGATE_"}


settings = Settings()


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    """
    Set up logging for a host process.

    Call once at startup, before any gateway is used. Root handlers are only
    installed if the host has none; the ``paygate`` logger level is always set.
    Unknown level names fall back to INFO.
    """
    resolved = getattr(logging, (level or settings.log_level).upper(), None)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("paygate").setLevel(resolved)
