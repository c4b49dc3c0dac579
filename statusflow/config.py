"""Application configuration settings.

This module provides centralized configuration management using environment
variables with sensible defaults, plus structlog setup driven by those
settings.
"""

import logging
import os
import sys
from dataclasses import dataclass

import structlog


def _get_bool_env(name: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable.

    Args:
        name: Environment variable name.
        default: Default value if not set.

    Returns:
        Boolean value from environment.
    """
    value = os.getenv(name, "").lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return default


def _get_float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        ENVIRONMENT: Deployment environment (development, staging, production).
        LOG_LEVEL: Logging level.
        LOG_JSON: Render logs as JSON lines instead of console output.
        NOTIFICATIONS_DB_PATH: SQLite file for in-app notifications and dead letters.
        QUEUE_URL: Base URL of the durable queue service.
        QUEUE_TOKEN: Bearer token used to publish to the queue.
        QUEUE_CURRENT_SIGNING_KEY: Key the queue currently signs calls with.
        QUEUE_NEXT_SIGNING_KEY: Key the queue will sign with after rotation.
        ALLOW_UNSIGNED_QUEUE_CALLS: Accept unsigned worker calls in production
            when no signing keys are configured.
        DELIVERY_WORKER_URL: Public URL of the webhook delivery worker endpoint.
        DEAD_LETTER_URL: Public URL of the queue failure callback endpoint.
        QUEUE_MAX_RETRIES: Delivery retries requested from the queue.
        WEBHOOK_TIMEOUT_SECONDS: Timeout for the outbound call to a tenant endpoint.
        CHANNEL_TIMEOUT_SECONDS: Upper bound for a single channel during dispatch.
    """

    ENVIRONMENT: str = "development"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Storage
    NOTIFICATIONS_DB_PATH: str = "./data/notifications.db"

    # Durable queue
    QUEUE_URL: str = "https://qstash.upstash.io"
    QUEUE_TOKEN: str | None = None
    QUEUE_CURRENT_SIGNING_KEY: str | None = None
    QUEUE_NEXT_SIGNING_KEY: str | None = None
    ALLOW_UNSIGNED_QUEUE_CALLS: bool = False
    DELIVERY_WORKER_URL: str | None = None
    DEAD_LETTER_URL: str | None = None
    QUEUE_MAX_RETRIES: int = 3

    # Timeouts
    WEBHOOK_TIMEOUT_SECONDS: float = 10.0
    CHANNEL_TIMEOUT_SECONDS: float = 5.0

    @property
    def is_production(self) -> bool:
        """Whether the process runs in production."""
        return self.ENVIRONMENT.lower() == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables.

        Returns:
            Settings instance populated from environment.
        """
        return cls(
            ENVIRONMENT=os.getenv("ENVIRONMENT", "development"),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
            LOG_JSON=_get_bool_env("LOG_JSON", default=False),
            NOTIFICATIONS_DB_PATH=os.getenv("NOTIFICATIONS_DB_PATH", "./data/notifications.db"),
            QUEUE_URL=os.getenv("QUEUE_URL", "https://qstash.upstash.io"),
            QUEUE_TOKEN=os.getenv("QUEUE_TOKEN"),
            QUEUE_CURRENT_SIGNING_KEY=os.getenv("QUEUE_CURRENT_SIGNING_KEY"),
            QUEUE_NEXT_SIGNING_KEY=os.getenv("QUEUE_NEXT_SIGNING_KEY"),
            ALLOW_UNSIGNED_QUEUE_CALLS=_get_bool_env("ALLOW_UNSIGNED_QUEUE_CALLS", default=False),
            DELIVERY_WORKER_URL=os.getenv("DELIVERY_WORKER_URL"),
            DEAD_LETTER_URL=os.getenv("DEAD_LETTER_URL"),
            QUEUE_MAX_RETRIES=int(_get_float_env("QUEUE_MAX_RETRIES", 3)),
            WEBHOOK_TIMEOUT_SECONDS=_get_float_env("WEBHOOK_TIMEOUT_SECONDS", 10.0),
            CHANNEL_TIMEOUT_SECONDS=_get_float_env("CHANNEL_TIMEOUT_SECONDS", 5.0),
        )


def configure_logging(config: Settings) -> None:
    """Configure structlog rendering and level.

    Args:
        config: Settings providing LOG_LEVEL and LOG_JSON.
    """
    level = logging.getLevelName(config.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    renderer: structlog.types.Processor
    if config.LOG_JSON:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


# Global settings instance
settings = Settings.from_env()
