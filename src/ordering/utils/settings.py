"""Runtime settings for the change feed and order listings.

Protean's own configuration (providers, brokers) is selected through
PROTEAN_ENV; the values here cover what the framework does not know about.
"""

import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    poll_interval: float = 5.0
    batch_size: int = 100
    subscriber_buffer: int = 64
    lookback_seconds: float = 0.0
    page_size: int = 20
    max_page_size: int = 100

    def __post_init__(self):
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.subscriber_buffer < 1:
            raise ValueError("subscriber_buffer must be at least 1")
        if self.lookback_seconds < 0:
            raise ValueError("lookback_seconds cannot be negative")
        if not 1 <= self.page_size <= self.max_page_size:
            raise ValueError("page_size must be between 1 and max_page_size")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            poll_interval=_env_float("ORDER_FEED_POLL_INTERVAL", 5.0),
            batch_size=_env_int("ORDER_FEED_BATCH_SIZE", 100),
            subscriber_buffer=_env_int("ORDER_FEED_SUBSCRIBER_BUFFER", 64),
            lookback_seconds=_env_float("ORDER_FEED_LOOKBACK_SECONDS", 0.0),
            page_size=_env_int("ORDERS_PAGE_SIZE", 20),
            max_page_size=_env_int("ORDERS_MAX_PAGE_SIZE", 100),
        )
