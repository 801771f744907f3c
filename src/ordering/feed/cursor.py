"""Change-feed cursor: the newest order a poller has already emitted."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta


@dataclass
class Cursor:
    last_fetched_at: datetime | None = None
    last_fetched_id: str | None = None

    @classmethod
    def starting_now(cls, lookback_seconds: float = 0.0) -> "Cursor":
        """Cursor that skips orders placed before startup (minus a lookback)."""
        return cls(last_fetched_at=datetime.now(UTC) - timedelta(seconds=lookback_seconds))

    def advance(self, created_at: datetime, order_id: str) -> None:
        self.last_fetched_at = created_at
        self.last_fetched_id = str(order_id)
