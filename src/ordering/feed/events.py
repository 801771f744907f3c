"""Feed events and their server-sent-event framing."""

import json
from dataclasses import dataclass
from enum import Enum

CONNECTED_FRAME = ": connected\n\n"
HEARTBEAT_FRAME = "data: {}\n\n"


class FeedEventKind(Enum):
    BATCH = "batch"
    HEARTBEAT = "heartbeat"
    ERROR = "error"


@dataclass(frozen=True)
class FeedEvent:
    """One poller tick's outcome.

    ``ERROR`` events are transient unless ``fatal`` is set: subscribers see
    a heartbeat for a transient failure and a final ``event: error`` frame
    for a fatal one.
    """

    kind: FeedEventKind
    orders: tuple = ()
    message: str | None = None
    fatal: bool = False

    @classmethod
    def batch(cls, orders) -> "FeedEvent":
        return cls(kind=FeedEventKind.BATCH, orders=tuple(orders))

    @classmethod
    def heartbeat(cls) -> "FeedEvent":
        return cls(kind=FeedEventKind.HEARTBEAT)

    @classmethod
    def failure(cls, message: str, fatal: bool = False) -> "FeedEvent":
        return cls(kind=FeedEventKind.ERROR, message=message, fatal=fatal)

    def frame(self) -> str:
        if self.kind is FeedEventKind.BATCH:
            return f"data: {json.dumps(list(self.orders), default=str)}\n\n"
        if self.kind is FeedEventKind.ERROR and self.fatal:
            return f"event: error\ndata: {json.dumps({'error': self.message or 'stream closed'})}\n\n"
        return HEARTBEAT_FRAME
