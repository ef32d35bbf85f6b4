"""
Streaming-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

DONE_SENTINEL = "[DONE]"


class StreamState(Enum):
    """Lifecycle of a stream; CLOSED and FAILED are terminal."""
    OPEN = "open"
    RECEIVING = "receiving"
    CLOSED = "closed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (StreamState.CLOSED, StreamState.FAILED)


class SSEEventType(Enum):
    """Classification of a single SSE line."""
    CHUNK = "chunk"            # data frame with a JSON payload
    COMPLETION = "completion"  # data frame carrying the terminator
    ERROR = "error"            # data frame carrying an error envelope
    HEARTBEAT = "heartbeat"    # data frame with an empty payload
    FIELD = "field"            # event:/id:/retry: field or comment
    UNKNOWN = "unknown"        # anything that is not SSE framing


@dataclass(frozen=True)
class RawSSELine:
    """One non-blank SSE line; ``data`` is the payload after the field name."""
    event_type: SSEEventType
    data: str
    raw_line: str
