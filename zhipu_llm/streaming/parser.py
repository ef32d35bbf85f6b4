"""
SSE line classification.
"""

from __future__ import annotations

from .models import DONE_SENTINEL, RawSSELine, SSEEventType

DATA_PREFIX = "data:"
ERROR_PREFIX = '{"error"'
FIELD_PREFIXES = ("event:", "id:", "retry:", ":")


def parse_sse_line(line: str) -> RawSSELine | None:
    """
    Classify one line of an SSE body.

    Returns None for blank lines, which only separate events.
    """
    stripped = line.strip()
    if not stripped:
        return None

    if stripped.startswith(DATA_PREFIX):
        data = stripped[len(DATA_PREFIX):].strip()

        if not data:
            return RawSSELine(SSEEventType.HEARTBEAT, data, line)
        if data == DONE_SENTINEL:
            return RawSSELine(SSEEventType.COMPLETION, data, line)
        if data.startswith(ERROR_PREFIX):
            return RawSSELine(SSEEventType.ERROR, data, line)
        return RawSSELine(SSEEventType.CHUNK, data, line)

    if stripped.startswith(FIELD_PREFIXES):
        return RawSSELine(SSEEventType.FIELD, stripped, line)

    return RawSSELine(SSEEventType.UNKNOWN, stripped, line)
