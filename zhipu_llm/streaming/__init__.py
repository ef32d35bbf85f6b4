"""
Streaming support for chat completions.

This package contains:
- SSE line classification
- The pull-based chunk stream
- Delta accumulation into a full message
"""

from __future__ import annotations

from .accumulator import DeltaAccumulator
from .models import DONE_SENTINEL, RawSSELine, SSEEventType, StreamState
from .parser import parse_sse_line
from .stream import ChatCompletionStream

__all__ = [
    "DONE_SENTINEL",
    "ChatCompletionStream",
    "DeltaAccumulator",
    "RawSSELine",
    "SSEEventType",
    "StreamState",
    "parse_sse_line",
]
