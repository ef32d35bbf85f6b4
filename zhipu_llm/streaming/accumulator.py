"""
Folding of streamed deltas into a complete assistant message.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models import ChatCompletionMessage, ChatCompletionStreamResponse, MessageRole


@dataclass
class AccumulatorState:
    """Mutable state for delta accumulation."""
    content_buffer: str = ""
    role: MessageRole | None = None
    finish_reason: str | None = None
    completion_id: str = ""
    chunk_count: int = 0


class DeltaAccumulator:
    """
    Accumulates the first choice of each chunk into one message.

    Other choice indexes are alternative completions and are not merged.
    """

    def __init__(self) -> None:
        self.state = AccumulatorState()

    def add(self, chunk: ChatCompletionStreamResponse) -> str | None:
        """Fold one chunk in; returns the content fragment it carried."""
        self.state.chunk_count += 1
        if chunk.id:
            self.state.completion_id = chunk.id

        fragment = None
        for choice in chunk.choices:
            if choice.index != 0:
                continue
            if self.state.role is None and choice.delta.role is not None:
                self.state.role = choice.delta.role
            if choice.delta.content:
                fragment = choice.delta.content
                self.state.content_buffer += fragment
            if choice.finish_reason:
                self.state.finish_reason = choice.finish_reason
        return fragment

    @property
    def content(self) -> str:
        return self.state.content_buffer

    @property
    def finish_reason(self) -> str | None:
        return self.state.finish_reason

    @property
    def message(self) -> ChatCompletionMessage:
        return ChatCompletionMessage(
            role=self.state.role or MessageRole.ASSISTANT,
            content=self.state.content_buffer,
        )

    def reset(self) -> None:
        """Reset accumulator state for a new stream."""
        self.state = AccumulatorState()
