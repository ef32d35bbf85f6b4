"""
Wire models for ZhipuAI chat completions.

This module provides the pydantic models exchanged with the service:
- Message roles and messages
- Chat completion request
- Non-streaming response with usage accounting
- Streaming chunk (one per SSE data frame)
- Error envelope
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

CHATGLM_TURBO = "chatglm_turbo"
CHATGLM_PRO = "chatglm_pro"
CHATGLM_STD = "chatglm_std"
CHATGLM_LITE = "chatglm_lite"


class MessageRole(Enum):
    """Roles accepted by the chat endpoint."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatCompletionMessage(BaseModel):
    """A single role/content pair."""
    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str


class ChatCompletionRequest(BaseModel):
    """Chat completion request body."""
    model: str
    messages: list[ChatCompletionMessage] = Field(min_length=1)
    temperature: float | None = None
    top_p: float | None = None
    request_id: str | None = None
    incremental: bool = False


class Usage(BaseModel):
    """Token usage statistics."""
    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionChoice(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = 0
    message: ChatCompletionMessage
    finish_reason: str | None = None


class ChatCompletionResponse(BaseModel):
    """Complete (non-streaming) response."""
    model_config = ConfigDict(frozen=True)

    id: str = ""
    created: int = 0
    model: str = ""
    choices: list[ChatCompletionChoice] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)


class ChatCompletionDelta(BaseModel):
    """Incremental fragment of the generated message."""
    model_config = ConfigDict(frozen=True)

    role: MessageRole | None = None
    content: str | None = None


class ChatCompletionStreamChoice(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = 0
    delta: ChatCompletionDelta = Field(default_factory=ChatCompletionDelta)
    finish_reason: str | None = None


class ChatCompletionStreamResponse(BaseModel):
    """One streamed chunk, decoded from a single ``data:`` frame."""
    model_config = ConfigDict(frozen=True)

    id: str = ""
    created: int = 0
    model: str = ""
    choices: list[ChatCompletionStreamChoice] = Field(default_factory=list)
    usage: Usage | None = None


class ErrorDetail(BaseModel):
    """Provider error payload; ``code`` is provider-specific."""
    code: str | int | None = None
    message: str = ""
    type: str | None = None
    param: str | None = None


class ErrorResponse(BaseModel):
    """Error envelope ``{"error": {...}}``."""
    error: ErrorDetail | None = None
