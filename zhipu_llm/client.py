"""
HTTP client for the ZhipuAI chat completion API.

Covers both call shapes:
- Non-streaming calls, decoded once from the full body
- Streaming calls, handed to ChatCompletionStream while still open
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any

import httpx

from .auth import generate_token
from .config import ClientConfig, default_config
from .errors import ErrorResponseDecoder
from .exceptions import (
    HTTPStatusError,
    RequestCancelledError,
    StreamingNotSupportedError,
    TransportError,
)
from .logging_utils import ContextualLogger, log_operation, operation_context
from .models import ChatCompletionRequest, ChatCompletionResponse
from .request_builder import DecodeStrategy, RequestBuilder, StructuredJSON
from .streaming.stream import ChatCompletionStream

INVOKE_SUFFIX = "/invoke"
SSE_INVOKE_SUFFIX = "/sse-invoke"


def is_failure_status(status_code: int) -> bool:
    """Anything outside [200, 400) is a failure."""
    return status_code < 200 or status_code >= 400


class ZhipuClient:
    """
    Chat completion client.

    Holds only immutable configuration, so one instance can serve many
    concurrent calls. Nothing is retried: every failure goes back to the
    caller.
    """

    def __init__(self, config: ClientConfig) -> None:
        self.config = config
        self.request_builder = RequestBuilder()
        self.error_decoder = ErrorResponseDecoder()

        self._owns_http_client = config.http_client is None
        self._http_client = config.http_client or httpx.AsyncClient(
            timeout=config.build_timeout(),
            limits=config.build_limits(),
        )

    @classmethod
    def from_token(cls, auth_token: str) -> ZhipuClient:
        """Client for the public endpoint using a preissued token."""
        return cls(default_config(auth_token))

    @classmethod
    def from_api_key(
        cls, api_key: str, token_ttl: timedelta = timedelta(minutes=30)
    ) -> ZhipuClient:
        """Client for the public endpoint minting a token per request."""
        return cls(ClientConfig(api_key=api_key, token_ttl=token_ttl))

    def authorization(self) -> str:
        """Credential for the next outgoing request."""
        if self.config.api_key is not None:
            return generate_token(self.config.api_key, self.config.token_ttl)
        return self.config.auth_token

    def full_url(self, suffix: str, model: str | None = None) -> str:
        """Base URL, optional model name and suffix, joined as-is."""
        return f"{self.config.base_url}{model or ''}{suffix}"

    def new_request(
        self,
        method: str,
        url: str,
        body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Request:
        """Build a request; Authorization always overrides caller headers."""
        request = self.request_builder.build(method, url, body, headers)
        request.headers["Authorization"] = self.authorization()
        return request

    async def send_request(
        self, request: httpx.Request, strategy: DecodeStrategy | None = None
    ) -> Any:
        """
        Send a request and decode a successful body with ``strategy``.

        Returns:
            The decoded body, or None when no strategy is given

        Raises:
            HTTPStatusError: Status outside [200, 400)
            ResponseDecodeError: Success body does not fit the strategy
            TransportError: Network failure
            RequestCancelledError: Transport timeout
        """
        request.headers["Accept"] = "application/json; charset=utf-8"
        if not request.headers.get("Content-Type"):
            request.headers["Content-Type"] = "application/json; charset=utf-8"

        response = await self._send(request, stream=False)
        try:
            if is_failure_status(response.status_code):
                raise await self._read_error(response)
            if strategy is None:
                return None
            return strategy.decode(response.content)
        finally:
            await response.aclose()

    async def open_stream(
        self,
        request: httpx.Request,
        log_context: dict[str, Any] | None = None,
    ) -> ChatCompletionStream:
        """
        Send a streaming request and return the still-open stream.

        The caller owns the returned stream and must close it. On a failure
        status the body is decoded here and the response is closed.
        """
        request.headers["Content-Type"] = "application/json"
        request.headers["Accept"] = "text/event-stream"
        request.headers["Cache-Control"] = "no-cache"
        request.headers["Connection"] = "keep-alive"

        response = await self._send(request, stream=True)
        if is_failure_status(response.status_code):
            try:
                error = await self._read_error(response)
            finally:
                await response.aclose()
            raise error

        return ChatCompletionStream(
            response,
            empty_messages_limit=self.config.empty_messages_limit,
            error_decoder=self.error_decoder,
            log=ContextualLogger({"component": "chat_stream", **(log_context or {})}),
        )

    @log_operation("create_chat_completion")
    async def create_chat_completion(
        self,
        request: ChatCompletionRequest,
        *,
        timeout: float | None = None,
    ) -> ChatCompletionResponse:
        """
        Run a non-streaming chat completion.

        Args:
            request: Completion request; must not be incremental
            timeout: Optional deadline in seconds for the whole call

        Raises:
            StreamingNotSupportedError: If ``request.incremental`` is set
        """
        if request.incremental:
            raise StreamingNotSupportedError(
                "Incremental requests must use create_chat_completion_stream"
            )

        http_request = self.new_request(
            "POST", self.full_url(INVOKE_SUFFIX, request.model), body=request
        )
        try:
            async with asyncio.timeout(timeout):
                return await self.send_request(
                    http_request, StructuredJSON(ChatCompletionResponse)
                )
        except TimeoutError as e:
            raise RequestCancelledError("Chat completion deadline exceeded") from e

    async def create_chat_completion_stream(
        self,
        request: ChatCompletionRequest,
        *,
        timeout: float | None = None,
    ) -> ChatCompletionStream:
        """
        Start a streaming chat completion.

        Args:
            request: Completion request; sent with ``incremental`` set
            timeout: Optional deadline in seconds for opening the stream;
                reads are bounded per call through ``recv(timeout=...)``

        Returns:
            Open stream the caller must close
        """
        request = request.model_copy(update={"incremental": True})
        log_context = {"model": request.model}
        if request.request_id:
            log_context["request_id"] = request.request_id

        async with operation_context(
            "create_chat_completion_stream", context=log_context
        ):
            http_request = self.new_request(
                "POST", self.full_url(SSE_INVOKE_SUFFIX, request.model), body=request
            )
            try:
                async with asyncio.timeout(timeout):
                    return await self.open_stream(http_request, log_context)
            except TimeoutError as e:
                raise RequestCancelledError("Stream open deadline exceeded") from e

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> ZhipuClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _send(self, request: httpx.Request, *, stream: bool) -> httpx.Response:
        try:
            return await self._http_client.send(request, stream=stream)
        except httpx.TimeoutException as e:
            raise RequestCancelledError(f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request failed: {e}") from e

    async def _read_error(self, response: httpx.Response) -> HTTPStatusError:
        try:
            return await self.error_decoder.decode_response(response)
        except httpx.TimeoutException as e:
            raise RequestCancelledError(f"Error body read timed out: {e}") from e
        except (httpx.HTTPError, httpx.StreamError) as e:
            raise TransportError(f"Failed to read error body: {e}") from e
