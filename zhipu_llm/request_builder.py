"""
HTTP request assembly and response body decoding strategies.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import httpx
from pydantic import BaseModel, ValidationError
from pydantic_core import PydanticSerializationError

from .exceptions import ResponseDecodeError, SerializationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class RequestBuilder:
    """Builds ``httpx.Request`` objects with a JSON-encoded body."""

    def build(
        self,
        method: str,
        url: str,
        body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Request:
        """
        Assemble a request.

        Args:
            method: HTTP method
            url: Absolute request URL
            body: pydantic model, raw bytes/str, or any JSON-serializable value
            headers: Default headers; callers may override them afterwards

        Returns:
            The unsent request

        Raises:
            SerializationError: If the body cannot be encoded
        """
        content = self._encode_body(body)
        return httpx.Request(method, url, content=content, headers=headers or {})

    @staticmethod
    def _encode_body(body: Any) -> bytes | None:
        if body is None:
            return None
        if isinstance(body, bytes):
            return body
        if isinstance(body, str):
            return body.encode("utf-8")

        try:
            if isinstance(body, BaseModel):
                return body.model_dump_json(exclude_none=True).encode("utf-8")
            return json.dumps(body).encode("utf-8")
        except (TypeError, ValueError, PydanticSerializationError) as e:
            raise SerializationError(f"Failed to encode request body: {e}") from e


@dataclass(frozen=True)
class RawText:
    """Return the response body verbatim, without JSON decoding."""

    def decode(self, body: bytes) -> str:
        try:
            return body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ResponseDecodeError(f"Response body is not UTF-8 text: {e}") from e


@dataclass(frozen=True)
class StructuredJSON(Generic[ModelT]):
    """Validate the response body into a pydantic model."""
    model: type[ModelT]

    def decode(self, body: bytes) -> ModelT:
        try:
            return self.model.model_validate_json(body)
        except ValidationError as e:
            raise ResponseDecodeError(
                f"Failed to decode response into {self.model.__name__}: {e}"
            ) from e


DecodeStrategy = RawText | StructuredJSON
