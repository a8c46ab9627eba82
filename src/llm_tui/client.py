"""Async client for the hosted chat-completion endpoint."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
import json
import logging
from typing import Any

import httpx

from .exceptions import (
    AuthenticationError,
    CompletionError,
    CompletionTimeoutError,
    MalformedResponseError,
    NetworkError,
    RateLimitedError,
)
from .models import Message, ModelId

LOGGER = logging.getLogger(__name__)

RETRYABLE_ERRORS: tuple[type[CompletionError], ...] = (
    CompletionTimeoutError,
    NetworkError,
    RateLimitedError,
)


def build_payload(model: ModelId, messages: Sequence[Message]) -> dict[str, Any]:
    """Build the JSON request body for an ordered message list."""
    return {
        "model": model.value,
        "messages": [
            {"role": message.role.value, "content": message.text}
            for message in messages
        ],
    }


def _error_message(body: Any) -> str:
    """Extract a human readable error from an API error body, if any."""
    if not isinstance(body, dict):
        return ""
    error = body.get("error")
    if isinstance(error, dict):
        message = error.get("message") or error.get("code")
        return str(message) if message else ""
    if isinstance(error, str):
        return error
    # Legacy Qianfan bodies report ``error_code``/``error_msg`` at top level.
    if "error_code" in body:
        return str(body.get("error_msg") or body.get("error_code"))
    return ""


def extract_content(body: Any) -> str:
    """Return ``choices[0].message.content`` or raise MalformedResponseError."""
    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        detail = _error_message(body)
        if detail:
            raise MalformedResponseError(f"API error: {detail}") from exc
        raise MalformedResponseError("Response has no choices[0].message.content.") from exc
    if not isinstance(content, str):
        raise MalformedResponseError("Completion content is not a string.")
    return content


class CompletionClient:
    """Send an ordered conversation and return the completion text.

    Failures are raised as :class:`CompletionError` subclasses whose ``kind``
    classifies them; transient ones are retried with linear backoff.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        retries: int = 1,
        retry_backoff_seconds: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.retries = max(0, retries)
        self.retry_backoff_seconds = retry_backoff_seconds
        self._transport = transport

    async def complete(
        self, model: ModelId, messages: Sequence[Message], credential: str
    ) -> str:
        """Return the assistant reply for ``messages`` using ``model``."""
        payload = build_payload(model, messages)
        for attempt in range(self.retries + 1):
            try:
                return await self._post_once(payload, credential)
            except asyncio.CancelledError:
                LOGGER.info(
                    "client.request.cancelled",
                    extra={"event": "client.request.cancelled", "model": model.value},
                )
                raise
            except RETRYABLE_ERRORS as exc:
                LOGGER.warning(
                    "client.request.retry",
                    extra={
                        "event": "client.request.retry",
                        "attempt": attempt + 1,
                        "error_type": exc.__class__.__name__,
                    },
                )
                if attempt >= self.retries:
                    raise
                await asyncio.sleep(self.retry_backoff_seconds * (attempt + 1))
        raise NetworkError("Request was not attempted.")  # pragma: no cover

    async def _post_once(self, payload: dict[str, Any], credential: str) -> str:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {credential}",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise CompletionTimeoutError(
                f"No response from {self.url} within {self.timeout:g}s."
            ) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Unable to reach {self.url}: {exc}") from exc
        return self._parse_response(response)

    @staticmethod
    def _parse_response(response: httpx.Response) -> str:
        try:
            body: Any = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            body = None

        status = response.status_code
        detail = _error_message(body)
        if status in (401, 403):
            raise AuthenticationError(detail or f"HTTP {status}")
        if status == 429:
            raise RateLimitedError(detail or "HTTP 429")
        if status >= 400:
            raise NetworkError(f"HTTP {status}: {detail}" if detail else f"HTTP {status}")
        if body is None:
            raise MalformedResponseError("Response body is not valid JSON.")
        return extract_content(body)
