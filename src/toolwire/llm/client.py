"""OpenAI-compatible chat-completions client (httpx + tenacity).

Sync client used by OpenAICompletionProvider. Credentials and endpoint
come from constructor arguments or the TOOLWIRE_OPENAI_* environment
variables.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx
import tenacity

from toolwire.exceptions import (
    LLMAuthError,
    LLMClientError,
    LLMConfigError,
    LLMRateLimitError,
    LLMResponseError,
)

logger = logging.getLogger(__name__)

API_KEY_ENV = "TOOLWIRE_OPENAI_API_KEY"
BASE_URL_ENV = "TOOLWIRE_OPENAI_BASE_URL"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"

# 429 is raised as LLMRateLimitError before raise_for_status sees it
_TRANSIENT_STATUS = frozenset({500, 502, 503, 504})
_REJECTED_CREDENTIALS = frozenset({401, 403})
_TRANSIENT_NETWORK = (httpx.ConnectError, httpx.TimeoutException)


def _is_transient(exc: BaseException) -> bool:
    """Rate limits, 5xx, connect failures and timeouts are worth another attempt."""
    if isinstance(exc, LLMRateLimitError):
        return True
    if isinstance(exc, LLMClientError):
        return False
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _TRANSIENT_STATUS
    return isinstance(exc, _TRANSIENT_NETWORK)


def _seconds(header: str | None) -> float | None:
    try:
        return float(header) if header is not None else None
    except ValueError:
        return None


class OpenAIClient:
    """Sync httpx client for ``POST {base_url}/chat/completions``.

    Implements the LLMClient protocol. Transient failures are retried with
    jittered exponential backoff; rejected credentials raise LLMAuthError
    on the first attempt.

    Usage::

        with OpenAIClient() as client:
            response = client.chat(
                [{"role": "user", "content": "Hello"}],
                tools=[spec.to_openai() for spec in registry.all()],
            )
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str = DEFAULT_MODEL,
        timeout: float = 120.0,
        max_retries: int = 3,
    ) -> None:
        """Build the client.

        Args:
            api_key: Bearer token. Falls back to TOOLWIRE_OPENAI_API_KEY.
            base_url: API root. Falls back to TOOLWIRE_OPENAI_BASE_URL, then
                the public OpenAI endpoint.
            default_model: Model used when chat() gets no ``model``.
            timeout: Per-request timeout in seconds.
            max_retries: Total attempts for transient failures.

        Raises:
            LLMConfigError: If no API key is available.
        """
        self._api_key = api_key or os.environ.get(API_KEY_ENV, "")
        if not self._api_key:
            raise LLMConfigError(
                f"No API key provided. Pass api_key= or set the {API_KEY_ENV} "
                "environment variable."
            )
        root = base_url or os.environ.get(BASE_URL_ENV) or DEFAULT_BASE_URL
        self._base_url = root.rstrip("/")
        self._default_model = default_model
        self._attempts = max(1, max_retries)
        self._client = httpx.Client(
            timeout=timeout,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )

    @property
    def default_model(self) -> str:
        return self._default_model

    def chat(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> dict:
        """Request one chat completion, retrying transient failures.

        Extra keyword arguments (``tools``, ``tool_choice``, ``seed`` ...)
        are copied into the request payload.

        Returns:
            The decoded response body.

        Raises:
            LLMAuthError: On 401/403.
            LLMRateLimitError: On 429 once retries are exhausted.
            LLMResponseError: If the body has no ``choices``.
            httpx.HTTPError: On other HTTP or network failures.
        """
        optional = {"temperature": temperature, "max_tokens": max_tokens}
        payload = {
            "model": model or self._default_model,
            "messages": messages,
            **{key: value for key, value in optional.items() if value is not None},
            **kwargs,
        }
        return self._retry_policy()(self._post_once, payload)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> OpenAIClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @staticmethod
    def extract_message(response: dict) -> dict:
        """Return ``choices[0].message`` from a response body.

        Raises:
            LLMResponseError: If the body does not have that shape.
        """
        try:
            message = response["choices"][0]["message"]
        except (LookupError, TypeError) as exc:
            raise LLMResponseError(f"Cannot find a message in response: {response}") from exc
        if not isinstance(message, dict):
            raise LLMResponseError(f"Message is not an object: {message!r}")
        return message

    # ------------------------------------------------------------------
    # Internal methods
    # ------------------------------------------------------------------

    def _retry_policy(self) -> tenacity.Retrying:
        return tenacity.Retrying(
            retry=tenacity.retry_if_exception(_is_transient),
            wait=tenacity.wait_random_exponential(multiplier=1, max=30),
            stop=tenacity.stop_after_attempt(self._attempts),
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def _post_once(self, payload: dict[str, Any]) -> dict:
        response = self._client.post(f"{self._base_url}/chat/completions", json=payload)

        status = response.status_code
        if status in _REJECTED_CREDENTIALS:
            raise LLMAuthError(f"Authentication failed: HTTP {status} - {response.text}")
        if status == 429:
            raise LLMRateLimitError(
                f"Rate limited by {self._base_url}",
                retry_after=_seconds(response.headers.get("Retry-After")),
            )
        response.raise_for_status()

        try:
            data = response.json()
        except ValueError as exc:
            raise LLMResponseError(f"Response body is not JSON: {response.text[:200]}") from exc
        if not isinstance(data, dict) or "choices" not in data:
            raise LLMResponseError(f"Response has no 'choices' key: {data}")
        return data
