"""OpenAI function-calling adapter for the CompletionProvider protocol.

Translates conversation memory and discovered tool specs into an
OpenAI chat-completions request, and the response back into a
Completion.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import TYPE_CHECKING, Any

from toolwire.llm.client import OpenAIClient
from toolwire.llm.protocols import Completion
from toolwire.models.conversation import Role
from toolwire.toolkit.models import ToolCallRequest

if TYPE_CHECKING:
    from collections.abc import Sequence

    from toolwire.llm.protocols import LLMClient
    from toolwire.models.conversation import Message
    from toolwire.toolkit.models import ToolSpec

logger = logging.getLogger(__name__)


def to_openai_messages(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """Render memory as OpenAI chat messages.

    A bounded memory can evict an assistant tool-call marker while keeping
    the tool results that answer it, and an aborted round can leave a
    marker without results. The API rejects both, so unanswered calls are
    dropped from markers and orphaned tool results are skipped.
    """
    answered = {m.tool_call_id for m in messages if m.role == Role.TOOL}
    requested: set[str] = set()
    rendered: list[dict[str, Any]] = []
    for message in messages:
        if message.role == Role.TOOL:
            if message.tool_call_id not in requested:
                logger.debug("Skipping orphaned tool result %s", message.tool_call_id)
                continue
            rendered.append({
                "role": "tool",
                "tool_call_id": message.tool_call_id,
                "content": message.content,
            })
            continue

        calls = [c for c in message.tool_calls if c.correlation_id in answered]
        if message.role == Role.ASSISTANT and calls:
            requested.update(c.correlation_id for c in calls)
            rendered.append({
                "role": "assistant",
                "content": message.content or None,
                "tool_calls": [
                    {
                        "id": call.correlation_id,
                        "type": "function",
                        "function": {
                            "name": call.tool_name,
                            "arguments": json.dumps(dict(call.arguments)),
                        },
                    }
                    for call in calls
                ],
            })
        elif message.content or message.role == Role.USER:
            rendered.append({"role": message.role.value, "content": message.content})
    return rendered


def parse_completion(response: dict) -> Completion:
    """Turn an OpenAI chat-completions response body into a Completion.

    Raises:
        LLMResponseError: If the body has no ``choices[0].message`` object.
    """
    message = OpenAIClient.extract_message(response)
    content = message.get("content") or ""
    raw_calls = message.get("tool_calls") or []
    if not raw_calls:
        return Completion(final_text=content)

    calls: list[ToolCallRequest] = []
    for raw in raw_calls:
        function = raw.get("function", {})
        name = function.get("name", "")
        raw_arguments = function.get("arguments") or "{}"
        try:
            arguments = json.loads(raw_arguments)
        except (json.JSONDecodeError, TypeError):
            arguments = {}
            logger.warning("Malformed JSON in tool call arguments for %s", name)
        if not isinstance(arguments, dict):
            logger.warning("Tool call arguments for %s are not an object", name)
            arguments = {}
        calls.append(
            ToolCallRequest(
                tool_name=name,
                arguments=arguments,
                correlation_id=raw.get("id") or f"call_{uuid.uuid4().hex[:8]}",
            )
        )
    return Completion(tool_calls=tuple(calls), text=content)


class OpenAICompletionProvider:
    """CompletionProvider backed by any LLMClient speaking the OpenAI format.

    Usage::

        provider = OpenAICompletionProvider(OpenAIClient(), model="gpt-4o-mini")
        completion = provider.complete(memory.snapshot(), registry.all())
    """

    def __init__(
        self,
        client: LLMClient,
        *,
        model: str | None = None,
        temperature: float | None = 0.0,
        max_tokens: int | None = None,
        extra_llm_kwargs: dict | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._extra = dict(extra_llm_kwargs or {})

    def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolSpec],
        *,
        system_prompt: str | None = None,
    ) -> Completion:
        payload: list[dict[str, Any]] = []
        if system_prompt:
            payload.append({"role": "system", "content": system_prompt})
        payload.extend(to_openai_messages(messages))

        kwargs: dict[str, Any] = dict(self._extra)
        if tools:
            kwargs["tools"] = [spec.to_openai() for spec in tools]
        if self._model:
            kwargs["model"] = self._model
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature
        if self._max_tokens is not None:
            kwargs["max_tokens"] = self._max_tokens

        response = self._client.chat(payload, **kwargs)
        return parse_completion(response)

    def close(self) -> None:
        self._client.close()
