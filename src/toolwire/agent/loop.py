"""Core agent loop.

Provides the AgentLoop class that runs a tool-calling loop: send the
conversation and the discovered tools to the completion provider,
dispatch the tool calls it requests through the owning protocol
clients, append the results to memory, and repeat until the model
gives a final answer or the round limit is hit.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Union

from toolwire.agent.config import AgentConfig, AgentState
from toolwire.agent.models import RoundResult
from toolwire.exceptions import (
    NotReadyError,
    ProtocolError,
    ProviderError,
    RequestTimeoutError,
    RoundLimitExceeded,
    SessionClosedError,
    ToolExecutionFailed,
    TransportError,
    UnknownToolError,
)
from toolwire.memory import ConversationMemory
from toolwire.models.conversation import Message
from toolwire.toolkit.models import ToolCallResult
from toolwire.toolkit.registry import ToolRegistry

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from toolwire.llm.protocols import Completion, CompletionProvider
    from toolwire.protocol.client import ProtocolClient
    from toolwire.toolkit.models import ToolCallRequest, ToolSpec

logger = logging.getLogger(__name__)

_Outcome = Union[ToolCallResult, ToolExecutionFailed]


class AgentLoop:
    """Drives a multi-round conversation between a model and tool providers.

    Recoverable tool problems (unknown tool, timeout, protocol error) are
    returned to the model as error results so it can correct itself. A
    dead or closed provider session aborts the task with
    ToolExecutionFailed. Memory survives every failure, so a task can be
    inspected or retried.

    Usage::

        with ProtocolClient.spawn(ServerConfig(command="sql", args=["-mcp"])) as client:
            client.health_check()
            agent = AgentLoop(provider, [client])
            agent.discover_tools()
            print(agent.execute_task("List all tables in the schema."))
    """

    def __init__(
        self,
        provider: CompletionProvider,
        clients: Iterable[ProtocolClient] = (),
        *,
        registry: ToolRegistry | None = None,
        memory: ConversationMemory | None = None,
        config: AgentConfig | None = None,
    ) -> None:
        self._provider = provider
        self._config = config or AgentConfig()
        self._registry = registry if registry is not None else ToolRegistry()
        self._memory = (
            memory if memory is not None else ConversationMemory(self._config.memory_capacity)
        )
        self._clients: dict[str, ProtocolClient] = {}
        self._state = AgentState.IDLE
        self._rounds: list[RoundResult] = []
        for client in clients:
            self.add_client(client)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def memory(self) -> ConversationMemory:
        return self._memory

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def rounds(self) -> list[RoundResult]:
        """Rounds completed by the most recent task."""
        return list(self._rounds)

    def add_client(self, client: ProtocolClient) -> None:
        """Attach a protocol client so tools it owns can be dispatched."""
        self._clients[client.client_id] = client

    def discover_tools(self) -> list[ToolSpec]:
        """List tools on every attached client and register them.

        Clients are registered in attachment order, which fixes tool order
        and collision precedence.

        Returns:
            All resolvable tool specs after discovery.
        """
        for client_id, client in self._clients.items():
            specs = client.list_tools()
            logger.info("Discovered %d tool(s) from %s", len(specs), client_id)
            self._registry.register(client_id, specs)
        return self._registry.all()

    def execute_task(self, instruction: str) -> str:
        """Run one task to completion and return the model's final answer.

        Args:
            instruction: Task text, appended to memory as a user message.

        Returns:
            The final answer text.

        Raises:
            ProviderError: If the completion provider fails.
            ToolExecutionFailed: If a provider session dies during dispatch.
            RoundLimitExceeded: If no final answer arrives within
                ``config.max_rounds`` rounds.
        """
        self._rounds = []
        self._memory.append(Message.user(instruction))

        for round_number in range(1, self._config.max_rounds + 1):
            self._state = AgentState.AWAITING_MODEL
            completion = self._request_completion()

            if completion.is_final:
                answer = completion.final_text or ""
                self._memory.append(Message.assistant(answer))
                self._state = AgentState.FINISHED
                self._finish_round(RoundResult(round=round_number, completion=completion))
                return answer

            self._state = AgentState.TOOL_CALLS_REQUESTED
            calls = completion.tool_calls
            self._memory.append(Message.assistant(completion.text, tool_calls=calls))

            self._state = AgentState.DISPATCHING
            results: list[ToolCallResult] = []
            failure: ToolExecutionFailed | None = None
            for outcome in self._dispatch(calls):
                if isinstance(outcome, ToolExecutionFailed):
                    failure = outcome
                    break
                results.append(outcome)

            for call, result in zip(calls, results):
                self._memory.append(
                    Message.tool(
                        result.content,
                        tool_call_id=call.correlation_id,
                        name=call.tool_name,
                        is_error=result.is_error,
                    )
                )

            if failure is not None:
                self._state = AgentState.FAILED
                failure.messages = self._memory.snapshot()
                raise failure

            self._finish_round(
                RoundResult(round=round_number, completion=completion, results=tuple(results))
            )

        self._state = AgentState.FAILED
        raise RoundLimitExceeded(self._config.max_rounds, self._memory.snapshot())

    # ------------------------------------------------------------------
    # Internal methods
    # ------------------------------------------------------------------

    def _request_completion(self) -> Completion:
        try:
            return self._provider.complete(
                self._memory.snapshot(),
                self._registry.all(),
                system_prompt=self._config.system_prompt,
            )
        except Exception as exc:
            self._state = AgentState.FAILED
            raise ProviderError(
                f"Completion provider failed: {type(exc).__name__}: {exc}",
                self._memory.snapshot(),
            ) from exc

    def _finish_round(self, result: RoundResult) -> None:
        self._rounds.append(result)
        if self._config.on_round is not None:
            try:
                self._config.on_round(result)
            except Exception:
                logger.debug("on_round callback error", exc_info=True)

    def _dispatch(self, calls: Sequence[ToolCallRequest]) -> list[_Outcome]:
        """Run ``calls`` and return their outcomes in request order.

        The list stops at the first fatal failure.
        """
        if self._config.parallel_dispatch and len(calls) > 1:
            return self._dispatch_parallel(calls)
        outcomes: list[_Outcome] = []
        for call in calls:
            try:
                outcomes.append(self._invoke(call))
            except ToolExecutionFailed as exc:
                outcomes.append(exc)
                break
        return outcomes

    def _dispatch_parallel(self, calls: Sequence[ToolCallRequest]) -> list[_Outcome]:
        """Fan calls out per owning client; calls to one client stay in order."""
        groups: dict[str | None, list[int]] = {}
        for index, call in enumerate(calls):
            owner = self._owner_of(call.tool_name)
            groups.setdefault(owner, []).append(index)

        def run_group(indexes: list[int]) -> dict[int, _Outcome]:
            done: dict[int, _Outcome] = {}
            for index in indexes:
                try:
                    done[index] = self._invoke(calls[index])
                except ToolExecutionFailed as exc:
                    done[index] = exc
                    break
            return done

        collected: dict[int, _Outcome] = {}
        with ThreadPoolExecutor(
            max_workers=len(groups), thread_name_prefix="toolwire-dispatch"
        ) as pool:
            for done in pool.map(run_group, groups.values()):
                collected.update(done)

        outcomes: list[_Outcome] = []
        for index in range(len(calls)):
            outcome = collected.get(index)
            if outcome is None:
                break
            outcomes.append(outcome)
            if isinstance(outcome, ToolExecutionFailed):
                break
        return outcomes

    def _owner_of(self, tool_name: str) -> str | None:
        try:
            return self._registry.resolve(tool_name)[0]
        except UnknownToolError:
            return None

    def _invoke(self, call: ToolCallRequest) -> ToolCallResult:
        """Dispatch one call through the client that owns the tool.

        Raises:
            ToolExecutionFailed: If the owning session is unusable.
        """
        try:
            client_id, _spec = self._registry.resolve(call.tool_name)
        except UnknownToolError as exc:
            logger.info("Model requested unknown tool %s", call.tool_name)
            return ToolCallResult.error(call.correlation_id, str(exc))

        client = self._clients.get(client_id)
        if client is None:
            raise ToolExecutionFailed(call.tool_name, f"no client attached for '{client_id}'")

        logger.debug("Dispatching %s (%s) to %s", call.tool_name, call.correlation_id, client_id)
        try:
            return client.invoke_tool(call)
        except (RequestTimeoutError, ProtocolError) as exc:
            logger.warning("Tool %s failed: %s", call.tool_name, exc)
            return ToolCallResult.error(call.correlation_id, f"{type(exc).__name__}: {exc}")
        except (TransportError, SessionClosedError, NotReadyError) as exc:
            raise ToolExecutionFailed(call.tool_name, str(exc)) from exc
