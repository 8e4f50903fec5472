"""Autonomous Agent Loop - Multi-Step Reasoning and Tool Execution.

Drives one Agent through bounded (model decision → tool execution → state
update) cycles until the model produces a final answer or a stop condition is
reached. The loop is an explicit state machine; every visited state is
recorded on the ConversationState.

State Machine:
    AWAITING_MODEL   → call LanguageModel with the conversation so far
    MODEL_RESPONDED  → no tool calls: PRODUCING_FINAL_ANSWER (terminal)
                     → tool calls: validate each against the agent's tools
    INVOKING_TOOLS   → execute calls, append results in call order,
                       count the step, EXHAUSTED once max_steps is spent,
                       otherwise back to AWAITING_MODEL
    any state        → FAILED | CANCELLED

Failure Policy:
    - Model errors / malformed responses → FAILED (ModelInvocationError)
    - Unknown tool / invalid arguments → FAILED before any call of the step runs
    - Recoverable tool faults → visible RetryPromptPart turns, loop continues
    - Non-recoverable executor → FAILED (ToolExecutionError)
    - Per-step timeout → one retry of the same phase (finished tool calls are
      kept, only pending ones re-run), then FAILED (StepTimeoutError)
    - Exit condition raising → FAILED (ExitConditionError)

Outcomes:
    ``run()`` never raises for loop conditions. Callers always receive a tagged
    outcome (FinalAnswer | Exhausted | Cancelled | Failed) carrying the
    conversation state reached so far.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

import logfire
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    RetryPromptPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)

from .agent import Agent, Tool
from .capabilities import ToolFault, ToolOutcome
from .domain_type import FailureReason, LoopState
from .domain_value import ConversationState, LogfireAttributes, response_text, response_tool_calls
from .errors import (
    AgentLoopError,
    CancellationRequested,
    ExitConditionError,
    InvalidToolArgumentsError,
    ModelInvocationError,
    StepTimeoutError,
    ToolExecutionError,
    UnknownToolError,
)
from .prompt_template import PromptTemplate

T = TypeVar("T")

ExitCondition = Callable[[str], Awaitable[bool]]


# =============================================================================
# OUTCOMES
# =============================================================================


class FinalAnswer(BaseModel):
    """The model answered without requesting tools."""

    state: Literal[LoopState.PRODUCING_FINAL_ANSWER] = LoopState.PRODUCING_FINAL_ANSWER
    answer: str
    conversation: ConversationState

    model_config = ConfigDict(frozen=True)

    def to_logfire_attributes(self) -> LogfireAttributes:
        return LogfireAttributes({"loop.outcome": self.state.value, **self.conversation.to_logfire_attributes().root})


class Exhausted(BaseModel):
    """Step budget spent before a final answer. Not an error.

    ``partial_answer`` is the latest text the model produced, if any.
    """

    state: Literal[LoopState.EXHAUSTED] = LoopState.EXHAUSTED
    partial_answer: str | None = None
    conversation: ConversationState

    model_config = ConfigDict(frozen=True)

    def to_logfire_attributes(self) -> LogfireAttributes:
        return LogfireAttributes({"loop.outcome": self.state.value, **self.conversation.to_logfire_attributes().root})


class Cancelled(BaseModel):
    """External cancellation signal observed. Distinct from Failed."""

    state: Literal[LoopState.CANCELLED] = LoopState.CANCELLED
    conversation: ConversationState

    model_config = ConfigDict(frozen=True)

    def to_logfire_attributes(self) -> LogfireAttributes:
        return LogfireAttributes({"loop.outcome": self.state.value, **self.conversation.to_logfire_attributes().root})


class Failed(BaseModel):
    """Fatal condition; ``conversation`` is the partial state for diagnostics."""

    state: Literal[LoopState.FAILED] = LoopState.FAILED
    reason: FailureReason
    message: str
    error: AgentLoopError = Field(exclude=True)
    conversation: ConversationState

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def to_logfire_attributes(self) -> LogfireAttributes:
        return LogfireAttributes(
            {
                "loop.outcome": self.state.value,
                "loop.failure_reason": self.reason.value,
                **self.conversation.to_logfire_attributes().root,
            }
        )


LoopOutcome = FinalAnswer | Exhausted | Cancelled | Failed


@dataclass(frozen=True)
class _PreparedCall:
    """A model-issued tool call that passed validation."""

    call: ToolCallPart
    tool: Tool
    arguments: BaseModel


# =============================================================================
# LOOP
# =============================================================================


class AutonomousAgent:
    """Runs an Agent autonomously for up to ``agent.max_steps`` steps.

    The Agent is shared read-only; each ``run()`` owns a fresh ConversationState,
    so one AutonomousAgent can serve many concurrent runs.

    Args:
        agent: Immutable agent configuration
        exit_condition: Optional async predicate on a text-only answer. When it
            returns False the answer is fed back as the next user prompt and the
            loop keeps going (consuming a step).
        step_delay: Seconds to wait between steps

    Example:
        >>> loop = AutonomousAgent(agent)
        >>> outcome = await loop.run("Summarize open invoices")
        >>> match outcome:
        ...     case FinalAnswer(answer=answer): print(answer)
        ...     case Exhausted(partial_answer=partial): print("gave up:", partial)
    """

    def __init__(
        self,
        agent: Agent,
        *,
        exit_condition: ExitCondition | None = None,
        step_delay: float = 0.0,
    ):
        if step_delay < 0:
            raise ValueError("step_delay must be >= 0")
        self.agent = agent
        self.exit_condition = exit_condition
        self.step_delay = step_delay

    async def run(
        self,
        prompt: str | PromptTemplate,
        *,
        history: Sequence[ModelMessage] = (),
        cancel: asyncio.Event | None = None,
    ) -> LoopOutcome:
        """Run the loop to a terminal state.

        Args:
            prompt: User prompt, or a PromptTemplate rendered before the first call
            history: Prior messages to continue from
            cancel: External cancellation signal, checked before every transition
                and raced against in-flight model and tool calls

        Returns:
            FinalAnswer, Exhausted, Cancelled or Failed
        """
        text = prompt.render() if isinstance(prompt, PromptTemplate) else prompt
        state = ConversationState.start(prompt=text, instructions=self.agent.instructions, history=history)

        with logfire.span("agent loop {agent}", agent=self.agent.name, max_steps=self.agent.max_steps) as span:
            outcome = await self._drive(state, cancel)
            for key, value in outcome.to_logfire_attributes().root.items():
                span.set_attribute(key, value)

        if isinstance(outcome, Failed):
            logfire.error("Agent {agent} failed: {message}", agent=self.agent.name, message=outcome.message)
        else:
            logfire.info("Agent {agent} finished: {outcome}", agent=self.agent.name, outcome=outcome.state.value)
        return outcome

    async def _drive(self, state: ConversationState, cancel: asyncio.Event | None) -> LoopOutcome:
        tools = self.agent.tool_definitions

        while True:
            # === AWAITING_MODEL ===
            if _is_set(cancel):
                return self._cancelled(state)
            try:
                response = await self._with_retry(lambda: self._complete(state, tools), cancel, "model")
            except CancellationRequested:
                return self._cancelled(state)
            except AgentLoopError as e:
                return self._failed(state, e)

            state = state.append(response).transition(LoopState.MODEL_RESPONDED)

            # === MODEL_RESPONDED ===
            if _is_set(cancel):
                return self._cancelled(state)

            calls = response_tool_calls(response)
            if not calls:
                answer = response_text(response)
                try:
                    accepted = await self._accepts(answer, cancel)
                except CancellationRequested:
                    return self._cancelled(state)
                except AgentLoopError as e:
                    return self._failed(state, e)
                if accepted:
                    state = state.transition(LoopState.PRODUCING_FINAL_ANSWER)
                    return FinalAnswer(answer=answer, conversation=state)
                # exit condition rejected the answer: keep going from it
                state = state.append(ModelRequest(parts=[UserPromptPart(content=answer)]))
            else:
                try:
                    prepared = self._prepare_calls(calls)
                except AgentLoopError as e:
                    return self._failed(state, e)

                state = state.transition(LoopState.INVOKING_TOOLS)

                # === INVOKING_TOOLS ===
                if _is_set(cancel):
                    return self._cancelled(state)
                # results indexed by call position; completed calls survive an early stop
                results: list[ToolOutcome | None] = [None] * len(prepared)
                try:
                    await self._with_retry(lambda: self._invoke_tools(prepared, results), cancel, "tools")
                except CancellationRequested:
                    return self._cancelled(self._append_results(state, prepared, results))
                except AgentLoopError as e:
                    return self._failed(self._append_results(state, prepared, results), e)

                state = self._append_results(state, prepared, results)

            state = state.advance()
            if state.step >= self.agent.max_steps:
                state = state.transition(LoopState.EXHAUSTED)
                logfire.warn("Agent {agent} exhausted after {steps} steps", agent=self.agent.name, steps=state.step)
                return Exhausted(partial_answer=state.latest_text, conversation=state)

            state = state.transition(LoopState.AWAITING_MODEL)
            if self.step_delay:
                await self._pause(cancel)

    # -------------------------------------------------------------------------
    # Model phase
    # -------------------------------------------------------------------------

    async def _complete(self, state: ConversationState, tools: Sequence[Any]) -> ModelResponse:
        try:
            response = await self.agent.model.complete(state, tools)
        except Exception as e:
            raise ModelInvocationError(f"{type(e).__name__}: {e}") from e

        if not isinstance(response, ModelResponse):
            raise ModelInvocationError(f"Expected ModelResponse, got {type(response).__name__}")
        if not response.parts:
            raise ModelInvocationError("Model returned an empty response")
        return response

    async def _accepts(self, answer: str, cancel: asyncio.Event | None) -> bool:
        """Ask the exit condition whether a text answer ends the run."""
        if self.exit_condition is None:
            return True

        async def judge() -> bool:
            try:
                return bool(await self.exit_condition(answer))
            except Exception as e:
                raise ExitConditionError(f"{type(e).__name__}: {e}") from e

        return await self._bounded(judge(), cancel)

    # -------------------------------------------------------------------------
    # Tool phase
    # -------------------------------------------------------------------------

    def _prepare_calls(self, calls: Sequence[ToolCallPart]) -> list[_PreparedCall]:
        """Validate every call of the step before any of them runs."""
        prepared = []
        for call in calls:
            tool = self.agent.find_tool(call.tool_name)
            if tool is None:
                raise UnknownToolError(call.tool_name)
            try:
                arguments = tool.validate_arguments(call.args)
            except ValidationError as e:
                raise InvalidToolArgumentsError(call.tool_name, str(e)) from e
            prepared.append(_PreparedCall(call=call, tool=tool, arguments=arguments))
        return prepared

    async def _invoke_tools(self, prepared: list[_PreparedCall], results: list[ToolOutcome | None]) -> None:
        """Execute the step's pending calls, writing each outcome at its call position.

        Positions already holding an outcome are skipped, so a retried phase
        never re-runs a call that finished. Concurrent calls share nothing but
        ``results``; the first non-recoverable failure cancels the calls still
        running.
        """
        pending = [(index, item) for index, item in enumerate(prepared) if results[index] is None]

        async def run_one(index: int, item: _PreparedCall) -> None:
            results[index] = await self._execute(item)

        if self.agent.parallel_tool_calls and len(pending) > 1:
            try:
                async with asyncio.TaskGroup() as group:
                    for index, item in pending:
                        group.create_task(run_one(index, item))
            except ExceptionGroup as eg:
                raise eg.exceptions[0] from None
        else:
            for index, item in pending:
                await run_one(index, item)

    async def _execute(self, item: _PreparedCall) -> ToolOutcome:
        try:
            outcome = await item.tool.executor.execute(item.tool.name, item.arguments)
        except Exception as e:
            raise ToolExecutionError(item.tool.name, f"{type(e).__name__}: {e}") from e

        if isinstance(outcome, ToolFault):
            if not outcome.recoverable:
                raise ToolExecutionError(item.tool.name, outcome.message)
            logfire.warn("Tool {tool} returned an error", tool=item.tool.name, error=outcome.message)
        return outcome

    @staticmethod
    def _append_results(
        state: ConversationState,
        prepared: list[_PreparedCall],
        outcomes: Sequence[ToolOutcome | None],
    ) -> ConversationState:
        """Append one request holding every available result, in call order."""
        parts: list[ToolReturnPart | RetryPromptPart] = []
        for item, outcome in zip(prepared, outcomes, strict=False):
            if outcome is None:
                continue
            if isinstance(outcome, ToolFault):
                parts.append(
                    RetryPromptPart(content=outcome.message, tool_name=item.tool.name, tool_call_id=item.call.tool_call_id)
                )
            else:
                parts.append(
                    ToolReturnPart(tool_name=item.tool.name, content=outcome.content, tool_call_id=item.call.tool_call_id)
                )
        if not parts:
            return state
        return state.append(ModelRequest(parts=parts))

    # -------------------------------------------------------------------------
    # Timeout, retry and cancellation
    # -------------------------------------------------------------------------

    async def _with_retry(
        self,
        factory: Callable[[], Coroutine[Any, Any, T]],
        cancel: asyncio.Event | None,
        phase: str,
    ) -> T:
        """Run a phase, retrying it once if it times out."""
        try:
            return await self._bounded(factory(), cancel)
        except StepTimeoutError:
            logfire.warn("{phase} phase timed out, retrying once", phase=phase, agent=self.agent.name)
        try:
            return await self._bounded(factory(), cancel)
        except StepTimeoutError as e:
            raise StepTimeoutError(f"{phase} phase timed out twice after {self.agent.step_timeout}s") from e

    async def _bounded(self, coro: Coroutine[Any, Any, T], cancel: asyncio.Event | None) -> T:
        """Await ``coro`` under the step timeout, racing the cancellation signal."""
        timeout = self.agent.step_timeout
        if timeout is None and cancel is None:
            return await coro

        task = asyncio.ensure_future(coro)
        watcher = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
        waiters: set[asyncio.Future[Any]] = {task} if watcher is None else {task, watcher}
        try:
            done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if watcher is not None:
                watcher.cancel()

        if task in done:
            return task.result()

        # best-effort cancellation of the outstanding capability call
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        if watcher is not None and watcher in done:
            raise CancellationRequested()
        raise StepTimeoutError(f"Step exceeded {timeout}s")

    # -------------------------------------------------------------------------
    # Step pacing
    # -------------------------------------------------------------------------

    async def _pause(self, cancel: asyncio.Event | None) -> None:
        """Wait ``step_delay`` seconds, returning early if cancellation fires."""
        if cancel is None:
            await asyncio.sleep(self.step_delay)
            return
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(cancel.wait(), timeout=self.step_delay)

    # -------------------------------------------------------------------------
    # Terminal outcomes
    # -------------------------------------------------------------------------

    def _cancelled(self, state: ConversationState) -> Cancelled:
        return Cancelled(conversation=state.transition(LoopState.CANCELLED))

    def _failed(self, state: ConversationState, error: AgentLoopError) -> Failed:
        return Failed(
            reason=error.reason,
            message=error.message,
            error=error,
            conversation=state.transition(LoopState.FAILED),
        )


def _is_set(cancel: asyncio.Event | None) -> bool:
    return cancel is not None and cancel.is_set()


__all__ = [
    "AutonomousAgent",
    "Cancelled",
    "ExitCondition",
    "Exhausted",
    "Failed",
    "FinalAnswer",
    "LoopOutcome",
]
