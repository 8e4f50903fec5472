"""Identity and State Layer - Conversation State for the Agent Loop.

Wraps Pydantic AI's message types with the per-invocation bookkeeping the
autonomous agent loop needs to make its next decision.

Architecture:
    - Identity (our layer): ConversationId
    - Content (Pydantic AI): ModelMessage (ModelRequest | ModelResponse)
    - Loop metadata (our layer): step counter, current LoopState, visited states

The state is append-only: messages are never removed or reordered, and every
update returns a new instance, so a run's history reflects real causal order.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, RootModel
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    ToolCallPart,
    UserPromptPart,
)

from .domain_type import LoopState


class ConversationId(RootModel[UUID]):
    """Unique Identifier for one Agent Loop invocation.

    Usage:
        >>> conv_id = ConversationId()
        >>> str(conv_id.root)
        '550e8400-e29b-41d4-a716-446655440000'
    """

    root: UUID = Field(default_factory=uuid4)
    model_config = ConfigDict(frozen=True)


class LogfireAttributes(RootModel[dict[str, Any]]):
    """Domain state exported as Logfire span attributes.

    Logfire span attributes must be dict[str, Any]; wrapping keeps the
    structure explicit while staying unpackable into ``span.set_attribute``.

    Example:
        >>> attrs = state.to_logfire_attributes()
        >>> with logfire.span("agent_loop", **attrs.root):
        ...     pass
    """

    root: dict[str, Any]
    model_config = ConfigDict(frozen=True)


def response_text(response: ModelResponse) -> str:
    """Concatenate the text parts of a model response."""
    return "".join(part.content for part in response.parts if isinstance(part, TextPart))


def response_tool_calls(response: ModelResponse) -> tuple[ToolCallPart, ...]:
    """Tool call requests of a model response, in the order the model issued them."""
    return tuple(part for part in response.parts if isinstance(part, ToolCallPart))


class ConversationState(BaseModel):
    """Per-Invocation Conversation State.

    Created fresh for each Agent Loop run and owned exclusively by it. Never
    shared between concurrent runs, so no synchronization is needed.

    Attributes:
        id: Identifier of this run
        messages: Ordered Pydantic AI messages (append-only)
        step: Completed model → tool cycles
        state: Current LoopState
        transitions: Every state visited, in order (observable state per step)

    Example:
        >>> state = ConversationState.start(instructions="Be brief.", prompt="Hi")
        >>> state = state.append(response).transition(LoopState.MODEL_RESPONDED)
        >>> state.transitions
        (<LoopState.AWAITING_MODEL: 'awaiting_model'>, <LoopState.MODEL_RESPONDED: 'model_responded'>)
    """

    id: ConversationId = Field(default_factory=ConversationId)
    messages: tuple[ModelMessage, ...] = ()
    step: int = Field(default=0, ge=0)
    state: LoopState = LoopState.AWAITING_MODEL
    transitions: tuple[LoopState, ...] = (LoopState.AWAITING_MODEL,)

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @classmethod
    def start(
        cls,
        *,
        prompt: str,
        instructions: str | None = None,
        history: Sequence[ModelMessage] = (),
    ) -> ConversationState:
        """Factory: seed state with prior history and the opening request.

        The system instructions are only attached when the history does not
        already start the conversation.
        """
        parts: list[SystemPromptPart | UserPromptPart] = []
        if instructions and not history:
            parts.append(SystemPromptPart(content=instructions))
        parts.append(UserPromptPart(content=prompt))
        return cls(messages=(*history, ModelRequest(parts=parts)))

    @property
    def terminated(self) -> bool:
        return self.state.is_terminal

    @property
    def latest_response(self) -> ModelResponse | None:
        for message in reversed(self.messages):
            if isinstance(message, ModelResponse):
                return message
        return None

    @property
    def latest_text(self) -> str | None:
        """Most recent non-empty text the model produced (best-effort partial answer)."""
        for message in reversed(self.messages):
            if isinstance(message, ModelResponse):
                text = response_text(message)
                if text:
                    return text
        return None

    @property
    def used_tokens(self) -> int:
        """Total tokens reported by model responses in this run.

        For observability only; step budgets are enforced by the loop.
        """
        total = 0
        for message in self.messages:
            if isinstance(message, ModelResponse) and message.usage:
                total += message.usage.total_tokens
        return total

    def append(self, *messages: ModelMessage) -> ConversationState:
        """Append messages immutably, preserving their order."""
        return self.model_copy(update={"messages": (*self.messages, *messages)})

    def advance(self) -> ConversationState:
        """Count one completed model → tool cycle."""
        return self.model_copy(update={"step": self.step + 1})

    def transition(self, state: LoopState) -> ConversationState:
        """Move to ``state``, recording it in the transition history."""
        return self.model_copy(update={"state": state, "transitions": (*self.transitions, state)})

    def to_logfire_attributes(self) -> LogfireAttributes:
        return LogfireAttributes(
            {
                "conversation.id": str(self.id.root),
                "conversation.step": self.step,
                "conversation.state": self.state.value,
                "conversation.messages": len(self.messages),
                "conversation.transitions": [state.value for state in self.transitions],
                "conversation.used_tokens": self.used_tokens,
            }
        )


__all__ = [
    "ConversationId",
    "ConversationState",
    "LogfireAttributes",
    "response_text",
    "response_tool_calls",
]
