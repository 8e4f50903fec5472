"""Capability Contracts - External Collaborators of the Core.

The router and the agent loop depend only on these interfaces, never on a
concrete provider. Concrete variants live in ``semantic_agents.service``;
tests substitute fakes.

Capabilities:
    EmbeddingStore: Top-k similarity search over indexed texts (router)
    LanguageModel: Next message for a conversation state (agent loop)
    ToolExecutor: Runs one tool call and reports a result or an error (agent loop)
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from .domain_type import ToolStatus

if TYPE_CHECKING:
    from pydantic_ai.messages import ModelResponse
    from pydantic_ai.tools import ToolDefinition

    from .domain_value import ConversationState


class SearchHit(BaseModel):
    """One EmbeddingStore result.

    Scores must be comparable across calls (same metric and scale) for
    threshold logic to be meaningful; stores in this package use cosine
    similarity.
    """

    item_id: str
    score: float

    model_config = ConfigDict(frozen=True)


class ToolReturn(BaseModel):
    """Successful tool execution. ``content`` is shown to the model as-is."""

    status: Literal[ToolStatus.SUCCESS] = ToolStatus.SUCCESS
    content: Any = None

    model_config = ConfigDict(frozen=True)


class ToolFault(BaseModel):
    """Failed tool execution.

    Recoverable faults become visible tool-result turns so the model can
    replan. A non-recoverable fault means the executor itself is unusable and
    terminates the loop with ``ToolExecutionError``.
    """

    status: Literal[ToolStatus.ERROR] = ToolStatus.ERROR
    message: str = Field(min_length=1)
    recoverable: bool = True

    model_config = ConfigDict(frozen=True)


ToolOutcome = ToolReturn | ToolFault


@runtime_checkable
class EmbeddingStore(Protocol):
    """Similarity index over short texts keyed by item id."""

    async def add(self, item_id: str, text: str) -> None:
        """Index ``text`` under ``item_id``, replacing any previous entry."""
        ...

    async def search(self, query: str, k: int) -> Sequence[SearchHit]:
        """Return at most ``k`` hits ordered by descending score."""
        ...


@runtime_checkable
class LanguageModel(Protocol):
    """Produces the model's next message for a conversation.

    A response without ``ToolCallPart``s is a final answer; otherwise each tool
    call part is a request to invoke a tool. Provider failures may be raised as
    any exception; the loop reports them as ``ModelInvocationError``.
    """

    async def complete(self, state: ConversationState, tools: Sequence[ToolDefinition]) -> ModelResponse: ...


@runtime_checkable
class ToolExecutor(Protocol):
    """Executes validated tool calls.

    An exception escaping ``execute`` is treated like a non-recoverable fault.
    """

    async def execute(self, tool_name: str, arguments: BaseModel) -> ToolOutcome: ...


__all__ = [
    "EmbeddingStore",
    "LanguageModel",
    "SearchHit",
    "ToolExecutor",
    "ToolFault",
    "ToolOutcome",
    "ToolReturn",
]
