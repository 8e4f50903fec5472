"""Agent Configuration - Instructions, Model Capability and Tools.

An Agent is an immutable configuration bundle. One instance is shared
read-only by every route that binds it and every concurrent loop run; all
per-run state lives in ``ConversationState``.

Tool Registration:
    Tools pair a Pydantic argument model (the schema model-issued calls are
    validated against) with a ToolExecutor:

    >>> class Lookup(BaseModel):
    ...     invoice_id: str
    >>> async def lookup(args: Lookup) -> str:
    ...     return f"Invoice {args.invoice_id} is paid"
    >>> tool = Tool.from_function(lookup, args_model=Lookup)
    >>> agent = Agent(name="billing", instructions="...", model=model, tools=(tool,))
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_ai.tools import ToolDefinition

from ..config import Settings
from .capabilities import LanguageModel, ToolExecutor, ToolFault, ToolOutcome, ToolReturn

ToolFunction = Callable[[Any], Awaitable[Any]]


class FunctionToolExecutor:
    """ToolExecutor backed by an async function taking the validated arguments.

    Exceptions raised by the function are ordinary tool errors: they become
    recoverable ToolFaults the model can see and react to. To stop the loop,
    the function returns ``ToolFault(recoverable=False)`` explicitly.
    """

    def __init__(self, func: ToolFunction):
        self.func = func

    async def execute(self, tool_name: str, arguments: BaseModel) -> ToolOutcome:
        try:
            result = await self.func(arguments)
        except Exception as e:
            return ToolFault(message=f"{type(e).__name__}: {e}")

        if isinstance(result, (ToolReturn, ToolFault)):
            return result
        return ToolReturn(content=result)


class Tool(BaseModel):
    """Model-callable tool.

    Attributes:
        name: Unique within an Agent's tool set
        description: Shown to the model (falls back to the executor's docstring)
        args_model: Pydantic model model-issued arguments must validate against
        executor: Capability that actually runs the call
    """

    name: str = Field(min_length=1, max_length=64, pattern=r"^[a-zA-Z0-9_-]+$")
    description: str | None = None
    args_model: type[BaseModel]
    executor: ToolExecutor

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @classmethod
    def from_function(
        cls,
        func: ToolFunction,
        *,
        args_model: type[BaseModel],
        name: str | None = None,
        description: str | None = None,
    ) -> Tool:
        """Factory: wrap an async function in a FunctionToolExecutor."""
        return cls(
            name=name or func.__name__,
            description=description or inspect.getdoc(func),
            args_model=args_model,
            executor=FunctionToolExecutor(func),
        )

    @property
    def definition(self) -> ToolDefinition:
        """Pydantic AI tool definition advertised to the LanguageModel."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters_json_schema=self.args_model.model_json_schema(),
        )

    def validate_arguments(self, arguments: str | dict[str, Any] | None) -> BaseModel:
        """Validate model-issued arguments (a JSON string or an already decoded dict).

        Raises:
            ValidationError: Arguments do not match ``args_model``
        """
        if isinstance(arguments, str):
            return self.args_model.model_validate_json(arguments or "{}")
        return self.args_model.model_validate(arguments or {})


class Agent(BaseModel):
    """Immutable agent configuration.

    Attributes:
        name: Identifier used in logs and dispatch results
        instructions: System prompt sent at the start of each run
        model: LanguageModel capability
        tools: Tools the model may invoke (names unique)
        max_steps: Model → tool cycles allowed before the run is exhausted
        step_timeout: Seconds bounding each model call and each tool phase
        parallel_tool_calls: Run independent tool calls of one step concurrently
    """

    name: str = Field(min_length=1)
    instructions: str | None = None
    model: LanguageModel
    tools: tuple[Tool, ...] = ()
    max_steps: int = Field(default=10, ge=1)
    step_timeout: float | None = Field(default=None, gt=0)
    parallel_tool_calls: bool = False

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @field_validator("tools")
    @classmethod
    def require_unique_tool_names(cls, v: tuple[Tool, ...]) -> tuple[Tool, ...]:
        names = [tool.name for tool in v]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate tool names: {duplicates}")
        return v

    @classmethod
    def from_settings(cls, settings: Settings, **fields: Any) -> Agent:
        """Factory: step budget and timeout from AGENT_MAX_STEPS / AGENT_STEP_TIMEOUT."""
        return cls(
            **{"max_steps": settings.agent_max_steps, "step_timeout": settings.agent_step_timeout, **fields}
        )

    @property
    def tool_definitions(self) -> tuple[ToolDefinition, ...]:
        return tuple(tool.definition for tool in self.tools)

    def find_tool(self, name: str) -> Tool | None:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None


__all__ = ["Agent", "FunctionToolExecutor", "Tool", "ToolFunction"]
