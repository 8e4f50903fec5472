"""Error taxonomy for routing and the autonomous agent loop.

Router errors are raised to the caller. Agent loop errors are caught by the
loop and surfaced as ``Failed`` outcomes, so they only escape when helpers
are used directly.
"""

from __future__ import annotations

from .domain_type import FailureReason


class SemanticAgentsError(Exception):
    """Base class for every error raised by this package."""


# =============================================================================
# ROUTING
# =============================================================================


class RoutingError(SemanticAgentsError):
    """Configuration or parameter error in the semantic router."""


class DuplicateRouteNameError(RoutingError):
    """A route with the same name is already registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Route '{name}' is already registered")


class InvalidRoutingParametersError(RoutingError, ValueError):
    """top_k or threshold outside the accepted range."""


# =============================================================================
# AGENT LOOP
# =============================================================================


class AgentLoopError(SemanticAgentsError):
    """Fatal condition that terminates an agent loop run."""

    reason: FailureReason

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ModelInvocationError(AgentLoopError):
    """LanguageModel call failed or returned a malformed response."""

    reason = FailureReason.MODEL_INVOCATION


class UnknownToolError(AgentLoopError):
    """The model requested a tool the agent does not have."""

    reason = FailureReason.UNKNOWN_TOOL

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Unknown tool '{tool_name}'")


class InvalidToolArgumentsError(AgentLoopError):
    """Model-issued arguments do not match the tool's argument schema."""

    reason = FailureReason.INVALID_TOOL_ARGUMENTS

    def __init__(self, tool_name: str, detail: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Invalid arguments for tool '{tool_name}': {detail}")


class ToolExecutionError(AgentLoopError):
    """The tool executor signalled a non-recoverable condition."""

    reason = FailureReason.TOOL_EXECUTION

    def __init__(self, tool_name: str, detail: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Tool executor for '{tool_name}' failed: {detail}")


class StepTimeoutError(AgentLoopError):
    """A model or tool phase exceeded the per-step timeout."""

    reason = FailureReason.STEP_TIMEOUT


class ExitConditionError(AgentLoopError):
    """The caller-supplied exit condition raised."""

    reason = FailureReason.EXIT_CONDITION


class CancellationRequested(SemanticAgentsError):
    """Raised internally when the external cancellation signal fires."""


# =============================================================================
# PROMPT TEMPLATES
# =============================================================================


class PromptTemplateError(SemanticAgentsError):
    """Template could not be loaded or rendered."""


__all__ = [
    "AgentLoopError",
    "CancellationRequested",
    "DuplicateRouteNameError",
    "ExitConditionError",
    "InvalidRoutingParametersError",
    "InvalidToolArgumentsError",
    "ModelInvocationError",
    "PromptTemplateError",
    "RoutingError",
    "SemanticAgentsError",
    "StepTimeoutError",
    "ToolExecutionError",
    "UnknownToolError",
]
