"""Domain Type System - Core Enumerations.

Defines type-safe constants using Python's StrEnum for routing and agent loop
concepts. StrEnum values serialize cleanly into Logfire attributes and JSON.
"""

from enum import StrEnum


class RoutingStatus(StrEnum):
    """Outcome of a routing query.

    States:
        MATCHED: A registered route cleared its threshold
        NO_CONFIDENT_MATCH: Every candidate scored below its threshold
    """

    MATCHED = "matched"
    NO_CONFIDENT_MATCH = "no_confident_match"


class LoopState(StrEnum):
    """Agent Loop State Machine.

    Flow:
        AWAITING_MODEL → MODEL_RESPONDED → PRODUCING_FINAL_ANSWER
                                         → INVOKING_TOOLS → AWAITING_MODEL

    Any state may move to FAILED, EXHAUSTED or CANCELLED.
    """

    AWAITING_MODEL = "awaiting_model"
    MODEL_RESPONDED = "model_responded"
    INVOKING_TOOLS = "invoking_tools"
    PRODUCING_FINAL_ANSWER = "producing_final_answer"
    FAILED = "failed"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {
        LoopState.PRODUCING_FINAL_ANSWER,
        LoopState.FAILED,
        LoopState.EXHAUSTED,
        LoopState.CANCELLED,
    }
)


class ToolStatus(StrEnum):
    """Outcome of a single tool execution."""

    SUCCESS = "success"
    ERROR = "error"


class FailureReason(StrEnum):
    """Classification of fatal agent loop failures.

    Lets Logfire group failed runs by cause.
    """

    MODEL_INVOCATION = "model_invocation"
    UNKNOWN_TOOL = "unknown_tool"
    INVALID_TOOL_ARGUMENTS = "invalid_tool_arguments"
    TOOL_EXECUTION = "tool_execution"
    STEP_TIMEOUT = "step_timeout"
    EXIT_CONDITION = "exit_condition"


__all__ = [
    "FailureReason",
    "LoopState",
    "RoutingStatus",
    "TERMINAL_STATES",
    "ToolStatus",
]
