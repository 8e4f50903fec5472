"""Domain Layer - Semantic Routing and the Autonomous Agent Loop.

Key Components:
    - SemanticRouter: Registry of Routes + embedding-similarity selection
    - AutonomousAgent: Bounded model → tool → state-update state machine
    - Agent / Tool: Immutable configuration shared by routes and runs
    - ConversationState: Per-run, append-only history on Pydantic AI messages
    - Capabilities: EmbeddingStore, LanguageModel, ToolExecutor protocols

Design Principles:
    - Pydantic AI Native: Conversation turns are Pydantic AI messages
    - Immutable by Default: Domain models use frozen=True, updates are functional
    - Explicit Dependencies: Routers and capabilities are passed in, never global
    - Tagged Outcomes: Routing and loop results are discriminated unions
"""

from .agent import Agent, FunctionToolExecutor, Tool
from .autonomous import AutonomousAgent, Cancelled, Exhausted, Failed, FinalAnswer, LoopOutcome
from .capabilities import EmbeddingStore, LanguageModel, SearchHit, ToolExecutor, ToolFault, ToolOutcome, ToolReturn
from .domain_type import FailureReason, LoopState, RoutingStatus, ToolStatus
from .domain_value import ConversationId, ConversationState, LogfireAttributes
from .errors import (
    AgentLoopError,
    DuplicateRouteNameError,
    InvalidRoutingParametersError,
    InvalidToolArgumentsError,
    ModelInvocationError,
    PromptTemplateError,
    RoutingError,
    SemanticAgentsError,
    StepTimeoutError,
    ToolExecutionError,
    UnknownToolError,
)
from .prompt_template import PromptTemplate
from .routing import NoConfidentMatch, Route, RouteCandidate, RouteMatch, RoutingOutcome, SemanticRouter

__all__ = [
    "Agent",
    "AgentLoopError",
    "AutonomousAgent",
    "Cancelled",
    "ConversationId",
    "ConversationState",
    "DuplicateRouteNameError",
    "EmbeddingStore",
    "Exhausted",
    "Failed",
    "FailureReason",
    "FinalAnswer",
    "FunctionToolExecutor",
    "InvalidRoutingParametersError",
    "InvalidToolArgumentsError",
    "LanguageModel",
    "LogfireAttributes",
    "LoopOutcome",
    "LoopState",
    "ModelInvocationError",
    "NoConfidentMatch",
    "PromptTemplate",
    "PromptTemplateError",
    "Route",
    "RouteCandidate",
    "RouteMatch",
    "RoutingError",
    "RoutingOutcome",
    "RoutingStatus",
    "SearchHit",
    "SemanticAgentsError",
    "SemanticRouter",
    "StepTimeoutError",
    "Tool",
    "ToolExecutionError",
    "ToolExecutor",
    "ToolFault",
    "ToolOutcome",
    "ToolReturn",
    "ToolStatus",
    "UnknownToolError",
]
