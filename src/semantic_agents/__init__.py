"""Semantic Agents

Semantic routing of queries to agents, and an autonomous agent loop that lets
an agent take multiple model / tool steps toward a goal, built on Pydantic AI.
"""

from .config import Settings, get_settings
from .domain import Agent, AutonomousAgent, PromptTemplate, Route, SemanticRouter, Tool
from .observability import configure_observability
from .service import RoutedAgentService

__all__ = [
    "Agent",
    "AutonomousAgent",
    "PromptTemplate",
    "Route",
    "RoutedAgentService",
    "SemanticRouter",
    "Settings",
    "Tool",
    "configure_observability",
    "get_settings",
]
