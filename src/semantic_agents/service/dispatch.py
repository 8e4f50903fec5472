"""Thin orchestration service - route a query, then run the selected agent.

This is the "autonomous mode" of the router: one call resolves the query to a
route and drives the route's agent through the autonomous loop. Routing and
execution stay independently usable; this service only sequences them.
"""

from __future__ import annotations

import asyncio

import logfire
from pydantic import BaseModel, ConfigDict

from ..domain.agent import Agent
from ..domain.autonomous import AutonomousAgent, ExitCondition, LoopOutcome
from ..domain.prompt_template import PromptTemplate
from ..domain.routing import NoConfidentMatch, RouteMatch, RoutingOutcome, SemanticRouter


class Dispatch(BaseModel):
    """Routing decision plus the loop outcome of the agent that ran.

    Attributes:
        routing: RouteMatch or NoConfidentMatch
        agent: Name of the agent that ran (route agent or fallback), if any
        outcome: Loop outcome, None when nothing ran
    """

    routing: RoutingOutcome
    agent: str | None = None
    outcome: LoopOutcome | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def used_fallback(self) -> bool:
        return isinstance(self.routing, NoConfidentMatch) and self.outcome is not None


class RoutedAgentService:
    """
    Pure orchestrator - zero routing or loop logic of its own.

    Service responsibilities:
    1. Ask the SemanticRouter for a route
    2. Pick the route's agent, or the fallback agent on NoConfidentMatch
    3. Run that agent through AutonomousAgent
    """

    def __init__(
        self,
        router: SemanticRouter,
        *,
        fallback: Agent | None = None,
        exit_condition: ExitCondition | None = None,
        step_delay: float = 0.0,
    ):
        self.router = router
        self.fallback = fallback
        self.exit_condition = exit_condition
        self.step_delay = step_delay

    async def handle(
        self,
        query: str,
        *,
        prompt: str | PromptTemplate | None = None,
        top_k: int | None = None,
        threshold: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> Dispatch:
        """
        Route ``query`` and run the chosen agent.

        Args:
            query: Text used for routing (and as the prompt unless ``prompt`` is given)
            prompt: Optional prompt for the agent run
            top_k: Routing candidates to retrieve (router default if None)
            threshold: Routing threshold for this call (router default if None)
            cancel: Cancellation signal forwarded to the loop

        Raises:
            InvalidRoutingParametersError: From the router, before any agent runs
        """
        routing = await self.router.route(query, top_k=top_k, threshold=threshold)

        if isinstance(routing, RouteMatch):
            agent = routing.agent
        elif self.fallback is not None:
            logfire.info("No confident route, using fallback agent {agent}", agent=self.fallback.name)
            agent = self.fallback
        else:
            return Dispatch(routing=routing)

        loop = AutonomousAgent(agent, exit_condition=self.exit_condition, step_delay=self.step_delay)
        outcome = await loop.run(query if prompt is None else prompt, cancel=cancel)
        return Dispatch(routing=routing, agent=agent.name, outcome=outcome)


__all__ = ["Dispatch", "RoutedAgentService"]
