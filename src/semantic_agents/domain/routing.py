"""Semantic Router - Embedding-Similarity Route Selection.

Maps a free-text query to exactly one registered Route (and its bound Agent),
or reports that no route is confident enough.

Routing Flow:
    1. EmbeddingStore.search(query, top_k) → scored route ids
    2. Drop ids that are not registered routes
    3. Rank by score, ties broken by registration order (first registered wins)
    4. Winner = highest-ranked candidate whose score clears its threshold
       (route override, else the call's threshold, else the router default)
    5. RouteMatch(winner, candidates) or NoConfidentMatch(best_score, candidates)

The router never runs agents and never mutates them; it is a lookup and
ranking layer. Execution is left to the caller (see ``service.dispatch``).

Concurrency:
    ``route()`` reads a snapshot of the registry and needs no locking.
    ``register()`` awaits the store, so registrations are serialized with an
    asyncio.Lock and the registry only changes once the store accepted the
    description.
"""

from __future__ import annotations

import asyncio
from typing import Literal

import logfire
from pydantic import BaseModel, ConfigDict, Field

from ..config import Settings
from .agent import Agent
from .capabilities import EmbeddingStore
from .domain_type import RoutingStatus
from .domain_value import LogfireAttributes
from .errors import DuplicateRouteNameError, InvalidRoutingParametersError

DEFAULT_THRESHOLD = 0.8
DEFAULT_TOP_K = 1


class Route(BaseModel):
    """Named binding from a topic description to an Agent.

    Attributes:
        name: Unique registry key
        description: Text indexed in the EmbeddingStore and compared to queries
        agent: Agent that handles queries routed here (shared, read-only)
        threshold: Optional per-route override of the router threshold
    """

    name: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    agent: Agent
    threshold: float | None = Field(default=None, ge=0.0, le=1.0)

    model_config = ConfigDict(frozen=True)


class RouteCandidate(BaseModel):
    """A registered route scored against one query."""

    route: Route
    score: float
    threshold: float

    model_config = ConfigDict(frozen=True)

    @property
    def name(self) -> str:
        return self.route.name

    @property
    def is_confident(self) -> bool:
        return self.score >= self.threshold


class RouteMatch(BaseModel):
    """A route cleared its threshold.

    Attributes:
        route: Selected route
        score: Similarity of the query to the selected route
        candidates: Ranked candidates at or above the candidate floor (winner included)
    """

    status: Literal[RoutingStatus.MATCHED] = RoutingStatus.MATCHED
    route: Route
    score: float
    candidates: tuple[RouteCandidate, ...] = ()

    model_config = ConfigDict(frozen=True)

    @property
    def agent(self) -> Agent:
        return self.route.agent

    def to_logfire_attributes(self) -> LogfireAttributes:
        return LogfireAttributes(
            {
                "routing.status": self.status.value,
                "routing.route": self.route.name,
                "routing.score": self.score,
                "routing.candidates": [c.name for c in self.candidates],
            }
        )


class NoConfidentMatch(BaseModel):
    """No candidate cleared its threshold. A valid result, not an error.

    Callers decide whether to fall back to a default agent or ask the user to
    clarify. ``best_score`` is None when the store returned no registered route.
    """

    status: Literal[RoutingStatus.NO_CONFIDENT_MATCH] = RoutingStatus.NO_CONFIDENT_MATCH
    best_score: float | None = None
    candidates: tuple[RouteCandidate, ...] = ()

    model_config = ConfigDict(frozen=True)

    def to_logfire_attributes(self) -> LogfireAttributes:
        return LogfireAttributes(
            {
                "routing.status": self.status.value,
                "routing.best_score": self.best_score,
                "routing.candidates": [c.name for c in self.candidates],
            }
        )


RoutingOutcome = RouteMatch | NoConfidentMatch


def _check_threshold(threshold: float, label: str) -> None:
    if not 0.0 <= threshold <= 1.0:
        raise InvalidRoutingParametersError(f"{label} must be within [0, 1], got {threshold}")


class SemanticRouter:
    """Registry of Routes plus embedding-similarity selection.

    Always constructed explicitly and passed around by the caller; there is no
    process-global router.

    Example:
        >>> router = SemanticRouter(store, threshold=0.75)
        >>> await router.register(Route(name="billing", description="Invoices, payments", agent=billing))
        >>> outcome = await router.route("Why was I charged twice?")
        >>> if isinstance(outcome, RouteMatch):
        ...     await AutonomousAgent(outcome.agent).run("Why was I charged twice?")
    """

    def __init__(
        self,
        store: EmbeddingStore,
        *,
        threshold: float = DEFAULT_THRESHOLD,
        top_k: int = DEFAULT_TOP_K,
        candidate_floor: float = 0.0,
    ):
        _check_threshold(threshold, "threshold")
        _check_threshold(candidate_floor, "candidate_floor")
        if top_k < 1:
            raise InvalidRoutingParametersError(f"top_k must be >= 1, got {top_k}")
        self.store = store
        self.threshold = threshold
        self.top_k = top_k
        self.candidate_floor = candidate_floor
        self._routes: dict[str, Route] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, store: EmbeddingStore, settings: Settings) -> SemanticRouter:
        return cls(
            store,
            threshold=settings.router_threshold,
            top_k=settings.router_top_k,
            candidate_floor=settings.router_candidate_floor,
        )

    # -------------------------------------------------------------------------
    # Registry
    # -------------------------------------------------------------------------

    @property
    def routes(self) -> tuple[Route, ...]:
        """Registered routes in registration order."""
        return tuple(self._routes.values())

    def get(self, name: str) -> Route | None:
        return self._routes.get(name)

    def __len__(self) -> int:
        return len(self._routes)

    def __contains__(self, name: object) -> bool:
        return name in self._routes

    async def register(self, route: Route, *, replace: bool = False) -> None:
        """Add a route and index its description.

        Args:
            route: Route to add
            replace: Re-register an existing name in place (keeps its position)

        Raises:
            DuplicateRouteNameError: Name already registered and replace is False.
                The registry is unchanged.
        """
        async with self._lock:
            if route.name in self._routes and not replace:
                raise DuplicateRouteNameError(route.name)

            await self.store.add(route.name, route.description)
            # dict assignment keeps the original insertion position on replace
            self._routes[route.name] = route

        logfire.info("Registered route {route}", route=route.name, agent=route.agent.name, replaced=replace)

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    async def route(
        self,
        query: str,
        top_k: int | None = None,
        threshold: float | None = None,
    ) -> RoutingOutcome:
        """Select the route for ``query``.

        Args:
            query: Free-text user query
            top_k: Candidates to retrieve from the store (default: router top_k)
            threshold: Global threshold for this call (default: router threshold).
                Route-level overrides take precedence.

        Returns:
            RouteMatch for the highest-ranked confident candidate, otherwise
            NoConfidentMatch carrying the best score seen.

        Raises:
            InvalidRoutingParametersError: top_k < 1 or threshold outside [0, 1]
        """
        top_k = self.top_k if top_k is None else top_k
        threshold = self.threshold if threshold is None else threshold
        if top_k < 1:
            raise InvalidRoutingParametersError(f"top_k must be >= 1, got {top_k}")
        _check_threshold(threshold, "threshold")

        with logfire.span("route query", top_k=top_k, threshold=threshold) as span:
            registry = dict(self._routes)
            order = {name: index for index, name in enumerate(registry)}

            best = await self._registered_hits(query, top_k, registry)

            ranked = sorted(best.items(), key=lambda item: (-item[1], order[item[0]]))[:top_k]
            candidates = tuple(
                RouteCandidate(
                    route=registry[name],
                    score=score,
                    threshold=threshold if registry[name].threshold is None else registry[name].threshold,
                )
                for name, score in ranked
            )

            winner = next((c for c in candidates if c.is_confident), None)
            visible = tuple(c for c in candidates if c.score >= self.candidate_floor)

            outcome: RoutingOutcome
            if winner is None:
                outcome = NoConfidentMatch(
                    best_score=candidates[0].score if candidates else None,
                    candidates=visible,
                )
                logfire.info("No confident route", best_score=outcome.best_score)
            else:
                outcome = RouteMatch(route=winner.route, score=winner.score, candidates=visible)
                logfire.info("Routed to {route}", route=winner.name, score=winner.score)

            for key, value in outcome.to_logfire_attributes().root.items():
                if value is not None:
                    span.set_attribute(key, value)

        return outcome

    async def _registered_hits(self, query: str, top_k: int, registry: dict[str, Route]) -> dict[str, float]:
        """Best score per registered route among the store's nearest items.

        Stale or foreign items in a shared store can crowd registered routes out
        of the first ``top_k`` hits, so the search widens until ``top_k``
        registered routes are found, every route is found, or the store runs out.
        """
        wanted = min(top_k, len(registry))
        k = top_k
        while True:
            hits = await self.store.search(query, k)
            best: dict[str, float] = {}
            for hit in hits:
                if hit.item_id in registry and hit.score > best.get(hit.item_id, float("-inf")):
                    best[hit.item_id] = hit.score
            if len(best) >= wanted or len(hits) < k:
                return best
            k *= 2


__all__ = [
    "DEFAULT_THRESHOLD",
    "DEFAULT_TOP_K",
    "NoConfidentMatch",
    "Route",
    "RouteCandidate",
    "RouteMatch",
    "RoutingOutcome",
    "SemanticRouter",
]
