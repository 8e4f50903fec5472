"""
Tests for the SemanticRouter.

These tests demonstrate:
- Selection policy (threshold, route overrides, tie-break by registration order)
- Determinism and threshold monotonicity
- Registry invariants (duplicate names leave the registry unchanged)
- Fail-fast parameter validation
"""

import pytest
from pydantic import ValidationError

from semantic_agents.config import Settings
from semantic_agents.domain.agent import Agent
from semantic_agents.domain.domain_type import RoutingStatus
from semantic_agents.domain.errors import DuplicateRouteNameError, InvalidRoutingParametersError
from semantic_agents.domain.routing import NoConfidentMatch, Route, RouteMatch, SemanticRouter
from tests.fakes import ScriptedEmbeddingStore

QUERY = "I was charged twice this month"


async def build_router(
    scores: dict[str, float],
    *routes: Route,
    threshold: float = 0.75,
    **kwargs,
) -> tuple[SemanticRouter, ScriptedEmbeddingStore]:
    store = ScriptedEmbeddingStore({QUERY: scores})
    router = SemanticRouter(store, threshold=threshold, top_k=kwargs.pop("top_k", 5), **kwargs)
    for route in routes:
        await router.register(route)
    return router, store


@pytest.fixture
def billing_route(billing_agent: Agent) -> Route:
    return Route(name="billing", description="Invoices, charges and refunds", agent=billing_agent, threshold=0.75)


@pytest.fixture
def support_route(support_agent: Agent) -> Route:
    return Route(name="support", description="Product issues and troubleshooting", agent=support_agent, threshold=0.75)


# =============================================================================
# Selection
# =============================================================================


@pytest.mark.asyncio
async def test_confident_route_is_selected(billing_route: Route, support_route: Route):
    """Scenario: 0.9 to billing, 0.4 to support → billing."""
    router, _ = await build_router({"billing": 0.9, "support": 0.4}, billing_route, support_route)

    outcome = await router.route(QUERY)

    assert isinstance(outcome, RouteMatch)
    assert outcome.status == RoutingStatus.MATCHED
    assert outcome.route.name == "billing"
    assert outcome.score == 0.9
    assert outcome.agent.name == "billing"
    assert [c.name for c in outcome.candidates] == ["billing", "support"]


@pytest.mark.asyncio
async def test_no_confident_match_reports_best_score(billing_route: Route, support_route: Route):
    """Scenario: 0.5 / 0.4 both below 0.75 → NoConfidentMatch(best_score=0.5)."""
    router, _ = await build_router({"billing": 0.5, "support": 0.4}, billing_route, support_route)

    outcome = await router.route(QUERY)

    assert isinstance(outcome, NoConfidentMatch)
    assert outcome.best_score == 0.5
    assert [c.name for c in outcome.candidates] == ["billing", "support"]


@pytest.mark.asyncio
async def test_empty_search_is_no_confident_match_without_score(billing_route: Route):
    router, _ = await build_router({}, billing_route)

    outcome = await router.route(QUERY)

    assert isinstance(outcome, NoConfidentMatch)
    assert outcome.best_score is None
    assert outcome.candidates == ()


@pytest.mark.asyncio
async def test_route_threshold_override_takes_precedence(billing_agent: Agent, support_agent: Agent):
    """A lenient route override wins even though the global threshold rejects it."""
    strict = Route(name="billing", description="billing", agent=billing_agent)
    lenient = Route(name="support", description="support", agent=support_agent, threshold=0.3)
    router, _ = await build_router({"billing": 0.6, "support": 0.4}, strict, lenient, threshold=0.75)

    outcome = await router.route(QUERY)

    assert isinstance(outcome, RouteMatch)
    assert outcome.route.name == "support"
    assert outcome.candidates[0].name == "billing"
    assert not outcome.candidates[0].is_confident


@pytest.mark.asyncio
async def test_call_threshold_overrides_router_default(billing_agent: Agent):
    route = Route(name="billing", description="billing", agent=billing_agent)
    router, _ = await build_router({"billing": 0.6}, route, threshold=0.75)

    assert isinstance(await router.route(QUERY), NoConfidentMatch)
    assert isinstance(await router.route(QUERY, threshold=0.5), RouteMatch)


@pytest.mark.asyncio
async def test_unregistered_hits_are_ignored(billing_route: Route):
    """Shared stores may hold other items; only registered routes are candidates."""
    router, _ = await build_router({"stray-document": 0.99, "billing": 0.8}, billing_route)

    outcome = await router.route(QUERY)

    assert isinstance(outcome, RouteMatch)
    assert outcome.route.name == "billing"
    assert [c.name for c in outcome.candidates] == ["billing"]


@pytest.mark.asyncio
async def test_stale_entries_do_not_hide_registered_routes(billing_route: Route):
    """
    Demonstrates: A long-lived store holding stale items still routes correctly.

    With top_k=1 the three stale items outrank the only registered route, so
    the search widens until the route is reached.
    """
    scores = {"stale-a": 0.99, "stale-b": 0.97, "stale-c": 0.95, "billing": 0.8}
    router, store = await build_router(scores, billing_route, top_k=1)

    outcome = await router.route(QUERY)

    assert isinstance(outcome, RouteMatch)
    assert outcome.route.name == "billing"
    assert [c.name for c in outcome.candidates] == ["billing"]
    assert store.searches == [1, 2, 4]


@pytest.mark.asyncio
async def test_widening_stops_when_store_runs_out(billing_route: Route, support_route: Route):
    router, store = await build_router({"stale": 0.9}, billing_route, support_route, top_k=1)

    outcome = await router.route(QUERY)

    assert isinstance(outcome, NoConfidentMatch)
    assert outcome.best_score is None
    assert store.searches == [1, 2]


@pytest.mark.asyncio
async def test_top_k_limits_candidates(billing_route: Route, support_route: Route):
    router, _ = await build_router({"billing": 0.9, "support": 0.8}, billing_route, support_route)

    outcome = await router.route(QUERY, top_k=1)

    assert [c.name for c in outcome.candidates] == ["billing"]


@pytest.mark.asyncio
async def test_candidate_floor_trims_diagnostics(billing_route: Route, support_route: Route):
    router, _ = await build_router(
        {"billing": 0.9, "support": 0.1}, billing_route, support_route, candidate_floor=0.2
    )

    outcome = await router.route(QUERY)

    assert isinstance(outcome, RouteMatch)
    assert [c.name for c in outcome.candidates] == ["billing"]


# =============================================================================
# Determinism
# =============================================================================


@pytest.mark.asyncio
async def test_tie_goes_to_first_registered(billing_agent: Agent, support_agent: Agent):
    first = Route(name="first", description="a", agent=billing_agent)
    second = Route(name="second", description="b", agent=support_agent)
    # store lists "second" first; registration order must still decide
    router, _ = await build_router({"second": 0.9, "first": 0.9}, first, second)

    winners = {(await router.route(QUERY)).route.name for _ in range(5)}

    assert winners == {"first"}


@pytest.mark.asyncio
async def test_routing_is_deterministic(billing_route: Route, support_route: Route):
    router, _ = await build_router({"billing": 0.9, "support": 0.4}, billing_route, support_route)

    assert await router.route(QUERY) == await router.route(QUERY)


@pytest.mark.asyncio
@pytest.mark.parametrize("scores", [{"billing": 0.9, "support": 0.4}, {"billing": 0.5, "support": 0.45}])
async def test_raising_threshold_never_adds_a_match(scores: dict[str, float], billing_agent: Agent, support_agent: Agent):
    billing = Route(name="billing", description="billing", agent=billing_agent)
    support = Route(name="support", description="support", agent=support_agent)
    router, _ = await build_router(scores, billing, support)

    thresholds = [0.0, 0.3, 0.45, 0.5, 0.75, 0.9, 0.95, 1.0]
    matched = [isinstance(await router.route(QUERY, threshold=t), RouteMatch) for t in thresholds]

    # once a threshold yields no match, every higher one does too
    first_miss = matched.index(False) if False in matched else len(matched)
    assert all(not m for m in matched[first_miss:])


# =============================================================================
# Registry
# =============================================================================


@pytest.mark.asyncio
async def test_register_indexes_description(billing_route: Route):
    router, store = await build_router({}, billing_route)

    assert store.added == [("billing", "Invoices, charges and refunds")]
    assert "billing" in router
    assert len(router) == 1
    assert router.get("billing") is billing_route


@pytest.mark.asyncio
async def test_duplicate_name_fails_and_leaves_registry_unchanged(billing_route: Route, support_agent: Agent):
    router, store = await build_router({}, billing_route)
    impostor = Route(name="billing", description="something else", agent=support_agent)

    with pytest.raises(DuplicateRouteNameError, match="billing"):
        await router.register(impostor)

    assert router.routes == (billing_route,)
    assert len(store.added) == 1


@pytest.mark.asyncio
async def test_replace_keeps_registration_position(billing_route: Route, support_route: Route, support_agent: Agent):
    router, _ = await build_router({}, billing_route, support_route)
    updated = Route(name="billing", description="Payments", agent=support_agent)

    await router.register(updated, replace=True)

    assert [r.name for r in router.routes] == ["billing", "support"]
    assert router.get("billing") is updated


@pytest.mark.asyncio
async def test_store_failure_leaves_registry_unchanged(billing_route: Route):
    router = SemanticRouter(ScriptedEmbeddingStore(fail_on_add=True))

    with pytest.raises(ConnectionError):
        await router.register(billing_route)

    assert len(router) == 0


# =============================================================================
# Parameters
# =============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize(("top_k", "threshold"), [(0, 0.5), (-1, 0.5), (1, -0.1), (1, 1.5)])
async def test_invalid_parameters_fail_fast(top_k: int, threshold: float, billing_route: Route):
    router, _ = await build_router({"billing": 0.9}, billing_route)

    with pytest.raises(InvalidRoutingParametersError):
        await router.route(QUERY, top_k=top_k, threshold=threshold)


def test_invalid_router_defaults_rejected():
    with pytest.raises(InvalidRoutingParametersError):
        SemanticRouter(ScriptedEmbeddingStore(), threshold=2.0)
    with pytest.raises(InvalidRoutingParametersError):
        SemanticRouter(ScriptedEmbeddingStore(), top_k=0)


def test_route_threshold_override_must_be_cosine_range(billing_agent: Agent):
    with pytest.raises(ValidationError):
        Route(name="billing", description="billing", agent=billing_agent, threshold=1.2)


def test_from_settings_uses_configured_defaults():
    settings = Settings(ROUTER_THRESHOLD=0.6, ROUTER_TOP_K=4)

    router = SemanticRouter.from_settings(ScriptedEmbeddingStore(), settings)

    assert router.threshold == 0.6
    assert router.top_k == 4
