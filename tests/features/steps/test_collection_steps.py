"""Behavioural coverage for per-metric failure isolation within a tier."""

from __future__ import annotations

import dataclasses as dc
import itertools
import typing as typ

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from tidemark.collection import MetricDispatcher, MetricStore, TierCollection
from tidemark.errors import MalformedInputFailure
from tests.features.steps._scheduling_context import SimulatedRun, simulated_run

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from tidemark.collection import CollectionContext


@dc.dataclass(slots=True)
class _CountingStrategy:
    """Strategy returning successive integers."""

    counter: cabc.Iterator[int]

    async def collect(self, _context: CollectionContext) -> int:
        return next(self.counter)


@dc.dataclass(slots=True)
class _MalformedStrategy:
    """Strategy whose probe output never parses."""

    metric_id: str

    async def collect(self, _context: CollectionContext) -> int:
        raise MalformedInputFailure.not_numeric(self.metric_id, "n/a")


class CollectionContextState(typ.TypedDict):
    """Shared mutable scenario state."""

    dispatcher: MetricDispatcher
    store: MetricStore


@scenario(
    "../collection.feature",
    "A malformed metric does not block the rest of its tier",
)
def test_malformed_metric_is_isolated() -> None:
    """Wrap the pytest-bdd scenario for failure isolation."""


@pytest.fixture
def run() -> cabc.Iterator[SimulatedRun]:
    """Provide a scheduler on simulated time."""
    yield from simulated_run()


@pytest.fixture
def collection_state() -> CollectionContextState:
    """Provide an empty dispatcher and store."""
    return {"dispatcher": MetricDispatcher(), "store": MetricStore()}


@given(parsers.parse('metric "{metric_id}" produces malformed output'))
def given_malformed_metric(
    collection_state: CollectionContextState, metric_id: str
) -> None:
    """Register a metric that always fails to parse."""
    collection_state["dispatcher"].register(
        metric_id,
        _MalformedStrategy(metric_id),  # type: ignore[arg-type]
    )


@given(parsers.parse('metric "{metric_id}" counts up from {start:d}'))
def given_counting_metric(
    collection_state: CollectionContextState, metric_id: str, start: int
) -> None:
    """Register a metric returning ``start``, ``start + 1`` ..."""
    collection_state["dispatcher"].register(
        metric_id,
        _CountingStrategy(itertools.count(start)),  # type: ignore[arg-type]
    )


@given(parsers.parse('the store already holds {value:d} for metric "{metric_id}"'))
def given_previous_value(
    collection_state: CollectionContextState, metric_id: str, value: int
) -> None:
    """Seed a previously exported value."""
    collection_state["store"].set(metric_id, value)


@given(
    parsers.parse('tier "{name}" collects "{metric_ids}" every {interval:d} seconds')
)
def given_tier(
    run: SimulatedRun,
    collection_state: CollectionContextState,
    name: str,
    metric_ids: str,
    interval: int,
) -> None:
    """Register a collection tier over the named metrics."""
    task = TierCollection(
        name,
        metric_ids.split(","),
        dispatcher=collection_state["dispatcher"],
        store=collection_state["store"],
    )
    run.scheduler.register_tier(name, interval, task)


@when(parsers.parse("the scheduler runs for {seconds:d} simulated seconds"))
@when(parsers.parse("the scheduler runs until {seconds:d} simulated seconds"))
def when_scheduler_runs(run: SimulatedRun, seconds: int) -> None:
    """Advance simulated time to an absolute point."""
    run.run_until(seconds)


@then(parsers.parse('the store holds {value:d} for metric "{metric_id}"'))
def then_store_holds(
    collection_state: CollectionContextState, metric_id: str, value: int
) -> None:
    """Assert the exported value of a metric."""
    stored = collection_state["store"].get(metric_id)
    assert stored == value, f"{metric_id} holds {stored}, expected {value}"


@then(parsers.parse('tier "{name}" has run {count:d} times'))
def then_tier_ran(run: SimulatedRun, name: str, count: int) -> None:
    """Assert how often a tier ran."""
    runs = run.scheduler.tier(name).runs
    assert runs == count, f"tier {name} ran {runs} times, expected {count}"
