"""Behavioural coverage for independent polling tiers."""

from __future__ import annotations

import typing as typ

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from tests.features.steps._scheduling_context import SimulatedRun, simulated_run

if typ.TYPE_CHECKING:
    import collections.abc as cabc


@scenario("../scheduling.feature", "Tiers run at their own cadence")
def test_tiers_run_at_their_own_cadence() -> None:
    """Wrap the pytest-bdd scenario for tier cadence."""


@pytest.fixture
def run() -> cabc.Iterator[SimulatedRun]:
    """Provide a scheduler on simulated time."""
    yield from simulated_run()


@given("a scheduler on simulated time")
def given_scheduler(run: SimulatedRun) -> None:
    """The fixture provides the scheduler; no tiers are registered yet."""
    assert not run.scheduler.tiers


@given(parsers.parse('tier "{name}" polls every {interval:d} seconds'))
def given_tier(run: SimulatedRun, name: str, interval: int) -> None:
    """Register a tier whose task completes immediately."""

    async def poll() -> None:
        return None

    run.scheduler.register_tier(name, interval, poll)


@when(parsers.parse("the scheduler runs for {seconds:d} simulated seconds"))
def when_scheduler_runs(run: SimulatedRun, seconds: int) -> None:
    """Advance simulated time from zero."""
    run.run_until(seconds)


@then(parsers.parse('tier "{name}" has run {count:d} times'))
def then_tier_ran(run: SimulatedRun, name: str, count: int) -> None:
    """Assert how often a tier ran."""
    runs = run.scheduler.tier(name).runs
    assert runs == count, f"tier {name} ran {runs} times, expected {count}"
