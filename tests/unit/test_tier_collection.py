"""Unit tests for tier collection and reduction tasks."""

from __future__ import annotations

import contextlib
import typing as typ

import pytest
from sqlalchemy.exc import OperationalError

from tidemark.aggregation import AggregationEngine, LLMMetric, MetricEvent
from tidemark.collection import (
    DB_STATUS_METRIC,
    CommandStrategy,
    MetricDispatcher,
    MetricStore,
    QueryStrategy,
    RateTracker,
    ReductionTask,
    TickSummary,
    TierCollection,
)
from tidemark.errors import ConfigurationFailure, TransientIOFailure

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

    from tidemark.collection import CollectionContext, ProbeCommandExecutor


class _TrackingConnect:
    """Wrap ``AsyncEngine.connect`` and record acquisitions and releases."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self.acquired = 0
        self.released = 0

    @contextlib.asynccontextmanager
    async def __call__(self) -> typ.AsyncIterator[AsyncConnection]:
        async with self._engine.connect() as conn:
            self.acquired += 1
            try:
                yield conn
            finally:
                self.released += 1


@contextlib.asynccontextmanager
async def _refuse() -> typ.AsyncIterator[AsyncConnection]:
    raise OperationalError("connect", {}, Exception("refused"))
    yield  # pragma: no cover


class _SequenceStrategy:
    """Strategy returning successive readings of a counter."""

    def __init__(self, readings: list[int]) -> None:
        self._readings = iter(readings)

    async def collect(self, _context: CollectionContext) -> int:
        return next(self._readings)


@pytest.fixture
def dispatcher() -> MetricDispatcher:
    """Return a dispatcher with healthy and failing query and probe metrics."""
    registry = MetricDispatcher()
    registry.register(
        "db.sessions", QueryStrategy("db.sessions", "SELECT COUNT(1) FROM syssessions")
    )
    registry.register(
        "db.broken", QueryStrategy("db.broken", "SELECT nrows FROM missing_table")
    )
    registry.register(
        "probe.sql", CommandStrategy("probe.sql", "sql_count.sh", position=1)
    )
    registry.register("probe.garbage", CommandStrategy("probe.garbage", "garbage.sh"))
    return registry


class TestTierCollection:
    """Tests for ``TierCollection``."""

    @pytest.mark.asyncio
    async def test_collects_every_metric_with_one_connection(
        self,
        dispatcher: MetricDispatcher,
        store: MetricStore,
        sqlite_engine: AsyncEngine,
        executor: ProbeCommandExecutor,
    ) -> None:
        """One tick shares one connection and releases it afterwards."""
        connect = _TrackingConnect(sqlite_engine)
        tier = TierCollection(
            "fast",
            ["db.sessions", "probe.sql"],
            dispatcher=dispatcher,
            store=store,
            connect=connect,
            executor=executor,
        )

        summary = await tier()

        assert summary == TickSummary(collected=2, failed=0)
        assert store.get("db.sessions") == 3
        assert store.get("probe.sql") == 37
        assert store.get(DB_STATUS_METRIC) == 1
        assert (connect.acquired, connect.released) == (1, 1)

    @pytest.mark.asyncio
    async def test_failing_metrics_do_not_block_others(
        self,
        dispatcher: MetricDispatcher,
        store: MetricStore,
        sqlite_engine: AsyncEngine,
        executor: ProbeCommandExecutor,
    ) -> None:
        """Failed metrics keep their previous value; the rest are refreshed."""
        store.set("probe.garbage", 11)
        store.set("db.broken", 7)
        tier = TierCollection(
            "mixed",
            ["probe.garbage", "db.broken", "db.sessions", "probe.sql"],
            dispatcher=dispatcher,
            store=store,
            connect=sqlite_engine.connect,
            executor=executor,
        )

        summary = await tier()

        assert summary == TickSummary(collected=2, failed=2)
        assert store.get("probe.garbage") == 11
        assert store.get("db.broken") == 7
        assert store.get("db.sessions") == 3
        assert store.get("probe.sql") == 37

    @pytest.mark.asyncio
    async def test_command_only_tier_acquires_no_connection(
        self,
        dispatcher: MetricDispatcher,
        store: MetricStore,
        sqlite_engine: AsyncEngine,
        executor: ProbeCommandExecutor,
    ) -> None:
        """Tiers without query metrics never touch the database."""
        connect = _TrackingConnect(sqlite_engine)
        tier = TierCollection(
            "probes",
            ["probe.sql"],
            dispatcher=dispatcher,
            store=store,
            connect=connect,
            executor=executor,
        )

        await tier()

        assert connect.acquired == 0
        assert store.get(DB_STATUS_METRIC) is None

    @pytest.mark.asyncio
    async def test_connection_failure_is_transient(
        self, dispatcher: MetricDispatcher, store: MetricStore
    ) -> None:
        """A connection that cannot be acquired fails the tick, not the tier."""
        tier = TierCollection(
            "db", ["db.sessions"], dispatcher=dispatcher, store=store, connect=_refuse
        )

        with pytest.raises(TransientIOFailure, match="tier db"):
            await tier()

    @pytest.mark.asyncio
    async def test_failed_connection_still_collects_probes(
        self,
        dispatcher: MetricDispatcher,
        store: MetricStore,
        executor: ProbeCommandExecutor,
    ) -> None:
        """Probe metrics are refreshed and ``db.status`` drops to zero."""
        store.set(DB_STATUS_METRIC, 1)
        tier = TierCollection(
            "mixed",
            ["db.sessions", "probe.sql"],
            dispatcher=dispatcher,
            store=store,
            connect=_refuse,
            executor=executor,
        )

        with pytest.raises(TransientIOFailure, match="tier mixed"):
            await tier()

        assert store.get(DB_STATUS_METRIC) == 0
        assert store.get("probe.sql") == 37
        assert store.get("db.sessions") is None

    @pytest.mark.asyncio
    async def test_rate_metric_publishes_growth_per_second(
        self, store: MetricStore
    ) -> None:
        """Counter readings become rates; a counter that goes back credits 0."""
        registry = MetricDispatcher()
        registry.register(
            "db.transaction.rate",
            _SequenceStrategy([1000, 1050, 900, 960]),  # type: ignore[arg-type]
        )
        ticks = iter([0.0, 10.0, 20.0, 30.0])
        tier = TierCollection(
            "medium",
            ["db.transaction.rate"],
            dispatcher=registry,
            store=store,
            rate_metrics={"db.transaction.rate"},
            rates=RateTracker(clock=lambda: next(ticks)),
        )

        baseline = await tier()
        assert baseline == TickSummary(collected=0, failed=0)
        assert store.get("db.transaction.rate") is None

        published = []
        for _ in range(3):
            await tier()
            published.append(store.get("db.transaction.rate"))

        assert published == pytest.approx([5.0, 0.0, 6.0])

    @pytest.mark.asyncio
    async def test_closed_store_stops_the_tick(
        self,
        dispatcher: MetricDispatcher,
        store: MetricStore,
        executor: ProbeCommandExecutor,
    ) -> None:
        """No value is written once shutdown has begun."""
        store.close()
        tier = TierCollection(
            "probes",
            ["probe.sql"],
            dispatcher=dispatcher,
            store=store,
            executor=executor,
        )

        summary = await tier()

        assert summary == TickSummary(collected=0, failed=0)
        assert store.names() == []

    @pytest.mark.parametrize(
        ("metric_id", "setting"),
        [("db.sessions", "database.url"), ("probe.sql", "probes.directory")],
    )
    def test_missing_resource_is_configuration_error(
        self,
        dispatcher: MetricDispatcher,
        store: MetricStore,
        metric_id: str,
        setting: str,
    ) -> None:
        """Tiers refuse metrics whose resource was not configured."""
        with pytest.raises(ConfigurationFailure, match=setting):
            TierCollection("t", [metric_id], dispatcher=dispatcher, store=store)

    def test_unknown_metric_is_configuration_error(
        self, dispatcher: MetricDispatcher, store: MetricStore
    ) -> None:
        """Every metric in a tier must be registered."""
        with pytest.raises(ConfigurationFailure, match="no collection strategy"):
            TierCollection("t", ["nope"], dispatcher=dispatcher, store=store)


class TestReductionTask:
    """Tests for ``ReductionTask``."""

    @pytest.mark.asyncio
    async def test_reduces_and_exports(self, store: MetricStore) -> None:
        """Each run reduces pending events and writes their rates."""
        engine = AggregationEngine(interval_override=lambda: None)
        engine.submit(
            MetricEvent(
                entity_id="m1",
                ai_system="openai",
                cumulative_prompt_tokens=100,
                cumulative_request_count=1,
            )
        )
        task = ReductionTask(engine, store, interval_seconds=10.0)

        exported = await task()

        labels = {"entity_id": "m1", "ai_system": "openai"}
        assert exported == 1
        assert store.get(LLMMetric.TOKENS, labels) == pytest.approx(10.0)
        assert store.get(LLMMetric.REQUESTS, labels) == pytest.approx(0.1)
