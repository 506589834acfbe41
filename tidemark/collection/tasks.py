"""Scheduler tasks: one tier's collection tick and the LLM reduction cycle."""

from __future__ import annotations

import contextlib
import dataclasses as dc
import typing as typ

from sqlalchemy.exc import SQLAlchemyError

from tidemark.aggregation.export import export_records
from tidemark.collection.rates import RateTracker
from tidemark.collection.results import is_failure
from tidemark.collection.strategies import CollectionContext
from tidemark.common.time import utcnow
from tidemark.errors import ConfigurationFailure, TransientIOFailure
from tidemark.observability import CollectionEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncConnection

    from tidemark.aggregation.engine import AggregationEngine
    from tidemark.collection.dispatcher import MetricDispatcher
    from tidemark.collection.executor import ProbeCommandExecutor
    from tidemark.collection.store import MetricStore

type ConnectionFactory = cabc.Callable[
    [], contextlib.AbstractAsyncContextManager[AsyncConnection]
]

# Published by query tiers: 1 when a connection was acquired, 0 otherwise
DB_STATUS_METRIC = "db.status"


@dc.dataclass(frozen=True, slots=True)
class TickSummary:
    """Counts from one collection tick."""

    collected: int
    failed: int


class TierCollection:
    """Collect every metric assigned to one tier.

    Each call is one tick. When the tier holds a query-based metric, a
    connection is acquired at the start of the tick, shared by all of its
    metrics and released before the tick returns, whatever the outcome.
    Acquiring it publishes ``db.status`` as ``1``. When acquisition fails,
    ``db.status`` becomes ``0``, the tier's command-based metrics are still
    collected and the tick then fails with :class:`TransientIOFailure`.

    Metrics named in ``rate_metrics`` are cumulative counters: their first
    reading only sets a baseline and later ticks publish the per-second
    growth since the previous reading.

    Parameters
    ----------
    name
        Tier name, used in log events.
    metric_ids
        Metrics collected by the tier, in collection order.
    dispatcher
        Registry holding a strategy for every id in ``metric_ids``.
    store
        Destination for successfully collected values.
    connect
        Factory returning an async context manager yielding an
        ``AsyncConnection``, such as ``AsyncEngine.connect``.
    executor
        Probe executor for command-based metrics.
    rate_metrics
        Metrics published as per-second rates rather than raw readings.
    rates
        Tracker holding the previous reading of each rate metric.

    Raises
    ------
    ConfigurationFailure
        If a metric is unregistered, or the resource its strategy needs was
        not supplied.

    """

    def __init__(  # noqa: PLR0913
        self,
        name: str,
        metric_ids: cabc.Sequence[str],
        *,
        dispatcher: MetricDispatcher,
        store: MetricStore,
        connect: ConnectionFactory | None = None,
        executor: ProbeCommandExecutor | None = None,
        events: CollectionEventLogger | None = None,
        rate_metrics: cabc.Collection[str] = (),
        rates: RateTracker | None = None,
    ) -> None:
        """Validate the tier's metrics against the available resources."""
        self.name = name
        self.metric_ids = tuple(metric_ids)
        self._dispatcher = dispatcher
        self._store = store
        self._connect = connect
        self._executor = executor
        self._events = events or CollectionEventLogger()
        self._rate_metrics = frozenset(rate_metrics)
        self._rates = rates or RateTracker()

        self._needs_connection = dispatcher.needs_connection(self.metric_ids)
        if self._needs_connection and connect is None:
            raise ConfigurationFailure.missing("database.url")
        if dispatcher.needs_executor(self.metric_ids) and executor is None:
            raise ConfigurationFailure.missing("probes.directory")
        self._offline_metric_ids = tuple(
            metric_id
            for metric_id in self.metric_ids
            if not dispatcher.needs_connection([metric_id])
        )

    async def __call__(self) -> TickSummary:
        """Run one tick."""
        started = utcnow()
        connect_error: SQLAlchemyError | OSError | None = None
        async with contextlib.AsyncExitStack() as stack:
            connection = None
            metric_ids = self.metric_ids
            if self._needs_connection and self._connect is not None:
                try:
                    connection = await stack.enter_async_context(self._connect())
                except (SQLAlchemyError, OSError) as exc:
                    connect_error = exc
                    metric_ids = self._offline_metric_ids
                self._store.set(DB_STATUS_METRIC, int(connect_error is None))
            context = CollectionContext(connection=connection, executor=self._executor)
            summary = await self._collect_all(metric_ids, context)

        if connect_error is not None:
            raise TransientIOFailure.connection_failed(
                self.name, connect_error
            ) from connect_error

        self._events.log_tick_completed(
            tier=self.name,
            collected=summary.collected,
            failed=summary.failed,
            duration=utcnow() - started,
        )
        return summary

    async def _collect_all(
        self, metric_ids: cabc.Iterable[str], context: CollectionContext
    ) -> TickSummary:
        collected = failed = 0
        for metric_id in metric_ids:
            if self._store.closed:
                break
            outcome = await self._dispatcher.collect(metric_id, context)
            if is_failure(outcome):
                failed += 1
                continue
            if metric_id in self._rate_metrics and not isinstance(outcome, list):
                rate = self._rates.observe(metric_id, outcome)
                if rate is None:
                    continue
                outcome = rate
            if self._store.publish(metric_id, outcome):
                collected += 1
        return TickSummary(collected=collected, failed=failed)


class ReductionTask:
    """Reduce pushed LLM usage once per tick and export the records."""

    def __init__(
        self,
        engine: AggregationEngine,
        store: MetricStore,
        *,
        interval_seconds: float,
    ) -> None:
        """Bind the task to its engine, store and nominal interval."""
        self._engine = engine
        self._store = store
        self.interval_seconds = interval_seconds

    async def __call__(self) -> int:
        """Run one reduction cycle; return the number of records exported."""
        records = self._engine.reduce(self.interval_seconds)
        return export_records(records, self._store)
