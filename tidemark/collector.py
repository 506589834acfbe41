"""Wire configuration into a running collector.

The collector owns one aggregation engine for pushed LLM usage, one metric
store, one dispatcher and one scheduler. Collection tiers and the ``llm``
reduction tier run side by side; the store is the only state they share.

Usage
-----
>>> collector = Collector.from_config(load_config_from_env())
>>> collector.start()
>>> collector.submit(event)
>>> ...
>>> await collector.stop()

"""

from __future__ import annotations

import typing as typ

from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import create_async_engine

from tidemark.aggregation.engine import AggregationEngine
from tidemark.aggregation.reducer import agentless_interval_override
from tidemark.collection.dispatcher import MetricDispatcher
from tidemark.collection.executor import ProbeCommandExecutor
from tidemark.collection.store import MetricStore
from tidemark.collection.tasks import ReductionTask, TierCollection
from tidemark.config import LLM_TIER
from tidemark.errors import ConfigurationFailure
from tidemark.logging import get_logger, log_info
from tidemark.observability import CollectionEventLogger
from tidemark.scheduler import MultiTierScheduler

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from tidemark.aggregation.models import MetricEvent
    from tidemark.aggregation.reducer import IntervalOverride
    from tidemark.config import CollectorConfig

logger = get_logger(__name__)


def _create_database_engine(url: str) -> AsyncEngine:
    try:
        return create_async_engine(url, pool_pre_ping=True)
    except (ArgumentError, ImportError) as exc:
        raise ConfigurationFailure.invalid("database.url", exc) from exc


class Collector:
    """Own every long-lived collection component for one process."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        engine: AggregationEngine,
        store: MetricStore,
        dispatcher: MetricDispatcher,
        scheduler: MultiTierScheduler,
        database: AsyncEngine | None = None,
        executor: ProbeCommandExecutor | None = None,
    ) -> None:
        """Assemble a collector from already-built components."""
        self.engine = engine
        self.store = store
        self.dispatcher = dispatcher
        self.scheduler = scheduler
        self.database = database
        self.executor = executor

    @classmethod
    def from_config(
        cls,
        config: CollectorConfig,
        *,
        scheduler: MultiTierScheduler | None = None,
        interval_override: IntervalOverride = agentless_interval_override,
        events: CollectionEventLogger | None = None,
    ) -> Collector:
        """Build a collector and register its tiers.

        Raises
        ------
        ConfigurationFailure
            If a metric definition or the database URL is unusable.

        """
        events = events or CollectionEventLogger()
        store = MetricStore()
        engine = AggregationEngine(
            prices=config.price_table(),
            interval_override=interval_override,
            events=events,
        )

        dispatcher = MetricDispatcher(events=events)
        for metric in config.metrics:
            dispatcher.register(metric.id, metric.to_strategy())

        database = (
            _create_database_engine(config.database.url)
            if config.database.url
            else None
        )
        executor = (
            ProbeCommandExecutor(
                config.probes.directory,
                timeout_seconds=config.probes.timeout_seconds,
                env=config.probes.env,
            )
            if config.probes.directory
            else None
        )

        scheduler = scheduler or MultiTierScheduler(events=events)
        intervals = config.tier_intervals()
        rate_metrics = {metric.id for metric in config.metrics if metric.rate}
        for name, metric_ids in config.metrics_by_tier().items():
            if not metric_ids:
                continue
            task = TierCollection(
                name,
                metric_ids,
                dispatcher=dispatcher,
                store=store,
                connect=database.connect if database is not None else None,
                executor=executor,
                events=events,
                rate_metrics=rate_metrics,
            )
            scheduler.register_tier(name, intervals[name], task)

        if config.llm.enabled:
            scheduler.register_tier(
                LLM_TIER,
                config.llm_interval,
                ReductionTask(engine, store, interval_seconds=config.llm_interval),
            )

        return cls(
            engine=engine,
            store=store,
            dispatcher=dispatcher,
            scheduler=scheduler,
            database=database,
            executor=executor,
        )

    @property
    def running(self) -> bool:
        """Return whether the scheduler is running."""
        return self.scheduler.running

    def submit(self, event: MetricEvent) -> None:
        """Buffer a pushed usage event for the next reduction."""
        self.engine.submit(event)

    def start(self) -> None:
        """Start every tier on the running event loop."""
        log_info(
            logger,
            "Starting collector with %d metrics across %d tiers",
            len(self.dispatcher),
            len(self.scheduler.tiers),
        )
        self.scheduler.start()

    async def stop(self) -> None:
        """Stop collection and release the database pool.

        The store is closed first, so no metric is written once shutdown has
        begun, even by ticks still in flight.
        """
        self.store.close()
        await self.scheduler.stop()
        if self.database is not None:
            await self.database.dispose()
        log_info(logger, "Collector stopped")
