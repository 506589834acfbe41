"""Registry dispatching metric identifiers to collection strategies.

Usage
-----
Build the registry once at startup, then collect per tick:

>>> dispatcher = MetricDispatcher()
>>> dispatcher.register(
...     "db.session.count",
...     QueryStrategy("db.session.count", "SELECT COUNT(1) FROM syssessions"),
... )
>>> outcome = await dispatcher.collect("db.session.count", context)

"""

from __future__ import annotations

import typing as typ

from tidemark.collection.results import CollectionFailure
from tidemark.collection.strategies import CommandStrategy, QueryStrategy
from tidemark.errors import ConfigurationFailure
from tidemark.observability import CollectionEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from tidemark.collection.results import MetricValue
    from tidemark.collection.strategies import CollectionContext, Strategy


class MetricDispatcher:
    """Map metric identifiers to query or command strategies.

    The registry only changes through :meth:`register`. :meth:`collect`
    never raises for a failing strategy; it returns a
    :class:`CollectionFailure` so the caller can keep the previously
    exported value and move on to the next metric.
    """

    def __init__(self, *, events: CollectionEventLogger | None = None) -> None:
        """Create an empty registry."""
        self._strategies: dict[str, Strategy] = {}
        self._events = events or CollectionEventLogger()

    def register(self, metric_id: str, strategy: Strategy) -> None:
        """Register ``strategy`` under ``metric_id``.

        Raises
        ------
        ConfigurationFailure
            If ``metric_id`` already has a strategy.

        """
        if metric_id in self._strategies:
            raise ConfigurationFailure.duplicate("metric", metric_id)
        self._strategies[metric_id] = strategy

    def __contains__(self, metric_id: object) -> bool:
        """Return whether ``metric_id`` has a registered strategy."""
        return metric_id in self._strategies

    def __len__(self) -> int:
        """Return the number of registered metrics."""
        return len(self._strategies)

    @property
    def metric_ids(self) -> list[str]:
        """Return registered identifiers in registration order."""
        return list(self._strategies)

    def strategy_for(self, metric_id: str) -> Strategy:
        """Return the strategy registered for ``metric_id``.

        Raises
        ------
        ConfigurationFailure
            If no strategy is registered.

        """
        try:
            return self._strategies[metric_id]
        except KeyError as exc:
            raise ConfigurationFailure.unknown_metric(metric_id) from exc

    def needs_connection(self, metric_ids: cabc.Iterable[str]) -> bool:
        """Return whether any of ``metric_ids`` is query-based."""
        return any(
            isinstance(self.strategy_for(metric_id), QueryStrategy)
            for metric_id in metric_ids
        )

    def needs_executor(self, metric_ids: cabc.Iterable[str]) -> bool:
        """Return whether any of ``metric_ids`` is command-based."""
        return any(
            isinstance(self.strategy_for(metric_id), CommandStrategy)
            for metric_id in metric_ids
        )

    async def collect(
        self, metric_id: str, context: CollectionContext
    ) -> MetricValue | CollectionFailure:
        """Collect one metric, returning a failure signal instead of raising."""
        strategy = self.strategy_for(metric_id)
        try:
            return await strategy.collect(context)
        except Exception as exc:  # noqa: BLE001 - per-metric boundary
            self._events.log_metric_failed(metric_id=metric_id, error=exc)
            return CollectionFailure(metric_id=metric_id, error=exc)
