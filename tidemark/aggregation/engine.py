"""Aggregation engine: the push-side entry point for usage events.

Usage
-----
>>> engine = AggregationEngine(prices=PriceTable({"openai": (0.03, 0.06)}))
>>> engine.submit(MetricEvent(entity_id="gpt-4o", ai_system="openai", ...))
>>> records = engine.reduce(10.0)

"""

from __future__ import annotations

import typing as typ

from tidemark.aggregation.reducer import IntervalReducer, agentless_interval_override
from tidemark.aggregation.sink import IngestionSink
from tidemark.aggregation.table import AggregationTable

if typ.TYPE_CHECKING:
    from tidemark.aggregation.models import IntervalMetricRecord, MetricEvent
    from tidemark.aggregation.pricing import PriceTable
    from tidemark.aggregation.reducer import IntervalOverride
    from tidemark.observability import CollectionEventLogger


class AggregationEngine:
    """Own one sink, one table and the reducer connecting them.

    Each engine has private state; two engines never share entities.
    :meth:`submit` may be called from any thread, :meth:`reduce` from one
    consumer at a time.
    """

    def __init__(
        self,
        *,
        prices: PriceTable | None = None,
        interval_override: IntervalOverride = agentless_interval_override,
        events: CollectionEventLogger | None = None,
    ) -> None:
        """Create an engine with empty state."""
        self.sink = IngestionSink()
        self.table = AggregationTable()
        self._reducer = IntervalReducer(
            self.sink,
            self.table,
            prices=prices,
            interval_override=interval_override,
            events=events,
        )

    def submit(self, event: MetricEvent) -> None:
        """Buffer ``event`` for the next reduction cycle."""
        self.sink.submit(event)

    def reduce(self, interval_seconds: float) -> list[IntervalMetricRecord]:
        """Fold pending events and return one record per known entity."""
        return self._reducer.reduce(interval_seconds)
