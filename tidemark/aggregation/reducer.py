"""Fold buffered events into per-entity state and emit interval rates.

One call to :meth:`IntervalReducer.reduce` is one cycle:

1. drain the ingestion sink;
2. fold each event into its entity's state with the delta-safe rule;
3. derive the average duration from the cycle's deltas and raise the
   entity's running maximum;
4. divide every delta by the effective interval to obtain per-second rates
   and price the token rates;
5. emit one record per known entity, including silent ones;
6. zero the deltas.

The running maximum is taken over per-cycle averages, since raw request
durations are not retained; a burst of slow requests in a busy cycle is
therefore understated.
"""

from __future__ import annotations

import os
import typing as typ

from tidemark.aggregation.models import IntervalMetricRecord
from tidemark.aggregation.pricing import PriceTable
from tidemark.observability import CollectionEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from tidemark.aggregation.models import AggregationState
    from tidemark.aggregation.sink import IngestionSink
    from tidemark.aggregation.table import AggregationTable

AGENTLESS_MODE_ENV = "TIDEMARK_AGENTLESS_MODE"

type IntervalOverride = cabc.Callable[[], float | None]


def agentless_interval_override() -> float | None:
    """Return ``1.0`` when agentless mode is enabled, else ``None``.

    Agentless exporters report per-second samples, so rates are normalized
    over one second instead of the nominal poll interval. The environment is
    read on every call.
    """
    if os.environ.get(AGENTLESS_MODE_ENV) is not None:
        return 1.0
    return None


class IntervalReducer:
    """Turn one cycle of buffered events into :class:`IntervalMetricRecord`."""

    def __init__(
        self,
        sink: IngestionSink,
        table: AggregationTable,
        *,
        prices: PriceTable | None = None,
        interval_override: IntervalOverride = agentless_interval_override,
        events: CollectionEventLogger | None = None,
    ) -> None:
        """Bind the reducer to the sink it drains and the table it updates."""
        self._sink = sink
        self._table = table
        self._prices = prices or PriceTable()
        self._interval_override = interval_override
        self._events = events or CollectionEventLogger()

    def effective_interval(self, interval_seconds: float) -> float:
        """Return the interval rates are normalized over this cycle."""
        override = self._interval_override()
        interval = interval_seconds if override is None else override
        if interval <= 0:
            msg = f"reduction interval must be positive, got {interval}"
            raise ValueError(msg)
        return interval

    def reduce(self, interval_seconds: float) -> list[IntervalMetricRecord]:
        """Run one reduction cycle over ``interval_seconds``."""
        interval = self.effective_interval(interval_seconds)
        batch = self._sink.drain()
        for event in batch:
            try:
                self._table.fold(event)
            except Exception as exc:  # noqa: BLE001 - per-event boundary
                self._events.log_event_rejected(entity_id=event.entity_id, error=exc)

        records: list[IntervalMetricRecord] = []
        for state in self._table.states():
            record = self._record_for(state, interval)
            state.reset_deltas()
            self._events.log_record(record)
            records.append(record)

        self._events.log_cycle_reduced(
            events=len(batch),
            entities=len(records),
            interval_seconds=interval,
        )
        return records

    def _record_for(
        self, state: AggregationState, interval: float
    ) -> IntervalMetricRecord:
        avg_duration = (
            state.delta_duration / state.delta_request_count
            if state.delta_request_count > 0
            else 0.0
        )
        state.max_avg_duration = max(state.max_avg_duration, avg_duration)

        prompt_rate = state.delta_prompt_tokens / interval
        complete_rate = state.delta_complete_tokens / interval
        price = self._prices.price_for(state.ai_system)
        return IntervalMetricRecord(
            entity_id=state.entity_id,
            ai_system=state.ai_system,
            avg_duration=avg_duration,
            max_duration=state.max_avg_duration,
            prompt_tokens_per_second=prompt_rate,
            complete_tokens_per_second=complete_rate,
            tokens_per_second=prompt_rate + complete_rate,
            cost_per_second=price.cost(prompt_rate, complete_rate),
            requests_per_second=state.delta_request_count / interval,
        )
