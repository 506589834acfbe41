"""Delta-safe aggregation of pushed LLM usage counters.

Producers push cumulative counters that reset when they restart; this
package turns them into per-cycle deltas and per-second rates.

Public API
----------
AggregationEngine
    Facade owning the sink, table and reducer for one process.
AggregationState
    Last-seen cumulative values and pending deltas for one entity.
AggregationTable
    Entity id to state mapping.
IngestionSink
    Thread-safe buffer drained once per cycle.
IntervalMetricRecord
    Per-second rates for one entity over one cycle.
IntervalReducer
    Runs a single reduction cycle.
MetricEvent
    A cumulative usage observation.
PriceTable
    Per-provider token prices.
decode_event
    Validate a JSON payload or mapping into a ``MetricEvent``.
export_records
    Write records to a ``MetricStore``.

"""

from tidemark.aggregation.engine import AggregationEngine
from tidemark.aggregation.export import LLMMetric, export_records
from tidemark.aggregation.models import (
    AggregationState,
    IntervalMetricRecord,
    MetricEvent,
    decode_event,
)
from tidemark.aggregation.pricing import PriceTable, TokenPrice
from tidemark.aggregation.reducer import (
    AGENTLESS_MODE_ENV,
    IntervalReducer,
    agentless_interval_override,
)
from tidemark.aggregation.sink import IngestionSink
from tidemark.aggregation.table import AggregationTable

__all__ = [
    "AGENTLESS_MODE_ENV",
    "AggregationEngine",
    "AggregationState",
    "AggregationTable",
    "IngestionSink",
    "IntervalMetricRecord",
    "IntervalReducer",
    "LLMMetric",
    "MetricEvent",
    "PriceTable",
    "TokenPrice",
    "agentless_interval_override",
    "decode_event",
    "export_records",
]
