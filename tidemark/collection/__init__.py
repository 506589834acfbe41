"""Pull-based metric collection for scheduled tiers.

Public API
----------
DB_STATUS_METRIC
    Name of the database reachability metric published by query tiers.
CollectionContext
    Connection and probe executor shared by one tick.
CollectionFailure
    Per-metric failure signal returned by the dispatcher.
CommandStrategy
    Parse a token from a probe script's output.
LabeledValue
    One labelled sub-result of a multi-row query.
MetricDispatcher
    Registry mapping metric ids to strategies.
MetricStore
    Thread-safe latest-value store read by the HTTP runtime.
ProbeCommandExecutor
    Runs probe scripts from a fixed directory off the event loop.
QueryStrategy
    Read-only SQL query over the tick's connection.
RateTracker
    Per-second rates from successive counter readings.
ReductionTask
    Scheduler task reducing and exporting LLM usage.
TickSummary
    Collected and failed counts for one tick.
TierCollection
    Scheduler task collecting one tier's metrics.

"""

from tidemark.collection.dispatcher import MetricDispatcher
from tidemark.collection.executor import ProbeCommandExecutor
from tidemark.collection.rates import RateTracker
from tidemark.collection.results import CollectionFailure, LabeledValue, is_failure
from tidemark.collection.store import MetricStore
from tidemark.collection.strategies import (
    CollectionContext,
    CommandStrategy,
    NumberType,
    QueryStrategy,
    ResultShape,
)
from tidemark.collection.tasks import (
    DB_STATUS_METRIC,
    ReductionTask,
    TickSummary,
    TierCollection,
)

__all__ = [
    "DB_STATUS_METRIC",
    "CollectionContext",
    "CollectionFailure",
    "CommandStrategy",
    "LabeledValue",
    "MetricDispatcher",
    "MetricStore",
    "NumberType",
    "ProbeCommandExecutor",
    "QueryStrategy",
    "RateTracker",
    "ReductionTask",
    "ResultShape",
    "TickSummary",
    "TierCollection",
    "is_failure",
]
