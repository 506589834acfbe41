"""Publish interval records to the metric store."""

from __future__ import annotations

import enum
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from tidemark.aggregation.models import IntervalMetricRecord
    from tidemark.collection.store import MetricStore


class LLMMetric(enum.StrEnum):
    """Metric names written for each entity every cycle."""

    STATUS = "llm.status"
    DURATION = "llm.response.duration"
    DURATION_MAX = "llm.response.duration.max"
    TOKENS = "llm.tokens"
    COST = "llm.cost"
    REQUESTS = "llm.requests"


def export_records(
    records: cabc.Iterable[IntervalMetricRecord], store: MetricStore
) -> int:
    """Write each record's values to ``store``.

    Returns the number of records written; zero once the store has been
    closed for shutdown.
    """
    written = 0
    if not store.set(LLMMetric.STATUS, 1):
        return written
    for record in records:
        labels = {"entity_id": record.entity_id, "ai_system": record.ai_system}
        values = {
            LLMMetric.DURATION: record.avg_duration,
            LLMMetric.DURATION_MAX: record.max_duration,
            LLMMetric.TOKENS: record.tokens_per_second,
            LLMMetric.COST: record.cost_per_second,
            LLMMetric.REQUESTS: record.requests_per_second,
        }
        if all(store.set(name, value, labels) for name, value in values.items()):
            written += 1
    return written
