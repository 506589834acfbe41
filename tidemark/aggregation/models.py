"""Typed observations, per-entity state and interval records.

``MetricEvent`` and ``IntervalMetricRecord`` are immutable msgspec
structures so they can cross thread and wire boundaries unchanged.
``AggregationState`` is the only mutable type and belongs to one
``AggregationTable``.
"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ

import msgspec

from tidemark.common.time import utcnow
from tidemark.errors import MalformedInputFailure

Counter = typ.Annotated[int, msgspec.Meta(ge=0)]


class MetricEvent(msgspec.Struct, kw_only=True, frozen=True):
    """A cumulative usage observation pushed by a call-site producer.

    Attributes
    ----------
    entity_id : str
        Aggregation key, typically the model identifier.
    ai_system : str
        Provider name used for price lookup (``openai``, ``watsonx`` ...).
    cumulative_prompt_tokens : int
        Prompt tokens consumed since the producer last restarted.
    cumulative_complete_tokens : int
        Completion tokens generated since the producer last restarted.
    cumulative_duration_ms : int
        Total request duration in milliseconds since the last restart.
    cumulative_request_count : int
        Requests served since the last restart; ``1`` marks a fresh window.
    timestamp : datetime
        When the observation was made.

    """

    entity_id: str
    ai_system: str = ""
    cumulative_prompt_tokens: Counter = 0
    cumulative_complete_tokens: Counter = 0
    cumulative_duration_ms: Counter = 0
    cumulative_request_count: Counter = 0
    timestamp: dt.datetime = msgspec.field(default_factory=utcnow)


class IntervalMetricRecord(msgspec.Struct, kw_only=True, frozen=True):
    """Per-second rates for one entity over one reduction cycle.

    Durations are in milliseconds; ``max_duration`` is the highest
    per-cycle average seen over the entity's lifetime.
    """

    entity_id: str
    ai_system: str
    avg_duration: float
    max_duration: float
    prompt_tokens_per_second: float
    complete_tokens_per_second: float
    tokens_per_second: float
    cost_per_second: float
    requests_per_second: float


@dc.dataclass(slots=True)
class AggregationState:
    """Last-seen cumulative values and pending deltas for one entity."""

    entity_id: str
    ai_system: str = ""
    last_prompt_tokens: int = 0
    last_complete_tokens: int = 0
    last_duration: int = 0
    last_request_count: int = 0
    delta_prompt_tokens: int = 0
    delta_complete_tokens: int = 0
    delta_duration: int = 0
    delta_request_count: int = 0
    max_avg_duration: float = 0.0

    def reset_deltas(self) -> None:
        """Zero the pending deltas once they have been reported."""
        self.delta_prompt_tokens = 0
        self.delta_complete_tokens = 0
        self.delta_duration = 0
        self.delta_request_count = 0


def decode_event(payload: bytes | str | typ.Mapping[str, object]) -> MetricEvent:
    """Validate a JSON document or mapping into a ``MetricEvent``.

    Raises
    ------
    MalformedInputFailure
        If the payload is not valid JSON or violates the event schema
        (missing ``entity_id``, negative or non-integer counters).

    """
    try:
        if isinstance(payload, bytes | str):
            return msgspec.json.decode(payload, type=MetricEvent)
        return msgspec.convert(payload, type=MetricEvent)
    except (msgspec.ValidationError, msgspec.DecodeError) as exc:
        raise MalformedInputFailure.invalid_event(exc) from exc


__all__ = [
    "AggregationState",
    "IntervalMetricRecord",
    "MetricEvent",
    "decode_event",
]
