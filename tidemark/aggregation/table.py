"""Per-entity aggregation state owned by one reduction engine."""

from __future__ import annotations

import typing as typ

from tidemark.aggregation.counters import fold_counter, fold_request_count
from tidemark.aggregation.models import AggregationState

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from tidemark.aggregation.models import MetricEvent


class AggregationTable:
    """Map entity ids to their :class:`AggregationState`.

    States are created on an entity's first event and kept for the lifetime
    of the table. Entities that stop reporting are never evicted.
    """

    def __init__(self) -> None:
        """Create an empty table."""
        self._states: dict[str, AggregationState] = {}

    def __len__(self) -> int:
        """Return the number of entities seen so far."""
        return len(self._states)

    def __contains__(self, entity_id: object) -> bool:
        """Return whether ``entity_id`` has recorded state."""
        return entity_id in self._states

    def get(self, entity_id: str) -> AggregationState | None:
        """Return the state for ``entity_id`` if it has been observed."""
        return self._states.get(entity_id)

    def states(self) -> cabc.Iterator[AggregationState]:
        """Iterate over every recorded state."""
        return iter(self._states.values())

    def state_for(self, event: MetricEvent) -> AggregationState:
        """Return the state for the event's entity, creating it if needed."""
        state = self._states.get(event.entity_id)
        if state is None:
            state = AggregationState(
                entity_id=event.entity_id, ai_system=event.ai_system
            )
            self._states[event.entity_id] = state
        return state

    def fold(self, event: MetricEvent) -> AggregationState:
        """Credit the deltas carried by ``event`` to its entity.

        Duration is paired with the event's own request count. Token
        counters are paired with the entity's request count after it has
        been folded, which only differs when the event reports zero
        requests.
        """
        state = self.state_for(event)
        request_count = event.cumulative_request_count

        step = fold_counter(
            event.cumulative_duration_ms, state.last_duration, request_count
        )
        state.delta_duration += step.delta
        state.last_duration = step.last

        step = fold_request_count(request_count, state.last_request_count)
        state.delta_request_count += step.delta
        state.last_request_count = step.last

        current_requests = state.last_request_count
        step = fold_counter(
            event.cumulative_prompt_tokens, state.last_prompt_tokens, current_requests
        )
        state.delta_prompt_tokens += step.delta
        state.last_prompt_tokens = step.last

        step = fold_counter(
            event.cumulative_complete_tokens,
            state.last_complete_tokens,
            current_requests,
        )
        state.delta_complete_tokens += step.delta
        state.last_complete_tokens = step.last
        return state
