"""Per-second rates for pulled cumulative counters.

Database counters such as executed statements or committed transactions
grow until the server restarts. Each reading is folded against the previous
one with the same rules as pushed LLM usage, so a restart or a counter that
goes backwards credits nothing, and the credited growth is divided by the
seconds elapsed since that reading.
"""

from __future__ import annotations

import dataclasses as dc
import time
import typing as typ

from tidemark.aggregation.counters import fold_request_count

if typ.TYPE_CHECKING:
    import collections.abc as cabc


@dc.dataclass(frozen=True, slots=True)
class _Reading:
    value: int | float
    at: float


class RateTracker:
    """Turn successive readings of counter metrics into per-second rates.

    Examples
    --------
    >>> ticks = iter([0.0, 10.0])
    >>> tracker = RateTracker(clock=lambda: next(ticks))
    >>> tracker.observe("db.transactions", 1000) is None
    True
    >>> tracker.observe("db.transactions", 1050)
    5.0

    """

    def __init__(self, *, clock: cabc.Callable[[], float] = time.monotonic) -> None:
        """Create a tracker with no baselines, reading time from ``clock``."""
        self._clock = clock
        self._readings: dict[str, _Reading] = {}

    def __contains__(self, metric_id: object) -> bool:
        """Return whether ``metric_id`` has a baseline reading."""
        return metric_id in self._readings

    def observe(self, metric_id: str, value: int | float) -> float | None:
        """Fold ``value`` and return the rate since the previous reading.

        Returns ``None`` for the first reading of a metric, which only sets
        the baseline, and when no time has passed since the previous one.
        """
        now = self._clock()
        previous = self._readings.get(metric_id)
        if previous is None:
            self._readings[metric_id] = _Reading(value, now)
            return None

        step = fold_request_count(value, previous.value)  # type: ignore[arg-type]
        elapsed = now - previous.at
        if elapsed <= 0:
            return None
        self._readings[metric_id] = _Reading(step.last, now)
        return step.delta / elapsed


__all__ = ["RateTracker"]
