"""Latest-value metric store shared by every tier.

The store is the only mutable state crossing tier boundaries. Writes from
concurrent tiers, worker threads and the reduction cycle are serialized by
a lock. Closing the store marks the start of shutdown: from then on every
write is rejected so no value is published after the collector begins
stopping.
"""

from __future__ import annotations

import threading
import typing as typ

from tidemark.collection.results import LabeledValue
from tidemark.logging import get_logger, log_debug

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from tidemark.collection.results import MetricValue

logger = get_logger(__name__)

type Labels = tuple[tuple[str, str], ...]

_NO_LABELS: Labels = ()


def _freeze(labels: cabc.Mapping[str, str] | None) -> Labels:
    if not labels:
        return _NO_LABELS
    return tuple(sorted((str(key), str(value)) for key, value in labels.items()))


class MetricStore:
    """Hold the most recent value per metric name and label set."""

    def __init__(self) -> None:
        """Create an open, empty store."""
        self._lock = threading.Lock()
        self._values: dict[str, dict[Labels, int | float]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        """Return whether shutdown has begun."""
        return self._closed

    def close(self) -> None:
        """Reject every subsequent write."""
        with self._lock:
            self._closed = True

    def set(
        self,
        name: str,
        value: int | float,
        labels: cabc.Mapping[str, str] | None = None,
    ) -> bool:
        """Store ``value`` for ``name``; return ``False`` once closed."""
        with self._lock:
            if self._closed:
                log_debug(logger, "store closed; dropped write to %s", name)
                return False
            self._values.setdefault(name, {})[_freeze(labels)] = value
            return True

    def set_many(
        self,
        name: str,
        values: cabc.Iterable[LabeledValue],
        *,
        label_key: str = "label",
    ) -> bool:
        """Replace every labelled value for ``name`` in one locked write.

        Labels missing from ``values`` are dropped, so a label that leaves a
        result set stops being exported.
        """
        entries = {_freeze({label_key: item.label}): item.value for item in values}
        with self._lock:
            if self._closed:
                log_debug(logger, "store closed; dropped write to %s", name)
                return False
            self._values[name] = entries
            return True

    def publish(
        self, name: str, value: MetricValue, *, label_key: str = "label"
    ) -> bool:
        """Store a strategy result, scalar or labelled."""
        if isinstance(value, list):
            return self.set_many(name, value, label_key=label_key)
        return self.set(name, value)

    def get(
        self, name: str, labels: cabc.Mapping[str, str] | None = None
    ) -> int | float | None:
        """Return the latest value for ``name`` and ``labels``, if any."""
        with self._lock:
            return self._values.get(name, {}).get(_freeze(labels))

    def names(self) -> list[str]:
        """Return the metric names written so far, sorted."""
        with self._lock:
            return sorted(self._values)

    def snapshot(self) -> dict[str, list[dict[str, object]]]:
        """Return a JSON-ready copy of every stored data point."""
        with self._lock:
            return {
                name: [
                    {"labels": dict(labels), "value": value}
                    for labels, value in points.items()
                ]
                for name, points in sorted(self._values.items())
            }
