"""Thread-safe buffer between event producers and the reduction cycle."""

from __future__ import annotations

import threading
import typing as typ

if typ.TYPE_CHECKING:
    from tidemark.aggregation.models import MetricEvent


class IngestionSink:
    """Collect pushed events until the next cycle drains them.

    Any number of producer threads may call :meth:`submit`; a single
    consumer calls :meth:`drain` once per cycle. The buffer is swapped under
    the lock, so every event lands in exactly one drain batch. Events within
    a batch carry no ordering guarantee.
    """

    def __init__(self) -> None:
        """Create an empty sink."""
        self._lock = threading.Lock()
        self._pending: list[MetricEvent] = []

    def submit(self, event: MetricEvent) -> None:
        """Buffer ``event`` for the next cycle."""
        with self._lock:
            self._pending.append(event)

    def drain(self) -> list[MetricEvent]:
        """Atomically take every buffered event, leaving the sink empty."""
        with self._lock:
            batch, self._pending = self._pending, []
        return batch

    def __len__(self) -> int:
        """Return the number of events awaiting the next drain."""
        with self._lock:
            return len(self._pending)
