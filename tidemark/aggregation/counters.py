"""Delta-safe folding of cumulative, restart-prone counters.

Producers report running totals that reset when they restart. A reading of
``request_count == 1`` is taken as the first observation of a fresh window
and credited in full. Otherwise only strict growth over a known non-zero
previous value is credited; anything else credits nothing, so a delta is
never negative and a restart that cannot be confirmed is never counted
twice.

A producer whose request counter wraps without passing through ``1`` is not
detected as restarted; its first reading after the wrap credits nothing.
"""

from __future__ import annotations

import typing as typ


class CounterStep(typ.NamedTuple):
    """Result of folding one cumulative reading."""

    delta: int
    last: int


def fold_counter(current: int, last: int, request_count: int) -> CounterStep:
    """Return the delta credited by ``current`` and the new last value.

    A zero reading carries no information: it credits nothing and leaves
    ``last`` unchanged.

    >>> fold_counter(100, 0, 1)
    CounterStep(delta=100, last=100)
    >>> fold_counter(130, 100, 2)
    CounterStep(delta=30, last=130)
    >>> fold_counter(90, 130, 3)
    CounterStep(delta=0, last=90)

    """
    if current == 0:
        return CounterStep(0, last)
    if request_count == 1:
        return CounterStep(current, current)
    if current > last and last != 0:
        return CounterStep(current - last, current)
    return CounterStep(0, current)


def fold_request_count(current: int, last: int) -> CounterStep:
    """Fold a request counter against its own previous value."""
    return fold_counter(current, last, current)


__all__ = ["CounterStep", "fold_counter", "fold_request_count"]
