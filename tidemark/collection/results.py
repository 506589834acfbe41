"""Values and failure signals produced by collection strategies."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import msgspec

if typ.TYPE_CHECKING:
    from tidemark.errors import FailureKind


class LabeledValue(msgspec.Struct, frozen=True):
    """One labelled sub-result, such as the size of a single table."""

    label: str
    value: int | float


type MetricValue = int | float | list[LabeledValue]


@dc.dataclass(frozen=True, slots=True)
class CollectionFailure:
    """Signal that one metric could not be collected this tick.

    The failure is returned instead of raised so the remaining metrics of
    the tick are still collected.
    """

    metric_id: str
    error: Exception

    @property
    def kind(self) -> FailureKind | None:
        """Return the failure class when the error is a tidemark error."""
        return getattr(self.error, "kind", None)


def is_failure(
    outcome: MetricValue | CollectionFailure,
) -> typ.TypeGuard[CollectionFailure]:
    """Return whether ``outcome`` is a failure signal."""
    return isinstance(outcome, CollectionFailure)


__all__ = ["CollectionFailure", "LabeledValue", "MetricValue", "is_failure"]
