"""Structured log events for collection, reduction and scheduling.

Every event is a single log line prefixed with a bracketed event identifier
followed by ``key=value`` pairs, so log aggregators can parse tick health,
per-metric failures and reduction throughput without a metrics backend.

Usage
-----
>>> events = CollectionEventLogger()
>>> events.log_tick_completed(
...     tier="fast", collected=3, failed=0, duration=dt.timedelta(seconds=0.2)
... )

"""

from __future__ import annotations

import enum
import typing as typ

from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError

from tidemark.errors import (
    ConfigurationFailure,
    MalformedInputFailure,
    TransientIOFailure,
)
from tidemark.logging import get_logger, log_debug, log_error, log_info, log_warning

if typ.TYPE_CHECKING:
    import datetime as dt

    from tidemark.aggregation.models import IntervalMetricRecord

logger = get_logger(__name__)


class CollectionEventType(enum.StrEnum):
    """Event identifiers emitted by the collector."""

    TIER_REGISTERED = "scheduler.tier.registered"
    SCHEDULER_STARTED = "scheduler.started"
    SCHEDULER_STOPPED = "scheduler.stopped"
    TICK_COMPLETED = "collection.tick.completed"
    TICK_FAILED = "collection.tick.failed"
    METRIC_FAILED = "collection.metric.failed"
    CYCLE_REDUCED = "aggregation.cycle.reduced"
    EVENT_REJECTED = "aggregation.event.rejected"
    RECORD_EMITTED = "aggregation.record.emitted"


class ErrorCategory(enum.StrEnum):
    """Coarse failure categories used for alert routing."""

    TRANSIENT = "transient"
    MALFORMED_INPUT = "malformed_input"
    CONFIGURATION = "configuration"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATABASE_ERROR = "database_error"
    PROBE_IO = "probe_io"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (TransientIOFailure, ErrorCategory.TRANSIENT),
    (MalformedInputFailure, ErrorCategory.MALFORMED_INPUT),
    (ConfigurationFailure, ErrorCategory.CONFIGURATION),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
    (OSError, ErrorCategory.PROBE_IO),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Return the alerting category for ``exc``.

    Wrapped failures are categorized by their own class; the underlying
    cause only matters for raw exceptions escaping a strategy.
    """
    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category
    return ErrorCategory.UNKNOWN


class CollectionEventLogger:
    """Emit structured collector events via femtologging."""

    def log_tier_registered(self, *, tier: str, interval_seconds: float) -> None:
        """Log a tier joining the scheduler."""
        log_info(
            logger,
            "[%s] tier=%s interval_seconds=%.3f",
            CollectionEventType.TIER_REGISTERED,
            tier,
            interval_seconds,
        )

    def log_scheduler_started(self, *, tiers: int) -> None:
        """Log scheduler start with the number of tiers."""
        log_info(logger, "[%s] tiers=%d", CollectionEventType.SCHEDULER_STARTED, tiers)

    def log_scheduler_stopped(self, *, tiers: int) -> None:
        """Log scheduler shutdown once every tier has finished."""
        log_info(logger, "[%s] tiers=%d", CollectionEventType.SCHEDULER_STOPPED, tiers)

    def log_tick_completed(
        self,
        *,
        tier: str,
        collected: int,
        failed: int,
        duration: dt.timedelta,
    ) -> None:
        """Log a tick that ran to completion, even with failed metrics."""
        log_info(
            logger,
            "[%s] tier=%s collected=%d failed=%d duration_seconds=%.3f",
            CollectionEventType.TICK_COMPLETED,
            tier,
            collected,
            failed,
            duration.total_seconds(),
        )

    def log_tick_failed(
        self,
        *,
        tier: str,
        error: BaseException,
        duration: dt.timedelta,
    ) -> None:
        """Log a tick aborted by an exception; the tier keeps its schedule."""
        log_error(
            logger,
            "[%s] tier=%s duration_seconds=%.3f error_type=%s "
            "error_category=%s error_message=%s",
            CollectionEventType.TICK_FAILED,
            tier,
            duration.total_seconds(),
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )

    def log_metric_failed(self, *, metric_id: str, error: BaseException) -> None:
        """Log one metric failing; its previous value stays exported."""
        log_warning(
            logger,
            "[%s] metric_id=%s error_type=%s error_category=%s error_message=%s",
            CollectionEventType.METRIC_FAILED,
            metric_id,
            type(error).__name__,
            categorize_error(error),
            str(error),
        )

    def log_event_rejected(self, *, entity_id: str, error: BaseException) -> None:
        """Log an event skipped while folding a cycle."""
        log_warning(
            logger,
            "[%s] entity_id=%s error_type=%s error_message=%s",
            CollectionEventType.EVENT_REJECTED,
            entity_id,
            type(error).__name__,
            str(error),
        )

    def log_cycle_reduced(
        self,
        *,
        events: int,
        entities: int,
        interval_seconds: float,
    ) -> None:
        """Log the outcome of one reduction cycle."""
        log_info(
            logger,
            "[%s] events=%d entities=%d interval_seconds=%.3f",
            CollectionEventType.CYCLE_REDUCED,
            events,
            entities,
            interval_seconds,
        )

    def log_record(self, record: IntervalMetricRecord) -> None:
        """Log one interval record at DEBUG level."""
        log_debug(
            logger,
            "[%s] entity_id=%s ai_system=%s avg_duration_ms=%.3f "
            "max_duration_ms=%.3f tokens_per_second=%.6f "
            "cost_per_second=%.6f requests_per_second=%.6f",
            CollectionEventType.RECORD_EMITTED,
            record.entity_id,
            record.ai_system,
            record.avg_duration,
            record.max_duration,
            record.tokens_per_second,
            record.cost_per_second,
            record.requests_per_second,
        )


__all__ = [
    "CollectionEventLogger",
    "CollectionEventType",
    "ErrorCategory",
    "categorize_error",
]
