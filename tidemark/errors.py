"""Failure taxonomy for telemetry collection.

Collection failures are contained at the smallest unit possible: one
metric, one entity or one tick. Only ``ConfigurationFailure`` is fatal, and
only at startup.
"""

from __future__ import annotations

import enum

# Longest slice of probe output quoted in error messages
_OUTPUT_PREVIEW_LIMIT = 80


class FailureKind(enum.StrEnum):
    """Machine-readable failure classes."""

    TRANSIENT_IO = "transient_io"
    MALFORMED_INPUT = "malformed_input"
    CONFIGURATION = "configuration"


class TidemarkError(Exception):
    """Base class for all tidemark errors."""

    kind: FailureKind


class TransientIOFailure(TidemarkError):
    """Raised when a query or probe command cannot be executed.

    The affected metric is skipped for this cycle; the next scheduled tick
    is the only retry.
    """

    kind = FailureKind.TRANSIENT_IO

    @classmethod
    def query_failed(cls, metric_id: str, detail: object) -> TransientIOFailure:
        """Return an error for a query that raised during execution."""
        return cls(f"query for {metric_id} failed: {detail}")

    @classmethod
    def command_failed(cls, script: str, detail: object) -> TransientIOFailure:
        """Return an error for a probe command that could not run."""
        return cls(f"probe {script} failed: {detail}")

    @classmethod
    def command_exit(cls, script: str, returncode: int) -> TransientIOFailure:
        """Return an error for a probe command exiting non-zero."""
        return cls(f"probe {script} exited with status {returncode}")

    @classmethod
    def command_timeout(cls, script: str, timeout: float) -> TransientIOFailure:
        """Return an error for a probe command exceeding its timeout."""
        return cls(f"probe {script} timed out after {timeout:.1f}s")

    @classmethod
    def connection_failed(cls, tier: str, detail: object) -> TransientIOFailure:
        """Return an error when a tier cannot acquire its connection."""
        return cls(f"tier {tier} could not acquire a connection: {detail}")


class MalformedInputFailure(TidemarkError):
    """Raised when probe output, a result set or an event has the wrong shape."""

    kind = FailureKind.MALFORMED_INPUT

    @classmethod
    def empty_result(cls, metric_id: str) -> MalformedInputFailure:
        """Return an error for a scalar query yielding no rows."""
        return cls(f"query for {metric_id} returned no rows")

    @classmethod
    def missing_column(cls, metric_id: str, column: str) -> MalformedInputFailure:
        """Return an error for a result set lacking an expected column."""
        return cls(f"query for {metric_id} has no column {column!r}")

    @classmethod
    def not_numeric(cls, metric_id: str, value: object) -> MalformedInputFailure:
        """Return an error for a value that cannot be read as a number."""
        return cls(f"{metric_id} produced non-numeric value {value!r}")

    @classmethod
    def missing_token(
        cls, script: str, position: int, output: str
    ) -> MalformedInputFailure:
        """Return an error for probe output with too few tokens."""
        preview = output[:_OUTPUT_PREVIEW_LIMIT]
        return cls(f"probe {script} output has no token {position}: {preview!r}")

    @classmethod
    def empty_output(cls, script: str) -> MalformedInputFailure:
        """Return an error for a probe printing nothing."""
        return cls(f"probe {script} produced no output")

    @classmethod
    def invalid_event(cls, detail: object) -> MalformedInputFailure:
        """Return an error for an event payload failing validation."""
        return cls(f"invalid metric event: {detail}")


class ConfigurationFailure(TidemarkError):
    """Raised when a required setting is missing or invalid at startup."""

    kind = FailureKind.CONFIGURATION
    issues: tuple[str, ...] = ()

    @classmethod
    def missing(cls, setting: str) -> ConfigurationFailure:
        """Return an error for a required setting that was not provided."""
        return cls(f"{setting} is required")

    @classmethod
    def invalid(cls, setting: str, detail: object) -> ConfigurationFailure:
        """Return an error for a setting with an unusable value."""
        return cls(f"{setting} is invalid: {detail}")

    @classmethod
    def unknown_metric(cls, metric_id: str) -> ConfigurationFailure:
        """Return an error for a metric id with no registered strategy."""
        return cls(f"no collection strategy registered for {metric_id!r}")

    @classmethod
    def duplicate(cls, what: str, name: str) -> ConfigurationFailure:
        """Return an error for a name registered twice."""
        return cls(f"{what} {name!r} is already registered")

    @classmethod
    def not_read_only(cls, metric_id: str) -> ConfigurationFailure:
        """Return an error for a query that could mutate the database."""
        return cls(
            f"query for {metric_id} must be a SELECT, WITH or VALUES statement"
        )

    @classmethod
    def from_issues(cls, issues: list[str]) -> ConfigurationFailure:
        """Return one error aggregating every configuration problem found."""
        error = cls("invalid configuration: " + "; ".join(issues))
        error.issues = tuple(issues)
        return error


__all__ = [
    "ConfigurationFailure",
    "FailureKind",
    "MalformedInputFailure",
    "TidemarkError",
    "TransientIOFailure",
]
