"""Query-based and command-based metric extraction strategies.

A strategy turns one metric identifier into a value, using whichever live
resource the tick provides: an SQLAlchemy ``AsyncConnection`` for queries
or a :class:`ProbeCommandExecutor` for probe scripts. Strategies never
mutate external state. They raise :class:`TransientIOFailure` when the
resource fails and :class:`MalformedInputFailure` when its output has the
wrong shape; the dispatcher turns both into a per-metric failure signal.
"""

from __future__ import annotations

import dataclasses as dc
import decimal
import enum
import re
import typing as typ

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tidemark.collection.results import LabeledValue
from tidemark.errors import (
    ConfigurationFailure,
    MalformedInputFailure,
    TransientIOFailure,
)
from tidemark.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncConnection

    from tidemark.collection.executor import ProbeCommandExecutor
    from tidemark.collection.results import MetricValue

logger = get_logger(__name__)

_READ_ONLY_STATEMENT = re.compile(r"^\s*(select|with|values)\b", re.IGNORECASE)


class ResultShape(enum.StrEnum):
    """How a query result set maps to a metric value."""

    SCALAR = "scalar"
    LABELED = "labeled"


class NumberType(enum.StrEnum):
    """Numeric type a probe token is parsed as."""

    INT = "int"
    FLOAT = "float"


@dc.dataclass(frozen=True, slots=True)
class CollectionContext:
    """Resources acquired for one tick and shared by its metrics."""

    connection: AsyncConnection | None = None
    executor: ProbeCommandExecutor | None = None


def _to_number(metric_id: str, value: object) -> int | float:
    """Coerce a driver value to ``int`` or ``float``."""
    match value:
        case bool():
            return int(value)
        case int() | float():
            return value
        case decimal.Decimal():
            if value.is_finite() and value == value.to_integral_value():
                return int(value)
            return float(value)
        case str():
            return _parse_token(metric_id, value.strip(), NumberType.FLOAT)
        case _:
            raise MalformedInputFailure.not_numeric(metric_id, value)


async def _end_failed_transaction(connection: AsyncConnection) -> None:
    """Roll back so later metrics in the tick start a fresh transaction."""
    try:
        await connection.rollback()
    except SQLAlchemyError as exc:
        log_warning(logger, "rollback after failed query also failed: %s", exc)


def _parse_token(metric_id: str, token: str, number_type: NumberType) -> int | float:
    try:
        if number_type == NumberType.INT:
            return int(token)
        return float(token)
    except ValueError as exc:
        raise MalformedInputFailure.not_numeric(metric_id, token) from exc


def _column_index(
    metric_id: str, keys: list[str], column: str | None, default: int
) -> int:
    if column is None:
        if default >= len(keys):
            raise MalformedInputFailure.missing_column(metric_id, f"#{default}")
        return default
    lowered = [key.lower() for key in keys]
    try:
        return lowered.index(column.lower())
    except ValueError as exc:
        raise MalformedInputFailure.missing_column(metric_id, column) from exc


@dc.dataclass(frozen=True, slots=True)
class QueryStrategy:
    """Collect a metric with a read-only SQL query.

    Attributes
    ----------
    metric_id
        Identifier used in failure messages.
    sql
        ``SELECT``/``WITH``/``VALUES`` statement with ``:name`` parameters.
    params
        Values bound to the statement's parameters.
    shape
        ``scalar`` reads the first row; ``labeled`` reads one
        :class:`LabeledValue` per row, in result order.
    value_column
        Column holding the value; defaults to the first column.
    label_column
        Column holding the label for ``labeled`` results; defaults to the
        second column.

    """

    metric_id: str
    sql: str
    params: cabc.Mapping[str, object] = dc.field(default_factory=dict)
    shape: ResultShape = ResultShape.SCALAR
    value_column: str | None = None
    label_column: str | None = None

    def __post_init__(self) -> None:
        """Reject statements that could modify the database."""
        if not _READ_ONLY_STATEMENT.match(self.sql):
            raise ConfigurationFailure.not_read_only(self.metric_id)

    async def collect(self, context: CollectionContext) -> MetricValue:
        """Execute the query over the tick's connection."""
        if context.connection is None:
            raise ConfigurationFailure.missing(
                f"database connection for {self.metric_id}"
            )
        try:
            result = await context.connection.execute(
                text(self.sql), dict(self.params)
            )
            keys = list(result.keys())
            rows = result.all()
        except SQLAlchemyError as exc:
            await _end_failed_transaction(context.connection)
            raise TransientIOFailure.query_failed(self.metric_id, exc) from exc

        value_index = _column_index(self.metric_id, keys, self.value_column, 0)
        if self.shape == ResultShape.SCALAR:
            if not rows:
                raise MalformedInputFailure.empty_result(self.metric_id)
            return _to_number(self.metric_id, rows[0][value_index])

        label_index = _column_index(self.metric_id, keys, self.label_column, 1)
        return [
            LabeledValue(
                label=str(row[label_index]),
                value=_to_number(self.metric_id, row[value_index]),
            )
            for row in rows
        ]


@dc.dataclass(frozen=True, slots=True)
class CommandStrategy:
    """Collect a metric from a fixed token of a probe script's output.

    The first non-blank output line is split on ``delimiter`` (any
    whitespace when ``None``) and the token at ``position`` is parsed as
    ``number_type``.
    """

    metric_id: str
    script: str
    position: int = 0
    delimiter: str | None = None
    number_type: NumberType = NumberType.INT

    def __post_init__(self) -> None:
        """Reject a delimiter that cannot split a line."""
        if self.delimiter == "":
            raise ConfigurationFailure.invalid(
                f"delimiter for {self.metric_id}", "must not be empty"
            )

    async def collect(self, context: CollectionContext) -> MetricValue:
        """Run the probe through the tick's executor and parse its output."""
        if context.executor is None:
            raise ConfigurationFailure.missing(
                f"probe executor for {self.metric_id}"
            )
        output = await context.executor.run(self.script)
        line = next((line for line in output.splitlines() if line.strip()), None)
        if line is None:
            raise MalformedInputFailure.empty_output(self.script)

        tokens = [token.strip() for token in line.strip().split(self.delimiter)]
        if not 0 <= self.position < len(tokens):
            raise MalformedInputFailure.missing_token(
                self.script, self.position, line
            )
        return _parse_token(self.metric_id, tokens[self.position], self.number_type)


type Strategy = QueryStrategy | CommandStrategy

__all__ = [
    "CollectionContext",
    "CommandStrategy",
    "NumberType",
    "QueryStrategy",
    "ResultShape",
    "Strategy",
]
