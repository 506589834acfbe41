"""Collector configuration loaded from YAML and the environment.

Usage
-----
Load the file named by ``TIDEMARK_CONFIG``, applying environment overrides:

>>> config = load_config_from_env()
>>> config.poll_interval
60.0

A minimal file::

    poll_interval: 30
    database:
      url: postgresql+asyncpg://monitor@db/sysmaster
    tiers:
      fast: 5
    metrics:
      - kind: query
        id: db.session.count
        tier: fast
        sql: SELECT COUNT(1) FROM syssessions
      - kind: query
        id: db.transaction.rate
        tier: fast
        sql: SELECT COUNT(1) FROM systrans
        rate: true

"""

from __future__ import annotations

import os
import typing as typ
from pathlib import Path

import msgspec
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from tidemark.aggregation.pricing import PriceTable, TokenPrice
from tidemark.collection.strategies import (
    CommandStrategy,
    NumberType,
    QueryStrategy,
    ResultShape,
)
from tidemark.errors import ConfigurationFailure

CONFIG_PATH_ENV = "TIDEMARK_CONFIG"
DATABASE_URL_ENV = "TIDEMARK_DATABASE_URL"
DEFAULT_TIER = "default"
LLM_TIER = "llm"
YAML_VERSION = (1, 2)

PositiveSeconds = typ.Annotated[float, msgspec.Meta(gt=0)]


class LLMPrice(msgspec.Struct, kw_only=True):
    """Token prices for one provider, per thousand tokens."""

    prompt_per_1k: float = 0.0
    complete_per_1k: float = 0.0


class LLMSettings(msgspec.Struct, kw_only=True):
    """Settings for pushed LLM usage aggregation.

    Attributes
    ----------
    enabled : bool
        Whether the ``llm`` tier is scheduled.
    poll_interval : float, optional
        Reduction interval in seconds; the global poll interval when unset.
    prices : dict[str, LLMPrice]
        Token prices keyed by ``ai_system``.

    """

    enabled: bool = True
    poll_interval: PositiveSeconds | None = None
    prices: dict[str, LLMPrice] = msgspec.field(default_factory=dict)


class DatabaseSettings(msgspec.Struct, kw_only=True):
    """Connection settings for query-based metrics."""

    url: str | None = None


class ProbeSettings(msgspec.Struct, kw_only=True):
    """Location and limits for command-based probe scripts."""

    directory: str | None = None
    timeout_seconds: PositiveSeconds = 10.0
    env: dict[str, str] = msgspec.field(default_factory=dict)


class QueryMetric(msgspec.Struct, kw_only=True, tag="query", tag_field="kind"):
    """A metric collected with a read-only SQL query.

    ``rate`` marks a cumulative counter published as growth per second.
    """

    id: str
    sql: str
    params: dict[str, typ.Any] = msgspec.field(default_factory=dict)
    shape: ResultShape = ResultShape.SCALAR
    value_column: str | None = None
    label_column: str | None = None
    tier: str | None = None
    rate: bool = False

    def to_strategy(self) -> QueryStrategy:
        """Return the collection strategy for this metric."""
        return QueryStrategy(
            metric_id=self.id,
            sql=self.sql,
            params=self.params,
            shape=self.shape,
            value_column=self.value_column,
            label_column=self.label_column,
        )


class CommandMetric(msgspec.Struct, kw_only=True, tag="command", tag_field="kind"):
    """A metric parsed from a probe script's output.

    ``rate`` marks a cumulative counter published as growth per second.
    """

    id: str
    script: str
    position: typ.Annotated[int, msgspec.Meta(ge=0)] = 0
    delimiter: str | None = None
    number_type: NumberType = NumberType.INT
    tier: str | None = None
    rate: bool = False

    def to_strategy(self) -> CommandStrategy:
        """Return the collection strategy for this metric."""
        return CommandStrategy(
            metric_id=self.id,
            script=self.script,
            position=self.position,
            delimiter=self.delimiter,
            number_type=self.number_type,
        )


class CollectorConfig(msgspec.Struct, kw_only=True):
    """Top-level collector configuration.

    Attributes
    ----------
    poll_interval : float
        Interval in seconds for the ``default`` tier and, unless overridden,
        the ``llm`` tier.
    llm : LLMSettings
        Pushed LLM usage settings.
    database : DatabaseSettings
        Database used by query-based metrics.
    probes : ProbeSettings
        Probe script directory used by command-based metrics.
    tiers : dict[str, float]
        Custom tier names mapped to their intervals in seconds.
    metrics : list[QueryMetric | CommandMetric]
        Metric definitions, each optionally assigned to a tier.

    """

    poll_interval: PositiveSeconds = 60.0
    llm: LLMSettings = msgspec.field(default_factory=LLMSettings)
    database: DatabaseSettings = msgspec.field(default_factory=DatabaseSettings)
    probes: ProbeSettings = msgspec.field(default_factory=ProbeSettings)
    tiers: dict[str, PositiveSeconds] = msgspec.field(default_factory=dict)
    metrics: list[QueryMetric | CommandMetric] = msgspec.field(default_factory=list)

    @property
    def llm_interval(self) -> float:
        """Return the effective reduction interval."""
        return self.llm.poll_interval or self.poll_interval

    def price_table(self) -> PriceTable:
        """Return the configured prices as a :class:`PriceTable`."""
        return PriceTable(
            {
                source: TokenPrice(price.prompt_per_1k, price.complete_per_1k)
                for source, price in self.llm.prices.items()
            }
        )

    def tier_intervals(self) -> dict[str, float]:
        """Return the collection tiers to schedule, excluding ``llm``."""
        return dict(self.tiers) if self.tiers else {DEFAULT_TIER: self.poll_interval}

    def metrics_by_tier(self) -> dict[str, list[str]]:
        """Group metric ids by the tier that collects them.

        Metrics without a tier join the ``default`` tier when no custom tiers
        are configured.
        """
        grouped: dict[str, list[str]] = {name: [] for name in self.tier_intervals()}
        for metric in self.metrics:
            grouped[metric.tier or DEFAULT_TIER].append(metric.id)
        return grouped


def _tier_issues(config: CollectorConfig) -> list[str]:
    issues: list[str] = []
    if LLM_TIER in config.tiers:
        issues.append(f"tier name {LLM_TIER!r} is reserved")
    for metric in config.metrics:
        if metric.tier is None:
            if config.tiers:
                issues.append(f"metric {metric.id!r} must name one of the tiers")
        elif metric.tier not in config.tiers:
            issues.append(
                f"metric {metric.id!r} references unknown tier {metric.tier!r}"
            )
    return issues


def _metric_issues(metric: QueryMetric | CommandMetric) -> list[str]:
    issues: list[str] = []
    if isinstance(metric, QueryMetric):
        if metric.rate and metric.shape != ResultShape.SCALAR:
            issues.append(f"metric {metric.id!r} must be scalar to be a rate")
    elif metric.delimiter == "":
        issues.append(f"metric {metric.id!r} has an empty delimiter")
    return issues


def validate_config(config: CollectorConfig) -> CollectorConfig:
    """Check cross-field rules, returning ``config`` when all pass.

    Raises
    ------
    ConfigurationFailure
        Listing every problem found.

    """
    issues = _tier_issues(config)
    seen: set[str] = set()
    for metric in config.metrics:
        if metric.id in seen:
            issues.append(f"metric {metric.id!r} is defined more than once")
        seen.add(metric.id)
        issues.extend(_metric_issues(metric))

    kinds = {type(metric) for metric in config.metrics}
    if QueryMetric in kinds and not config.database.url:
        issues.append("database.url is required for query metrics")
    if CommandMetric in kinds and not config.probes.directory:
        issues.append("probes.directory is required for command metrics")

    if issues:
        raise ConfigurationFailure.from_issues(issues)
    return config


def parse_config(raw: object) -> CollectorConfig:
    """Convert a decoded YAML document into a validated configuration."""
    if raw is None:
        raw = {}
    try:
        config = msgspec.convert(raw, type=CollectorConfig)
    except msgspec.ValidationError as exc:
        raise ConfigurationFailure.invalid("configuration", exc) from exc
    return validate_config(config)


def load_config(path: Path | str) -> CollectorConfig:
    """Parse a YAML configuration file using a YAML 1.2 loader."""
    try:
        loaded = _yaml().load(Path(path).read_text(encoding="utf-8"))
    except (OSError, YAMLError) as exc:
        raise ConfigurationFailure.invalid(str(path), exc) from exc
    return parse_config(loaded)


def load_config_from_env() -> CollectorConfig:
    """Load configuration from ``TIDEMARK_CONFIG`` with environment overrides.

    ``TIDEMARK_DATABASE_URL``, when set, replaces ``database.url``. Without
    ``TIDEMARK_CONFIG`` the defaults apply, which schedules LLM aggregation
    only.
    """
    raw_path = os.environ.get(CONFIG_PATH_ENV, "").strip()
    config = load_config(raw_path) if raw_path else parse_config({})

    database_url = os.environ.get(DATABASE_URL_ENV, "").strip()
    if database_url:
        config.database = DatabaseSettings(url=database_url)
        config = validate_config(config)
    return config


def _yaml() -> YAML:
    yaml = YAML(typ="safe")
    yaml.version = YAML_VERSION
    yaml.allow_duplicate_keys = False
    return yaml


__all__ = [
    "CONFIG_PATH_ENV",
    "DATABASE_URL_ENV",
    "DEFAULT_TIER",
    "LLM_TIER",
    "CollectorConfig",
    "CommandMetric",
    "DatabaseSettings",
    "LLMPrice",
    "LLMSettings",
    "ProbeSettings",
    "QueryMetric",
    "load_config",
    "load_config_from_env",
    "parse_config",
    "validate_config",
]
