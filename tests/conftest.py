"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from tidemark.collection.executor import ProbeCommandExecutor
from tidemark.collection.store import MetricStore
from tests.helpers.probes import write_probe

if typ.TYPE_CHECKING:
    from pathlib import Path

_SCHEMA = (
    "CREATE TABLE syssessions (sid INTEGER PRIMARY KEY, username TEXT)",
    "CREATE TABLE systabinfo (tabname TEXT PRIMARY KEY, nrows INTEGER)",
    "INSERT INTO syssessions (sid, username) VALUES (1, 'informix'), (2, 'app'), "
    "(3, 'app')",
    "INSERT INTO systabinfo (tabname, nrows) VALUES ('orders', 120), "
    "('customers', 45)",
)


@pytest_asyncio.fixture
async def sqlite_engine(tmp_path: Path) -> typ.AsyncIterator[AsyncEngine]:
    """Yield a file-backed SQLite engine seeded with monitoring tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'monitor.db'}")
    try:
        async with engine.begin() as conn:
            for statement in _SCHEMA:
                await conn.execute(text(statement))
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def probe_dir(tmp_path: Path) -> Path:
    """Return a directory holding a few executable probe scripts."""
    directory = tmp_path / "probes"
    directory.mkdir()
    write_probe(directory, "sql_count.sh", "echo '1200 37 5'")
    write_probe(directory, "appliance.sh", "echo '12;7.5;up'")
    write_probe(directory, "garbage.sh", "echo 'not-a-number'")
    write_probe(directory, "silent.sh", "true")
    write_probe(directory, "broken.sh", "echo oops >&2; exit 3")
    return directory


@pytest.fixture
def executor(probe_dir: Path) -> ProbeCommandExecutor:
    """Return an executor bound to ``probe_dir``."""
    return ProbeCommandExecutor(probe_dir, timeout_seconds=5.0)


@pytest.fixture
def store() -> MetricStore:
    """Return an empty, open metric store."""
    return MetricStore()
