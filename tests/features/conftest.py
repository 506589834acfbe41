"""Shared fixtures for BDD feature tests."""

from __future__ import annotations

import pytest

from tidemark.aggregation import AGENTLESS_MODE_ENV


@pytest.fixture(autouse=True)
def _without_agentless_mode(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep scenarios independent of the host's agentless setting."""
    monkeypatch.delenv(AGENTLESS_MODE_ENV, raising=False)
