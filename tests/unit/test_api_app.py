"""Unit tests for the Falcon application and its collector wiring."""

from __future__ import annotations

from http import HTTPStatus

import falcon.asgi
import falcon.testing
import pytest

from tidemark.api import create_app
from tidemark.api.health.resources import ReadyResource
from tidemark.collector import Collector
from tidemark.config import parse_config
from tidemark.scheduler import MultiTierScheduler
from tests.helpers.virtual_clock import VirtualClock


@pytest.fixture
def collector() -> Collector:
    """Return an LLM-only collector driven by a simulated clock."""
    return Collector.from_config(
        parse_config({}), scheduler=MultiTierScheduler(sleep=VirtualClock().sleep)
    )


class TestHealthOnlyApp:
    """Tests for the app without a collector."""

    def test_health_and_ready(self) -> None:
        """Both probes answer 200 without a collector."""
        client = falcon.testing.TestClient(create_app())

        assert client.simulate_get("/health").json == {"status": "ok"}
        result = client.simulate_get("/ready")
        assert result.status_code == HTTPStatus.OK
        assert result.json == {"status": "ready"}

    def test_metrics_route_absent(self) -> None:
        """``/metrics`` is only served when a collector exists."""
        client = falcon.testing.TestClient(create_app())

        assert client.simulate_get("/metrics").status_code == HTTPStatus.NOT_FOUND


class TestReadyResource:
    """Tests for readiness before the collector starts."""

    def test_not_running_collector_is_starting(self, collector: Collector) -> None:
        """Readiness reports 503 until the scheduler is running."""
        app = falcon.asgi.App()
        app.add_route("/ready", ReadyResource(collector))

        result = falcon.testing.TestClient(app).simulate_get("/ready")

        assert result.status_code == HTTPStatus.SERVICE_UNAVAILABLE
        assert result.json == {"status": "starting"}


class TestCollectorApp:
    """Tests for the app running a collector through the ASGI lifespan."""

    @pytest.mark.asyncio
    async def test_lifespan_starts_and_stops_collector(
        self, collector: Collector
    ) -> None:
        """The collector runs between lifespan startup and shutdown."""
        app = create_app(collector)

        async with falcon.testing.ASGIConductor(app) as conductor:
            assert collector.running
            result = await conductor.simulate_get("/ready")
            assert result.status_code == HTTPStatus.OK
            assert result.json == {"status": "ready"}

        assert not collector.running
        assert collector.store.closed

    @pytest.mark.asyncio
    async def test_metrics_serves_store_snapshot(self, collector: Collector) -> None:
        """``/metrics`` returns every stored data point."""
        collector.store.set("db.session.count", 3)
        collector.store.set("llm.tokens", 1.5, {"entity_id": "m1", "ai_system": "x"})
        app = create_app(collector)

        async with falcon.testing.ASGIConductor(app) as conductor:
            result = await conductor.simulate_get("/metrics")

        assert result.status_code == HTTPStatus.OK
        assert result.json == {
            "db.session.count": [{"labels": {}, "value": 3}],
            "llm.tokens": [
                {"labels": {"ai_system": "x", "entity_id": "m1"}, "value": 1.5}
            ],
        }
