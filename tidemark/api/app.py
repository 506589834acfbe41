"""Application factory for the tidemark Falcon ASGI application.

Usage
-----
Create a health-only app (no collector)::

    app = create_app()

Create a full app that runs a collector for the server's lifetime::

    collector = Collector.from_config(config)
    app = create_app(collector)

"""

from __future__ import annotations

import typing as typ

import falcon.asgi

from tidemark.api.health.resources import HealthResource, ReadyResource

if typ.TYPE_CHECKING:
    from tidemark.collector import Collector

__all__ = ["create_app"]


def create_app(collector: Collector | None = None) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    collector
        Optional collector. When given, the app starts and stops it with the
        ASGI lifespan and serves its store at ``/metrics``. Otherwise only
        ``/health`` and ``/ready`` are registered.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    middleware: list[object] = []
    if collector is not None:
        from tidemark.api.middleware import CollectorLifespan

        middleware.append(CollectorLifespan(collector))

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(collector))

    if collector is not None:
        from tidemark.api.metrics import MetricsResource

        app.add_route("/metrics", MetricsResource(collector.store))

    return app
