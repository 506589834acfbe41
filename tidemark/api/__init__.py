"""tidemark HTTP API layer.

This package provides the Falcon Asynchronous Server Gateway Interface
(ASGI) application exposing health probes and the collected metrics.

Usage
-----
Create and run the application::

    from tidemark.api import create_app

    app = create_app()           # health-only mode
    app = create_app(collector)  # runs the collector, serves /metrics

Public API
----------
create_app
    Application factory that configures the Falcon ASGI app with health
    endpoints and, when a collector is given, the lifespan middleware and
    metrics endpoint.
"""

from tidemark.api.app import create_app

__all__ = ["create_app"]
