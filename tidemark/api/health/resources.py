"""Health probe resources for liveness and readiness checks.

The liveness probe never touches the collector. The readiness probe reports
ready only once the collector's scheduler is running, so traffic and
scrapes wait until collection has started.

Usage
-----
Register health endpoints on the Falcon app::

    from tidemark.api.health.resources import HealthResource, ReadyResource

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(collector))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from tidemark.collector import Collector

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness probe resource returning ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with liveness status.

        """
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe resource.

    Responds ``{"status": "ready"}`` with HTTP 200 when there is no
    collector or the collector is running, otherwise
    ``{"status": "starting"}`` with HTTP 503.

    """

    def __init__(self, collector: Collector | None = None) -> None:
        """Bind the probe to the collector whose state it reports."""
        self._collector = collector

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests."""
        if self._collector is None or self._collector.running:
            resp.media = {"status": "ready"}
            resp.status = HTTPStatus.OK
            return
        resp.media = {"status": "starting"}
        resp.status = HTTPStatus.SERVICE_UNAVAILABLE
