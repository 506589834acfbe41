"""Expose the metric store as a JSON document."""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from tidemark.collection.store import MetricStore

__all__ = ["MetricsResource"]


class MetricsResource:
    """Serve ``{name: [{"labels": {...}, "value": v}, ...]}`` snapshots."""

    def __init__(self, store: MetricStore) -> None:
        """Bind the resource to the store it reads."""
        self._store = store

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /metrics requests."""
        resp.media = self._store.snapshot()
        resp.status = HTTPStatus.OK
