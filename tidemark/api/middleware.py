"""Tie the collector's lifetime to the ASGI server's lifespan.

Usage
-----
Register the middleware when creating the Falcon app::

    app = falcon.asgi.App(middleware=[CollectorLifespan(collector)])

"""

from __future__ import annotations

import typing as typ

from tidemark.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from tidemark.collector import Collector

__all__ = ["CollectorLifespan"]

logger = get_logger(__name__)


class CollectorLifespan:
    """Falcon middleware starting and stopping a collector.

    Parameters
    ----------
    collector
        Collector started on ASGI ``lifespan.startup`` and stopped on
        ``lifespan.shutdown``.

    """

    def __init__(self, collector: Collector) -> None:
        """Initialize the middleware with the collector it manages."""
        self._collector = collector

    async def process_startup(self, _scope: dict[str, object], _event: object) -> None:
        """Start collection once the server is accepting connections."""
        self._collector.start()

    async def process_shutdown(
        self, _scope: dict[str, object], _event: object
    ) -> None:
        """Stop collection, awaiting in-flight ticks."""
        log_info(logger, "Shutting down collector")
        await self._collector.stop()
