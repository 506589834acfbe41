"""tidemark runtime entrypoint.

This module provides the ASGI application factory used by Granian. It
loads the collector configuration, builds the :class:`Collector` and
delegates to :func:`tidemark.api.app.create_app`, which runs the collector
for the server's lifetime.

Configuration is driven by environment variables:

- ``TIDEMARK_HOST``: Bind address (default ``0.0.0.0``)
- ``TIDEMARK_PORT``: Listen port (default ``8080``)
- ``TIDEMARK_LOG_LEVEL``: Log level (default ``INFO``)
- ``TIDEMARK_CONFIG``: Path to the YAML configuration (optional; LLM
  aggregation only when unset)
- ``TIDEMARK_DATABASE_URL``: Overrides ``database.url``

The runtime exposes no ingestion endpoint for pushed LLM usage. Until an
embedding process feeds ``Collector.submit`` (for example with events from
:func:`tidemark.aggregation.decode_event`), the ``llm`` tier reduces an
empty table and exports nothing.

Run the service directly with ``python -m tidemark.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from tidemark.errors import ConfigurationFailure
from tidemark.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

# TCP port number range limits
_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid TIDEMARK_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def create_app() -> falcon.asgi.App:
    """Create the Falcon ASGI application with a configured collector.

    Raises
    ------
    SystemExit
        If the configuration is missing required settings or invalid;
        collection never starts in that case.

    """
    from tidemark.api.app import create_app as _create_api_app
    from tidemark.collector import Collector
    from tidemark.config import load_config_from_env

    try:
        collector = Collector.from_config(load_config_from_env())
    except ConfigurationFailure as exc:
        log_error(logger, "Invalid collector configuration: %s", exc)
        raise SystemExit(1) from exc
    return _create_api_app(collector)


def main() -> None:
    """Start the tidemark runtime server using Granian.

    Reads ``TIDEMARK_HOST``, ``TIDEMARK_PORT``, and ``TIDEMARK_LOG_LEVEL``
    from the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("TIDEMARK_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port_str = os.environ.get("TIDEMARK_PORT", "8080")
    port = _parse_port(port_str)
    log_level_str = os.environ.get("TIDEMARK_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid TIDEMARK_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting tidemark runtime on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "tidemark.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
