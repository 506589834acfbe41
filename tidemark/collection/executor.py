"""Run read-only probe scripts from a fixed directory.

Probes are small shell scripts (``sql_count.sh``, ``io_read_count.sh`` ...)
that print delimited counters on their first output line. Only scripts
inside the configured directory may run.
"""

from __future__ import annotations

import asyncio
import os
import subprocess
import typing as typ
from pathlib import Path

from tidemark.errors import ConfigurationFailure, TransientIOFailure

if typ.TYPE_CHECKING:
    import collections.abc as cabc

_DEFAULT_TIMEOUT_S = 10.0


class ProbeCommandExecutor:
    """Execute probe scripts without blocking the event loop.

    Parameters
    ----------
    directory
        Directory holding the probe scripts.
    timeout_seconds
        Upper bound on a single probe run.
    env
        Extra environment variables for every probe, such as the database
        server name the probes inspect.

    """

    def __init__(
        self,
        directory: Path | str,
        *,
        timeout_seconds: float = _DEFAULT_TIMEOUT_S,
        env: cabc.Mapping[str, str] | None = None,
    ) -> None:
        """Bind the executor to its probe directory."""
        self.directory = Path(directory)
        self.timeout_seconds = timeout_seconds
        self._env = dict(env or {})

    def resolve(self, script: str) -> Path:
        """Return the absolute path of ``script`` inside the probe directory.

        Raises
        ------
        ConfigurationFailure
            If ``script`` escapes the probe directory.

        """
        root = self.directory.resolve()
        path = (root / script).resolve()
        if not path.is_relative_to(root):
            raise ConfigurationFailure.invalid(
                "probe script", f"{script!r} is outside {root}"
            )
        return path

    async def run(self, script: str) -> str:
        """Run ``script`` and return its standard output."""
        return await asyncio.to_thread(self._run, script)

    def _run(self, script: str) -> str:
        path = self.resolve(script)
        try:
            result = subprocess.run(  # noqa: S603  # fixed argv in probe dir
                [str(path)],
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                cwd=self.directory,
                env={**os.environ, **self._env},
            )
        except subprocess.TimeoutExpired as exc:
            raise TransientIOFailure.command_timeout(
                script, self.timeout_seconds
            ) from exc
        except OSError as exc:
            raise TransientIOFailure.command_failed(script, exc) from exc

        if result.returncode != 0:
            raise TransientIOFailure.command_exit(script, result.returncode)
        return result.stdout
