"""Independent fixed-delay polling tiers under one scheduler.

Each tier is an asyncio task that waits, runs its task, then waits its
interval again, measured from the end of the previous run. A slow run
therefore delays its own tier only. Every run sits inside a failure
boundary: an exception is logged and the tier keeps its schedule.

Usage
-----
>>> scheduler = MultiTierScheduler()
>>> scheduler.register_tier("fast", 5, collect_fast)
>>> scheduler.start()
>>> ...
>>> await scheduler.stop()

"""

from __future__ import annotations

import asyncio
import inspect
import typing as typ

from tidemark.common.time import utcnow
from tidemark.errors import ConfigurationFailure
from tidemark.observability import CollectionEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc

type TierTask = cabc.Callable[[], object]
type Sleep = cabc.Callable[[float], cabc.Awaitable[object]]

DEFAULT_INITIAL_DELAY_S = 1.0


def _is_async(task: TierTask) -> bool:
    return inspect.iscoroutinefunction(task) or inspect.iscoroutinefunction(
        getattr(task, "__call__", None)  # noqa: B004
    )


class PollingTier:
    """One named interval and the task it runs.

    Attributes
    ----------
    runs
        Number of completed invocations, successful or not.
    failures
        Number of invocations that raised.
    in_tick
        Whether an invocation is currently running.

    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        task: TierTask,
        *,
        events: CollectionEventLogger,
    ) -> None:
        """Bind the tier to its task."""
        self.name = name
        self.interval_seconds = interval_seconds
        self.task = task
        self.runs = 0
        self.failures = 0
        self.in_tick = False
        self._events = events

    async def run_once(self) -> bool:
        """Invoke the task once; return ``False`` if it raised."""
        started = utcnow()
        self.in_tick = True
        try:
            await self._invoke()
        except Exception as exc:  # noqa: BLE001 - per-tick boundary
            self.failures += 1
            self._events.log_tick_failed(
                tier=self.name, error=exc, duration=utcnow() - started
            )
            return False
        finally:
            self.in_tick = False
            self.runs += 1
        return True

    async def _invoke(self) -> None:
        if _is_async(self.task):
            await typ.cast("cabc.Awaitable[object]", self.task())
            return
        result = await asyncio.to_thread(self.task)
        if inspect.isawaitable(result):
            await result


class MultiTierScheduler:
    """Run several polling tiers concurrently.

    Parameters
    ----------
    initial_delay
        Seconds every tier waits before its first run.
    sleep
        Awaitable sleep used between runs; replace it to drive the
        schedule from simulated time.
    events
        Structured event logger.

    """

    def __init__(
        self,
        *,
        initial_delay: float = DEFAULT_INITIAL_DELAY_S,
        sleep: Sleep = asyncio.sleep,
        events: CollectionEventLogger | None = None,
    ) -> None:
        """Create a scheduler with no tiers."""
        self.initial_delay = initial_delay
        self._sleep = sleep
        self._events = events or CollectionEventLogger()
        self._tiers: dict[str, PollingTier] = {}
        self._runners: dict[str, asyncio.Task[None]] = {}
        self._stopping = False

    @property
    def tiers(self) -> list[PollingTier]:
        """Return registered tiers in registration order."""
        return list(self._tiers.values())

    @property
    def running(self) -> bool:
        """Return whether tiers are scheduled and shutdown has not begun."""
        return bool(self._runners) and not self._stopping

    def tier(self, name: str) -> PollingTier:
        """Return the tier registered under ``name``."""
        return self._tiers[name]

    def register_tier(
        self, name: str, interval_seconds: float, task: TierTask
    ) -> PollingTier:
        """Add a tier running ``task`` every ``interval_seconds``.

        Raises
        ------
        ConfigurationFailure
            If the name is taken, the interval is not positive, or the
            scheduler has already started.

        """
        if self._runners or self._stopping:
            raise ConfigurationFailure.invalid(
                f"tier {name!r}", "tiers cannot be added after start"
            )
        if name in self._tiers:
            raise ConfigurationFailure.duplicate("tier", name)
        if interval_seconds <= 0:
            raise ConfigurationFailure.invalid(
                f"tiers.{name}", f"interval must be positive, got {interval_seconds}"
            )
        tier = PollingTier(name, interval_seconds, task, events=self._events)
        self._tiers[name] = tier
        self._events.log_tier_registered(tier=name, interval_seconds=interval_seconds)
        return tier

    def start(self) -> None:
        """Schedule every tier on the running event loop."""
        if self._runners or self._stopping:
            message = "scheduler has already been started"
            raise RuntimeError(message)
        for name, tier in self._tiers.items():
            self._runners[name] = asyncio.create_task(
                self._run_tier(tier), name=f"tidemark-tier-{name}"
            )
        self._events.log_scheduler_started(tiers=len(self._runners))

    async def stop(self) -> None:
        """Stop scheduling new runs and wait for in-flight runs to finish."""
        if self._stopping:
            return
        self._stopping = True
        for name, runner in self._runners.items():
            if not self._tiers[name].in_tick:
                runner.cancel()
        await asyncio.gather(*self._runners.values(), return_exceptions=True)
        self._events.log_scheduler_stopped(tiers=len(self._runners))

    async def _run_tier(self, tier: PollingTier) -> None:
        delay = self.initial_delay
        while not self._stopping:
            await self._sleep(delay)
            if self._stopping:
                break
            await tier.run_once()
            delay = tier.interval_seconds
