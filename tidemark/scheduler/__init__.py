"""Multi-tier polling scheduler.

Public API
----------
MultiTierScheduler
    Runs independent fixed-delay tiers with per-tick failure boundaries.
PollingTier
    One registered tier with its run and failure counts.

"""

from tidemark.scheduler.tiers import (
    DEFAULT_INITIAL_DELAY_S,
    MultiTierScheduler,
    PollingTier,
)

__all__ = ["DEFAULT_INITIAL_DELAY_S", "MultiTierScheduler", "PollingTier"]
