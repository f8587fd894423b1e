"""Treasury sweeps."""

from tierpay.services.treasury.sweeper import (
    PendingSweep,
    SweepBatchResult,
    SweepOutcome,
    SweepSummary,
    TreasurySweeper,
)


__all__ = [
    "PendingSweep",
    "SweepBatchResult",
    "SweepOutcome",
    "SweepSummary",
    "TreasurySweeper",
]
