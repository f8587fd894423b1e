"""
Commission engine.

Pure calculation, upline loading, persistence and simulation.
"""

from tierpay.services.commission.distributor import CommissionDistributor
from tierpay.services.commission.engine import (
    Ancestor,
    CommissionPayout,
    DistributionResult,
    SkipReason,
    SkipRecord,
    calculate_commissions,
)
from tierpay.services.commission.simulation import (
    CommissionSimulator,
    SimulationResult,
)


__all__ = [
    "Ancestor",
    "CommissionDistributor",
    "CommissionPayout",
    "CommissionSimulator",
    "DistributionResult",
    "SimulationResult",
    "SkipReason",
    "SkipRecord",
    "calculate_commissions",
]
