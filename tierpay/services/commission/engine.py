"""
Commission calculation.

Pure function over an ancestor snapshot: no I/O, no clock, no globals. Used
both when a payment settles and for read-only simulations.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from tierpay.config.constants import MAX_COMMISSION_DEPTH, USD_QUANTUM
from tierpay.config.packages import PackageConfig


class SkipReason:
    """Reasons an ancestor earns nothing at a layer."""

    CIRCULAR_REFERENCE = "circular_reference"  # Terminates the walk
    NO_PACKAGE = "no_package"
    INACTIVE = "inactive"
    UNKNOWN_PACKAGE = "unknown_package"
    TIER_TOO_LOW = "tier_too_low"
    NO_RATE_FOR_LAYER = "no_rate_for_layer"
    ZERO_AMOUNT = "zero_amount"  # Rounded to $0.00


@dataclass(frozen=True)
class Ancestor:
    """One upline member as seen at settlement time."""

    user_id: int
    tier: str | None
    is_active: bool


@dataclass(frozen=True)
class CommissionPayout:
    """Commission owed to one ancestor."""

    beneficiary_user_id: int
    referred_user_id: int
    layer: int
    rate_percent: Decimal
    amount_usd: Decimal
    package: str
    notes: str


@dataclass(frozen=True)
class SkipRecord:
    """Ancestor that earned nothing at a layer."""

    user_id: int
    layer: int
    reason: str


@dataclass
class DistributionResult:
    """Outcome of one commission walk."""

    commission_base: Decimal
    payouts: list[CommissionPayout] = field(default_factory=list)
    skipped: list[SkipRecord] = field(default_factory=list)

    @property
    def total_commission(self) -> Decimal:
        """Sum of all payouts."""
        return sum((p.amount_usd for p in self.payouts), Decimal("0"))

    @property
    def cycle_detected(self) -> bool:
        """True if the walk stopped on a referral cycle."""
        return any(
            s.reason == SkipReason.CIRCULAR_REFERENCE for s in self.skipped
        )


def round_usd(amount: Decimal) -> Decimal:
    """Round to cents, half up."""
    return amount.quantize(USD_QUANTUM, rounding=ROUND_HALF_UP)


def calculate_commissions(
    buyer_id: int,
    commission_base: Decimal,
    ancestors: Sequence[Ancestor],
    catalog: Mapping[str, PackageConfig],
    max_depth: int = MAX_COMMISSION_DEPTH,
) -> DistributionResult:
    """
    Walk the upline and compute commissions.

    Every ancestor occupies a layer whether or not it earns. An ancestor
    earns at layer N only if it holds an active package whose level is at
    least N and which defines a rate for layer N. Each amount is rounded to
    cents independently.

    Args:
        buyer_id: User whose purchase settled
        commission_base: Full price, or the price difference for an upgrade
        ancestors: Upline from the direct referrer upward
        catalog: Package definitions keyed by tier
        max_depth: Deepest layer that can earn

    Returns:
        Payouts and skips in layer order
    """
    result = DistributionResult(commission_base=commission_base)
    visited = {buyer_id}
    layer = 1

    for ancestor in ancestors:
        if layer > max_depth:
            break

        if ancestor.user_id in visited:
            result.skipped.append(
                SkipRecord(ancestor.user_id, layer, SkipReason.CIRCULAR_REFERENCE)
            )
            break
        visited.add(ancestor.user_id)

        reason = None
        package = None
        if not ancestor.tier:
            reason = SkipReason.NO_PACKAGE
        elif not ancestor.is_active:
            reason = SkipReason.INACTIVE
        else:
            package = catalog.get(ancestor.tier.lower())
            if package is None:
                reason = SkipReason.UNKNOWN_PACKAGE
            elif package.level < layer:
                reason = SkipReason.TIER_TOO_LOW

        rate = package.rate_for_layer(layer) if package and not reason else None
        if reason is None and rate is None:
            reason = SkipReason.NO_RATE_FOR_LAYER

        if reason is None:
            amount = round_usd(commission_base * rate / Decimal("100"))
            if amount > 0:
                result.payouts.append(
                    CommissionPayout(
                        beneficiary_user_id=ancestor.user_id,
                        referred_user_id=buyer_id,
                        layer=layer,
                        rate_percent=rate,
                        amount_usd=amount,
                        package=package.name,
                        notes=(
                            f"L{layer} commission: {package.name} "
                            f"(lvl {package.level}) earns {rate}% on ${commission_base}"
                        ),
                    )
                )
            else:
                reason = SkipReason.ZERO_AMOUNT

        if reason is not None:
            result.skipped.append(SkipRecord(ancestor.user_id, layer, reason))

        layer += 1

    return result
