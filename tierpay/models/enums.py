"""
Enums shared by models and services.
"""

from enum import Enum


class PaymentSessionStatus(str, Enum):
    """Payment session settlement states."""

    PENDING = "pending"
    CONFIRMING = "confirming"
    PARTIAL = "partial"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        """Terminal sessions never change settlement state again."""
        return self in TERMINAL_SESSION_STATUSES

    def can_transition_to(self, target: "PaymentSessionStatus") -> bool:
        """Check whether moving to `target` is a forward transition."""
        return target in SESSION_TRANSITIONS[self]


TERMINAL_SESSION_STATUSES = frozenset(
    {
        PaymentSessionStatus.COMPLETED,
        PaymentSessionStatus.FAILED,
        PaymentSessionStatus.EXPIRED,
    }
)

# Sessions a vault-level match may attach a transfer to
OPEN_SESSION_STATUSES = frozenset(
    {
        PaymentSessionStatus.PENDING,
        PaymentSessionStatus.CONFIRMING,
        PaymentSessionStatus.PARTIAL,
    }
)

SESSION_TRANSITIONS: dict[PaymentSessionStatus, frozenset[PaymentSessionStatus]] = {
    PaymentSessionStatus.PENDING: frozenset(
        {
            PaymentSessionStatus.CONFIRMING,
            PaymentSessionStatus.PARTIAL,
            PaymentSessionStatus.COMPLETED,
            PaymentSessionStatus.FAILED,
            PaymentSessionStatus.EXPIRED,
        }
    ),
    PaymentSessionStatus.CONFIRMING: frozenset(
        {
            PaymentSessionStatus.PARTIAL,
            PaymentSessionStatus.COMPLETED,
            PaymentSessionStatus.FAILED,
        }
    ),
    PaymentSessionStatus.PARTIAL: frozenset({PaymentSessionStatus.COMPLETED}),
    PaymentSessionStatus.COMPLETED: frozenset(),
    PaymentSessionStatus.FAILED: frozenset(),
    PaymentSessionStatus.EXPIRED: frozenset(),
}


class CommissionStatus(str, Enum):
    """Commission payout states."""

    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    HELD = "held"
    REVERSED = "reversed"

    def can_transition_to(self, target: "CommissionStatus") -> bool:
        """Check whether an admin transition is allowed."""
        return target in COMMISSION_TRANSITIONS[self]


COMMISSION_TRANSITIONS: dict[CommissionStatus, frozenset[CommissionStatus]] = {
    CommissionStatus.PENDING: frozenset(
        {
            CommissionStatus.APPROVED,
            CommissionStatus.HELD,
            CommissionStatus.REVERSED,
        }
    ),
    CommissionStatus.APPROVED: frozenset(
        {
            CommissionStatus.PAID,
            CommissionStatus.HELD,
            CommissionStatus.REVERSED,
        }
    ),
    CommissionStatus.HELD: frozenset(
        {CommissionStatus.APPROVED, CommissionStatus.REVERSED}
    ),
    CommissionStatus.PAID: frozenset({CommissionStatus.REVERSED}),
    CommissionStatus.REVERSED: frozenset(),
}


class ReferralStatus(str, Enum):
    """Referral edge states."""

    ACTIVE = "active"
    PENDING = "pending"
    INVALID = "invalid"


class TreasurySweepStatus(str, Enum):
    """Treasury transfer states recorded on a payment session."""

    SUBMITTED = "submitted"
    COMPLETED = "completed"
    FAILED = "failed"


class RevenueSource(str, Enum):
    """Origin of a revenue event."""

    MEMBERSHIP_PURCHASE = "membership_purchase"
    MEMBERSHIP_UPGRADE = "membership_upgrade"
