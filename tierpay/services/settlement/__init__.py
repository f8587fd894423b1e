"""
Settlement.

Custodian notification parsing, session matching, the payment session state
machine and session expiry.
"""

from tierpay.services.settlement.expiry import (
    expire_stale_sessions,
    sweep_expired_best_effort,
)
from tierpay.services.settlement.matcher import SessionMatch, SessionMatcher
from tierpay.services.settlement.notification import (
    TransactionCreated,
    TransactionStatusUpdated,
    TransferEvent,
    parse_notification,
)
from tierpay.services.settlement.reconciler import (
    ReconcileResult,
    SettlementOutcome,
    SettlementReconciler,
    is_sufficient,
)


__all__ = [
    "ReconcileResult",
    "SessionMatch",
    "SessionMatcher",
    "SettlementOutcome",
    "SettlementReconciler",
    "TransactionCreated",
    "TransactionStatusUpdated",
    "TransferEvent",
    "expire_stale_sessions",
    "is_sufficient",
    "parse_notification",
    "sweep_expired_best_effort",
]
