"""Checkout session creation and status."""

from tierpay.services.payment_session.manager import (
    PaymentSessionManager,
    PurchaseTerms,
    SessionStatusView,
    quote_crypto_amount,
)


__all__ = [
    "PaymentSessionManager",
    "PurchaseTerms",
    "SessionStatusView",
    "quote_crypto_amount",
]
