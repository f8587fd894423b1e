"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from tierpay.models.affiliate_status import AffiliateStatus
from tierpay.models.base import Base
from tierpay.models.commission import Commission
from tierpay.models.enums import (
    CommissionStatus,
    PaymentSessionStatus,
    ReferralStatus,
    RevenueSource,
    TreasurySweepStatus,
)
from tierpay.models.package import Package
from tierpay.models.payment_session import PaymentSession
from tierpay.models.payment_transfer import PaymentTransfer
from tierpay.models.platform_activity import ActivityType, PlatformActivity
from tierpay.models.purchase import Purchase
from tierpay.models.referral import Referral
from tierpay.models.revenue_event import RevenueEvent
from tierpay.models.user import User


__all__ = [
    "ActivityType",
    "AffiliateStatus",
    "Base",
    "Commission",
    "CommissionStatus",
    "Package",
    "PaymentSession",
    "PaymentSessionStatus",
    "PaymentTransfer",
    "PlatformActivity",
    "Purchase",
    "Referral",
    "ReferralStatus",
    "RevenueEvent",
    "RevenueSource",
    "TreasurySweepStatus",
    "User",
]
