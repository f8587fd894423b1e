"""Referral code handling."""

from tierpay.services.referral.referral_service import ReferralService


__all__ = ["ReferralService"]
