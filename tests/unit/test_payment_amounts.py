"""
Unit tests for payment amount checks and session state rules.
"""

from decimal import Decimal

import pytest

from tierpay.models.enums import CommissionStatus, PaymentSessionStatus
from tierpay.services.payment_session.manager import quote_crypto_amount
from tierpay.services.settlement.matcher import amount_fits
from tierpay.services.settlement.reconciler import is_sufficient

TOLERANCE = Decimal("2")


class TestIsSufficient:
    """Received amount against expected with a percentage tolerance."""

    def test_exact_boundary_accepted(self):
        # 2% under $500 is $490.00
        assert is_sufficient(Decimal("490.00"), Decimal("500"), TOLERANCE)

    def test_one_cent_below_boundary_rejected(self):
        assert not is_sufficient(Decimal("489.99"), Decimal("500"), TOLERANCE)

    def test_overpayment_accepted(self):
        assert is_sufficient(Decimal("800"), Decimal("500"), TOLERANCE)

    def test_zero_tolerance(self):
        assert is_sufficient(Decimal("500"), Decimal("500"), Decimal("0"))
        assert not is_sufficient(Decimal("499.99"), Decimal("500"), Decimal("0"))

    def test_crypto_amounts(self):
        assert is_sufficient(Decimal("0.0098"), Decimal("0.01"), TOLERANCE)
        assert not is_sufficient(Decimal("0.00979999"), Decimal("0.01"), TOLERANCE)


class TestAmountFits:
    """Transfer amount against one session's outstanding amount."""

    def test_within_tolerance_both_sides(self):
        assert amount_fits(Decimal("490.00"), Decimal("500"), TOLERANCE)
        assert amount_fits(Decimal("510.00"), Decimal("500"), TOLERANCE)

    def test_payment_for_a_larger_package_does_not_fit(self):
        assert not amount_fits(Decimal("500"), Decimal("250"), TOLERANCE)

    def test_underpayment_does_not_fit(self):
        assert not amount_fits(Decimal("250"), Decimal("500"), TOLERANCE)


class TestQuote:
    """USD to crypto at satoshi precision."""

    def test_simple_quote(self):
        assert quote_crypto_amount(Decimal("500"), Decimal("50000")) == Decimal("0.01")

    def test_rounded_to_eight_places(self):
        quoted = quote_crypto_amount(Decimal("100"), Decimal("30000"))

        assert quoted == Decimal("0.00333333")
        assert quoted.as_tuple().exponent == -8

    def test_half_up(self):
        # 1 / 6 = 0.1666666666...
        assert quote_crypto_amount(Decimal("1"), Decimal("6")) == Decimal("0.16666667")


class TestSessionTransitions:
    """Settlement state only moves forward."""

    @pytest.mark.parametrize(
        "status",
        [
            PaymentSessionStatus.COMPLETED,
            PaymentSessionStatus.FAILED,
            PaymentSessionStatus.EXPIRED,
        ],
    )
    def test_terminal_states(self, status):
        assert status.is_terminal
        assert not any(status.can_transition_to(target) for target in PaymentSessionStatus)

    def test_partial_only_completes(self):
        partial = PaymentSessionStatus.PARTIAL

        assert partial.can_transition_to(PaymentSessionStatus.COMPLETED)
        assert not partial.can_transition_to(PaymentSessionStatus.FAILED)
        assert not partial.can_transition_to(PaymentSessionStatus.EXPIRED)
        assert not partial.can_transition_to(PaymentSessionStatus.PENDING)

    def test_confirming_never_expires(self):
        confirming = PaymentSessionStatus.CONFIRMING

        assert not confirming.can_transition_to(PaymentSessionStatus.EXPIRED)
        assert not confirming.can_transition_to(PaymentSessionStatus.PENDING)
        assert confirming.can_transition_to(PaymentSessionStatus.COMPLETED)

    def test_pending_can_move_anywhere_forward(self):
        pending = PaymentSessionStatus.PENDING

        assert not pending.is_terminal
        assert all(
            pending.can_transition_to(target)
            for target in PaymentSessionStatus
            if target is not PaymentSessionStatus.PENDING
        )


class TestCommissionStatus:
    """Commission payout transitions."""

    def test_pending_to_paid_goes_through_approval(self):
        assert not CommissionStatus.PENDING.can_transition_to(CommissionStatus.PAID)
        assert CommissionStatus.PENDING.can_transition_to(CommissionStatus.APPROVED)
        assert CommissionStatus.APPROVED.can_transition_to(CommissionStatus.PAID)

    @pytest.mark.parametrize(
        "status",
        [CommissionStatus.PENDING, CommissionStatus.APPROVED],
    )
    def test_hold(self, status):
        assert status.can_transition_to(CommissionStatus.HELD)

    @pytest.mark.parametrize(
        "status",
        [
            CommissionStatus.PENDING,
            CommissionStatus.APPROVED,
            CommissionStatus.HELD,
            CommissionStatus.PAID,
        ],
    )
    def test_any_can_be_reversed(self, status):
        assert status.can_transition_to(CommissionStatus.REVERSED)

    def test_reversed_is_final(self):
        assert not any(
            CommissionStatus.REVERSED.can_transition_to(target)
            for target in CommissionStatus
        )
