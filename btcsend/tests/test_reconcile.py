"""
Tests for amount reconciliation.
"""

from __future__ import annotations

import pytest

from btcsend.constants import DUST_THRESHOLD
from btcsend.errors import InsufficientFundsError, MalformedInputError
from btcsend.reconcile import ReconciledPayment, reconcile_amounts


class TestSufficientFunds:
    """Requested amounts plus fee fit within the inputs."""

    def test_single_payment_with_change(self) -> None:
        result = reconcile_amounts(15000, 1000, [("C1", 5000)])

        assert result.payments == (ReconciledPayment("C1", 5000),)
        assert result.change_value == 9000
        assert result.has_change is True
        assert result.scaled is False
        assert result.effective_fee == 1000

    def test_amounts_unchanged(self) -> None:
        payments = [("A", 1234), ("B", 4321), ("C", 999)]
        result = reconcile_amounts(100_000, 2500, payments)

        assert [(p.address, p.amount) for p in result.payments] == payments
        assert result.change_value == 100_000 - 1234 - 4321 - 999 - 2500

    def test_exact_spend_has_no_change(self) -> None:
        result = reconcile_amounts(6000, 1000, [("A", 5000)])

        assert result.change_value == 0
        assert result.has_change is False

    def test_change_at_dust_threshold_is_absorbed(self) -> None:
        result = reconcile_amounts(6000 + DUST_THRESHOLD, 1000, [("A", 5000)])

        assert result.change_value == DUST_THRESHOLD
        assert result.has_change is False
        assert result.effective_fee == 1000 + DUST_THRESHOLD
        assert result.total_paid == 5000

    def test_change_just_above_dust_threshold(self) -> None:
        result = reconcile_amounts(6000 + DUST_THRESHOLD + 1, 1000, [("A", 5000)])

        assert result.has_change is True
        assert result.total_paid + result.fee + result.change_value == result.total_input_value


class TestInsufficientFunds:
    """Requested amounts plus fee exceed the inputs."""

    def test_single_payment_scaled_to_balance(self) -> None:
        result = reconcile_amounts(2000, 500, [("A", 5000)])

        assert result.payments == (ReconciledPayment("A", 1500),)
        assert result.change_value == 0
        assert result.has_change is False
        assert result.scaled is True

    def test_two_payments_scaled_proportionally(self) -> None:
        result = reconcile_amounts(9000, 500, [("A", 3000), ("B", 7000)])

        # available = 8500, split 30/70
        assert result.payments == (ReconciledPayment("A", 2550), ReconciledPayment("B", 5950))
        assert result.total_paid + result.fee == 9000

    def test_rounding_remainder_goes_to_fee(self) -> None:
        result = reconcile_amounts(1000, 0, [("A", 1000), ("B", 1000), ("C", 1000)])

        # each share floors to 333; the lost satoshi is not given to anyone
        assert [p.amount for p in result.payments] == [333, 333, 333]
        assert result.change_value == 0
        assert result.effective_fee == 1

    def test_zero_share_payment_is_dropped(self) -> None:
        result = reconcile_amounts(1000, 0, [("tiny", 1), ("big", 5000)])

        # 1 * 1000 // 5001 == 0
        assert [p.address for p in result.payments] == ["big"]
        assert result.payments[0].amount == 5000 * 1000 // 5001

    def test_fee_exceeds_inputs(self) -> None:
        with pytest.raises(InsufficientFundsError, match="exceeds total input value"):
            reconcile_amounts(1000, 2000, [("A", 5000)])

    def test_fee_equals_inputs_leaves_nothing_to_pay(self) -> None:
        with pytest.raises(InsufficientFundsError):
            reconcile_amounts(1000, 1000, [("A", 5000)])

    @pytest.mark.parametrize(
        ("total", "fee", "amounts"),
        [
            (9000, 500, [3000, 7000]),
            (12345, 678, [999, 1, 50000]),
            (100, 3, [7, 11, 13]),
            (10**8, 12345, [10**8, 10**7, 3]),
        ],
    )
    def test_scaled_amounts_never_overspend(
        self, total: int, fee: int, amounts: list[int]
    ) -> None:
        result = reconcile_amounts(total, fee, [(str(i), a) for i, a in enumerate(amounts)])

        assert all(p.amount > 0 for p in result.payments)
        assert result.total_paid + fee <= total
        assert result.effective_fee >= fee


class TestValidation:
    def test_no_payments(self) -> None:
        with pytest.raises(MalformedInputError):
            reconcile_amounts(1000, 100, [])

    def test_negative_fee(self) -> None:
        with pytest.raises(MalformedInputError):
            reconcile_amounts(1000, -1, [("A", 100)])

    def test_non_positive_amount(self) -> None:
        with pytest.raises(MalformedInputError):
            reconcile_amounts(1000, 100, [("A", 0)])


def test_reconciliation_is_idempotent() -> None:
    args = (9000, 500, [("A", 3000), ("B", 7000)])

    assert reconcile_amounts(*args) == reconcile_amounts(*args)
