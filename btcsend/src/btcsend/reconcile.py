"""
Reconciliation of requested payment amounts against available funds and fee.

When the inputs cannot cover every requested amount plus the fee, the whole
balance minus the fee is split across the payments in proportion to what was
requested. Each share is floored; the few satoshis lost to flooring go to the
miner, not to change or to any payment.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from btcsend.constants import DUST_THRESHOLD
from btcsend.errors import InsufficientFundsError, MalformedInputError


@dataclass(frozen=True)
class ReconciledPayment:
    address: str
    amount: int


@dataclass(frozen=True)
class ReconciliationResult:
    """Final amounts for one request."""

    payments: tuple[ReconciledPayment, ...]
    fee: int
    change_value: int
    total_input_value: int
    scaled: bool = False

    @property
    def has_change(self) -> bool:
        """Change is emitted only above the dust floor."""
        return self.change_value > DUST_THRESHOLD

    @property
    def total_paid(self) -> int:
        return sum(payment.amount for payment in self.payments)

    @property
    def effective_fee(self) -> int:
        """What the miner receives, including absorbed dust and rounding loss."""
        change = self.change_value if self.has_change else 0
        return self.total_input_value - self.total_paid - change


def reconcile_amounts(
    total_input_value: int,
    fee: int,
    payments: Sequence[tuple[str, int]],
) -> ReconciliationResult:
    """
    Decide the amounts actually paid for a request.

    Args:
        total_input_value: Sum of all UTXO values in satoshis
        fee: Requested absolute fee in satoshis
        payments: (address, requested_amount) pairs in output order

    Returns:
        ReconciliationResult with zero-value payments already dropped

    Raises:
        MalformedInputError: If there are no payments or an amount/fee is invalid
        InsufficientFundsError: If the fee alone exceeds the inputs, or nothing
            would be left to pay any recipient
    """
    if not payments:
        raise MalformedInputError("At least one payment is required")
    if fee < 0:
        raise MalformedInputError(f"Fee must be non-negative, got {fee}")
    if any(amount <= 0 for _, amount in payments):
        raise MalformedInputError("Requested payment amounts must be positive")

    total_requested = sum(amount for _, amount in payments)

    if total_requested + fee <= total_input_value:
        return ReconciliationResult(
            payments=tuple(ReconciledPayment(address, amount) for address, amount in payments),
            fee=fee,
            change_value=total_input_value - total_requested - fee,
            total_input_value=total_input_value,
        )

    available = total_input_value - fee
    if available < 0:
        raise InsufficientFundsError(
            f"Fee of {fee} sats exceeds total input value of {total_input_value} sats"
        )

    logger.info(
        f"Requested {total_requested} + fee {fee} exceeds inputs of {total_input_value}; "
        f"scaling payments to {available} sats"
    )

    scaled = [
        ReconciledPayment(address, amount * available // total_requested)
        for address, amount in payments
    ]
    surviving = tuple(payment for payment in scaled if payment.amount > 0)
    if not surviving:
        raise InsufficientFundsError(
            f"Total input value of {total_input_value} sats cannot cover fee of {fee} sats "
            "plus a non-zero payment"
        )

    dropped = len(scaled) - len(surviving)
    if dropped:
        logger.warning(f"Dropping {dropped} payment(s) that scaled down to zero")

    return ReconciliationResult(
        payments=surviving,
        fee=fee,
        change_value=0,
        total_input_value=total_input_value,
        scaled=True,
    )
