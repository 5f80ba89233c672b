"""Exceptions raised by the chit calculator.

Only ``InvalidAmount`` and ``ExceedsCeiling`` ever reach callers of the
engine. ``MalformedAllocationData`` is recovered inside the ledger reader and
``MissingGroupOrMember`` is used by the store boundary.
"""

from decimal import Decimal


class ChitCalcError(ValueError):
    """Base class for chit calculator errors."""


class InvalidAmount(ChitCalcError):
    def __init__(self, amount: Decimal) -> None:
        super().__init__(f"Payment amount must be positive; got {amount}")
        self.amount = amount


class ExceedsCeiling(ChitCalcError):
    def __init__(self, amount: Decimal, max_payable_now: Decimal) -> None:
        super().__init__(
            f"Payment amount {amount} exceeds the maximum payable now ({max_payable_now})"
        )
        self.amount = amount
        self.max_payable_now = max_payable_now


class MalformedAllocationData(ChitCalcError):
    """An allocation metadata string could not be decoded."""


class MissingGroupOrMember(ChitCalcError):
    """A group, member or payment lookup found nothing."""
