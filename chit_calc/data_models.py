"""Data models for the chit calculator.

This module defines dataclasses representing the entities the allocation
engine works with: the derived schedule of a chit group, normalized payment
records, per-month buckets, the overdue breakdown and allocation plans. All
money values are ``Decimal`` in whole currency units.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

STATUS_UNPAID = "Unpaid"
STATUS_PARTIAL = "Partial"
STATUS_PAID = "Paid in full"


@dataclass(frozen=True)
class GroupSchedule:
    """Schedule parameters of a chit group, derived from the stored group.

    Attributes
    ----------
    per_member_installment: Decimal
        Amount each member owes every month. Zero when the group carries no
        usable installment or chit value.
    total_months: int
        Number of installment months, at least one.
    start_date: Optional[date]
        Date of the first installment month, if known.
    penalty_percent_per_month: Decimal
        Penalty rate in percent, compounded once per elapsed month.
    """

    per_member_installment: Decimal
    total_months: int
    start_date: Optional[date]
    penalty_percent_per_month: Decimal


@dataclass(frozen=True)
class AllocationDetail:
    """A slice of one payment attributed to a specific month (1-based)."""

    month_index: int
    principal_paid: Decimal
    penalty_paid: Decimal


@dataclass(frozen=True)
class PaymentRecord:
    """A normalized contribution from the payment store.

    ``allocation_details`` is ``None`` when the payment carries no usable
    allocation metadata; the whole ``amount`` is then attributed to one
    inferred month (``month_index`` when the store supplied one).
    """

    id: str
    member_id: str
    amount: Decimal
    date: Optional[date]
    is_approved: bool
    allocation_details: Optional[Tuple[AllocationDetail, ...]] = None
    month_index: Optional[int] = None
    status: str = ""


@dataclass(frozen=True)
class MonthBucket:
    """Approved contributions folded into one installment month."""

    month_index: int
    principal_paid: Decimal
    penalty_paid: Decimal
    expected: Decimal
    remaining: Decimal
    status: str


@dataclass(frozen=True)
class OverdueDetail:
    month_index: int
    remaining: Decimal
    months_overdue: int
    penalty: Decimal

    @property
    def total_if_cleared(self) -> Decimal:
        return self.remaining + self.penalty


@dataclass(frozen=True)
class OverdueInfo:
    """Overdue breakdown for all months before the current one.

    ``max_payable_now`` is the ceiling a new payment request must not exceed.
    """

    current_month_index: int
    details: Tuple[OverdueDetail, ...]
    total_overdue_remaining: Decimal
    total_penalty_if_paid_now: Decimal
    current_month_remaining: Decimal

    @property
    def max_payable_now(self) -> Decimal:
        return (
            self.total_overdue_remaining
            + self.total_penalty_if_paid_now
            + self.current_month_remaining
        )


@dataclass(frozen=True)
class AllocationEntry:
    """One line of an allocation plan.

    ``apply`` covers the month's penalty first; ``penalty_paid`` and
    ``principal_paid`` expose that split.
    """

    month_index: int
    due: Decimal
    penalty: Decimal
    apply: Decimal

    @property
    def penalty_paid(self) -> Decimal:
        return min(self.apply, self.penalty)

    @property
    def principal_paid(self) -> Decimal:
        return self.apply - self.penalty_paid


@dataclass(frozen=True)
class AllocationPlan:
    entries: Tuple[AllocationEntry, ...]
    planned_total: Decimal
    unallocated: Decimal

    @property
    def allocated_total(self) -> Decimal:
        return sum((e.apply for e in self.entries), Decimal("0"))


@dataclass
class MemberPosition:
    """Everything the dashboards need about one member in one group.

    Recomputed from the ledger on every request; never cached.
    """

    member_id: str
    schedule: GroupSchedule
    current_month_index: int
    payments: List[PaymentRecord]
    buckets: List[MonthBucket]
    overdue: OverdueInfo
    pending_requests: List[PaymentRecord] = field(default_factory=list)

    @property
    def current_bucket(self) -> MonthBucket:
        return self.buckets[self.current_month_index - 1]

    @property
    def already_paid_this_month(self) -> Decimal:
        return self.current_bucket.principal_paid

    @property
    def total_paid(self) -> Decimal:
        return sum(
            (b.principal_paid + b.penalty_paid for b in self.buckets), Decimal("0")
        )

    @property
    def max_payable_now(self) -> Decimal:
        return self.overdue.max_payable_now
