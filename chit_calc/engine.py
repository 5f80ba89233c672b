"""Core calculation engine for the chit calculator.

This module folds a member's normalized payment ledger into one bucket per
installment month, works out what is overdue from earlier months together
with the compounding penalty on it, and plans how a new payment should be
spread over the overdue months (oldest first) and the current month.

Everything here is a pure function of its inputs. Nothing is cached between
calls: every view of a member is recomputed from the ledger, so repeated
calls with the same ledger always agree.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Sequence

from .data_models import (
    STATUS_PAID,
    STATUS_PARTIAL,
    STATUS_UNPAID,
    AllocationEntry,
    AllocationPlan,
    GroupSchedule,
    MemberPosition,
    MonthBucket,
    OverdueDetail,
    OverdueInfo,
    PaymentRecord,
)
from .errors import ExceedsCeiling, InvalidAmount
from .ledger import normalize
from .schedule import build_group_schedule, compute_current_month_index, month_index_for_date
from .utils import ONE, ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)


def _bucket_status(principal_paid: Decimal, remaining: Decimal) -> str:
    if remaining <= 0:
        return STATUS_PAID
    if principal_paid > 0:
        return STATUS_PARTIAL
    return STATUS_UNPAID


def infer_target_month(payment: PaymentRecord, schedule: GroupSchedule, current_month_index: int) -> int:
    """Month a payment without allocation details is attributed to.

    Explicit month first, then the month its date falls in, then the current
    month.
    """
    if payment.month_index is not None:
        return payment.month_index
    from_date = month_index_for_date(schedule.start_date, payment.date)
    if from_date is not None:
        return from_date
    return current_month_index


def build_buckets(
    payments: Iterable[PaymentRecord],
    schedule: GroupSchedule,
    current_month_index: int,
) -> List[MonthBucket]:
    """Fold approved payments into one bucket per installment month.

    Parameters
    ----------
    payments: Iterable[PaymentRecord]
        Normalized ledger of one member. Unapproved records are ignored.
    schedule: GroupSchedule
        The group's schedule; supplies the expected amount per month.
    current_month_index: int
        1-based current month. The bucket list always reaches it, even when
        the group has run past ``total_months``.

    Returns
    -------
    List[MonthBucket]
        ``max(total_months, current_month_index)`` buckets, month 1 first.
        Allocations pointing outside that range are clamped to its ends.
    """
    count = max(schedule.total_months, current_month_index, 1)
    principal = [ZERO] * count
    penalty = [ZERO] * count

    def slot(month_index: int) -> int:
        return min(max(month_index, 1), count) - 1

    for payment in payments:
        if not payment.is_approved:
            continue
        if payment.allocation_details:
            for detail in payment.allocation_details:
                i = slot(detail.month_index)
                principal[i] += detail.principal_paid
                penalty[i] += detail.penalty_paid
        else:
            i = slot(infer_target_month(payment, schedule, current_month_index))
            principal[i] += payment.amount

    expected = schedule.per_member_installment
    buckets: List[MonthBucket] = []
    for i in range(count):
        remaining = max(ZERO, expected - principal[i])
        buckets.append(
            MonthBucket(
                month_index=i + 1,
                principal_paid=principal[i],
                penalty_paid=penalty[i],
                expected=expected,
                remaining=remaining,
                status=_bucket_status(principal[i], remaining),
            )
        )
    return buckets


def pending_requests(payments: Iterable[PaymentRecord]) -> List[PaymentRecord]:
    """Payments still awaiting approval; shown to the member but never counted."""
    return [p for p in payments if not p.is_approved]


def compute_penalty(remaining: Decimal, penalty_percent: Decimal, months_overdue: int) -> Decimal:
    """Penalty on ``remaining`` compounded once per overdue month.

    The formula is:

        penalty = round(remaining * (1 + r)^n - remaining)

    where ``r`` is the monthly rate as a fraction and ``n`` the number of
    months overdue. Rounded to whole currency units.
    """
    if remaining <= 0 or months_overdue <= 0 or penalty_percent <= 0:
        return ZERO
    rate = penalty_percent / Decimal(100)
    compounded = remaining * (ONE + rate) ** months_overdue
    return round_money(compounded - remaining)


def compute_overdue(
    buckets: Sequence[MonthBucket],
    current_month_index: int,
    penalty_percent_per_month: Decimal,
) -> OverdueInfo:
    """Overdue breakdown of every month strictly before the current one.

    The current month is never overdue; with ``current_month_index == 1``
    the breakdown is empty and only the current month's balance is payable.
    """
    details: List[OverdueDetail] = []
    total_remaining = ZERO
    total_penalty = ZERO
    for bucket in buckets:
        if bucket.month_index >= current_month_index:
            break
        if bucket.remaining <= 0:
            continue
        months_overdue = current_month_index - bucket.month_index
        penalty = compute_penalty(bucket.remaining, penalty_percent_per_month, months_overdue)
        details.append(
            OverdueDetail(
                month_index=bucket.month_index,
                remaining=bucket.remaining,
                months_overdue=months_overdue,
                penalty=penalty,
            )
        )
        total_remaining += bucket.remaining
        total_penalty += penalty

    current_remaining = ZERO
    if 1 <= current_month_index <= len(buckets):
        current_remaining = buckets[current_month_index - 1].remaining

    return OverdueInfo(
        current_month_index=current_month_index,
        details=tuple(details),
        total_overdue_remaining=total_remaining,
        total_penalty_if_paid_now=total_penalty,
        current_month_remaining=current_remaining,
    )


def max_payable_now(overdue_details: Iterable[OverdueDetail], current_month_remaining: Decimal) -> Decimal:
    total = sum((d.remaining + d.penalty for d in overdue_details), ZERO)
    return total + max(current_month_remaining, ZERO)


def plan_allocation(
    amount: Any,
    overdue_details: Iterable[OverdueDetail],
    current_month_remaining: Decimal,
    current_month_index: int,
) -> AllocationPlan:
    """Spread ``amount`` over overdue months (oldest first), then this month.

    Raises
    ------
    InvalidAmount
        If ``amount`` is zero or negative.
    ExceedsCeiling
        If ``amount`` is more than everything currently payable. The
        exception carries the ceiling so the caller can correct the amount.
    """
    amount = to_decimal(amount)
    ordered = sorted(overdue_details, key=lambda d: d.month_index)
    months = [d.month_index for d in ordered]
    if len(set(months)) != len(months):
        raise ValueError(f"Overdue breakdown lists a month twice: {months}")

    ceiling = max_payable_now(ordered, current_month_remaining)
    if amount <= 0:
        raise InvalidAmount(amount)
    if amount > ceiling:
        raise ExceedsCeiling(amount, ceiling)

    entries: List[AllocationEntry] = []
    left = amount
    for detail in ordered:
        if left <= 0:
            break
        apply = min(left, detail.remaining + detail.penalty)
        entries.append(
            AllocationEntry(
                month_index=detail.month_index,
                due=detail.remaining,
                penalty=detail.penalty,
                apply=apply,
            )
        )
        left -= apply

    if left > 0 and current_month_remaining > 0:
        apply = min(left, current_month_remaining)
        entries.append(
            AllocationEntry(
                month_index=current_month_index,
                due=current_month_remaining,
                penalty=ZERO,
                apply=apply,
            )
        )
        left -= apply

    return AllocationPlan(entries=tuple(entries), planned_total=amount, unallocated=left)


def compute_member_position(
    group: Any,
    raw_payments: Any,
    member_id: str,
    today: Optional[date] = None,
) -> MemberPosition:
    """Run the whole pipeline for one member of one group.

    ``group`` is the group lookup response and ``raw_payments`` the payment
    listing, both in any of the shapes the store produces.
    """
    schedule = build_group_schedule(group)
    current = compute_current_month_index(schedule.start_date, today)
    payments = normalize(raw_payments, schedule, member_id)
    buckets = build_buckets(payments, schedule, current)
    overdue = compute_overdue(buckets, current, schedule.penalty_percent_per_month)
    logger.debug(
        "Member %s: month %d of %d, %d payments, max payable now %s",
        member_id,
        current,
        schedule.total_months,
        len(payments),
        overdue.max_payable_now,
    )
    return MemberPosition(
        member_id=str(member_id),
        schedule=schedule,
        current_month_index=current,
        payments=payments,
        buckets=buckets,
        overdue=overdue,
        pending_requests=pending_requests(payments),
    )


def plan_payment(position: MemberPosition, amount: Any) -> AllocationPlan:
    """Plan ``amount`` against a freshly computed :class:`MemberPosition`."""
    return plan_allocation(
        amount,
        position.overdue.details,
        position.overdue.current_month_remaining,
        position.current_month_index,
    )
