"""Output helpers for the chit calculator.

This module provides simple functions to render a member's month buckets,
overdue breakdown and allocation plans in a tabular text format using
built-in printing and string formatting.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from .data_models import AllocationPlan, MemberPosition, MonthBucket, OverdueInfo


def _amt(value: Decimal) -> str:
    return f"{value:,.2f}"


def print_position_summary(position: MemberPosition) -> None:
    """Print the headline numbers of a member's position."""
    schedule = position.schedule
    overdue = position.overdue
    print(f"Member {position.member_id}")
    print("-" * 72)
    print(f"Installment / month : {_amt(schedule.per_member_installment)}")
    print(f"Current month       : {position.current_month_index} of {schedule.total_months}")
    print(f"Paid this month     : {_amt(position.already_paid_this_month)}")
    print(f"Due this month      : {_amt(overdue.current_month_remaining)}")
    if overdue.details:
        print(f"Overdue principal   : {_amt(overdue.total_overdue_remaining)}")
        print(f"Penalty if paid now : {_amt(overdue.total_penalty_if_paid_now)}")
    print(f"Max payable now     : {_amt(overdue.max_payable_now)}")
    if position.pending_requests:
        pending = sum((p.amount for p in position.pending_requests), Decimal("0"))
        print(f"Pending requests    : {len(position.pending_requests)} ({_amt(pending)})")
    print("-" * 72)


def print_buckets(buckets: Iterable[MonthBucket], upto: int = 0) -> None:
    """Print month buckets as a simple table.

    Parameters
    ----------
    buckets: Iterable[MonthBucket]
        The buckets to print.
    upto: int
        When positive, months after ``upto`` that have seen no payment are
        skipped to keep long schedules readable.
    """
    headers = ["Month", "Expected", "Principal", "Penalty", "Remaining", "Status"]
    print("\t".join(headers))
    for bucket in buckets:
        if upto and bucket.month_index > upto and bucket.principal_paid == 0 and bucket.penalty_paid == 0:
            continue
        row = [
            str(bucket.month_index),
            _amt(bucket.expected),
            _amt(bucket.principal_paid),
            _amt(bucket.penalty_paid),
            _amt(bucket.remaining),
            bucket.status,
        ]
        print("\t".join(row))


def print_overdue(info: OverdueInfo) -> None:
    if not info.details:
        print("No overdue months.")
        return
    print("Overdue")
    print(f"{'Month':>6s} {'Remaining':>12s} {'Months':>7s} {'Penalty':>10s} {'To clear':>12s}")
    for d in info.details:
        print(
            f"{d.month_index:6d} {_amt(d.remaining):>12s} {d.months_overdue:7d} "
            f"{_amt(d.penalty):>10s} {_amt(d.total_if_cleared):>12s}"
        )


def print_plan(plan: AllocationPlan) -> None:
    """Print an allocation plan, one line per month it touches."""
    print("Allocation plan")
    print("=" * 72)
    print(f"{'Month':>6s} {'Due':>12s} {'Penalty':>10s} {'Apply':>12s}")
    for e in plan.entries:
        print(f"{e.month_index:6d} {_amt(e.due):>12s} {_amt(e.penalty):>10s} {_amt(e.apply):>12s}")
    print("=" * 72)
    print(f"Planned total : {_amt(plan.planned_total)}")
    if plan.unallocated:
        print(f"Unallocated   : {_amt(plan.unallocated)}")
