"""Serialization of allocation plans and payment requests.

A member's payment request is stored with its allocation plan encoded as a
JSON string under ``allocationSummary``. Entries carry an explicit
``principalPaid``/``penaltyPaid`` split so the ledger reader attributes the
money correctly once the request is approved.
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from .data_models import AllocationPlan, MonthBucket, OverdueInfo

Number = Union[int, float]


def money_to_json(value: Decimal) -> Number:
    """Render a money amount as an int when whole, else a float."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def plan_to_dict(plan: AllocationPlan) -> Dict[str, Any]:
    return {
        "entries": [
            {
                "monthIndex": e.month_index,
                "due": money_to_json(e.due),
                "penalty": money_to_json(e.penalty),
                "apply": money_to_json(e.apply),
                "principalPaid": money_to_json(e.principal_paid),
                "penaltyPaid": money_to_json(e.penalty_paid),
            }
            for e in plan.entries
        ],
        "plannedTotal": money_to_json(plan.planned_total),
        "unallocated": money_to_json(plan.unallocated),
    }


def bucket_to_dict(bucket: MonthBucket) -> Dict[str, Any]:
    return {
        "monthIndex": bucket.month_index,
        "expected": money_to_json(bucket.expected),
        "principalPaid": money_to_json(bucket.principal_paid),
        "penaltyPaid": money_to_json(bucket.penalty_paid),
        "remaining": money_to_json(bucket.remaining),
        "status": bucket.status,
    }


def overdue_to_dict(info: OverdueInfo) -> Dict[str, Any]:
    return {
        "currentMonthIndex": info.current_month_index,
        "details": [
            {
                "monthIndex": d.month_index,
                "remaining": money_to_json(d.remaining),
                "monthsOverdue": d.months_overdue,
                "penalty": money_to_json(d.penalty),
                "totalIfCleared": money_to_json(d.total_if_cleared),
            }
            for d in info.details
        ],
        "totalOverdueRemaining": money_to_json(info.total_overdue_remaining),
        "totalPenaltyIfPaidNow": money_to_json(info.total_penalty_if_paid_now),
        "currentMonthRemaining": money_to_json(info.current_month_remaining),
        "maxPayableNow": money_to_json(info.max_payable_now),
    }


def build_payment_request(
    member_id: str,
    amount: Decimal,
    month_index: int,
    plan: AllocationPlan,
    utr: Optional[str] = None,
    note: Optional[str] = None,
    attachment: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the record appended to the store for a new payment request.

    The request starts unapproved; it only counts toward balances once an
    approver flips its status.
    """
    request: Dict[str, Any] = {
        "memberId": str(member_id),
        "amount": money_to_json(amount),
        "monthIndex": month_index,
        "allocationSummary": json.dumps(plan_to_dict(plan)),
        "status": "pending",
        "verified": False,
        "approvedAt": None,
    }
    if utr:
        request["utr"] = utr
    if note:
        request["note"] = note
    if attachment:
        request["attachment"] = attachment
    return request
