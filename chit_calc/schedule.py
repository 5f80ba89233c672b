"""Schedule model for chit groups.

Pure functions deriving a group's per-member installment, its length and the
current installment month from a stored group record. Group records come from
the store in loosely typed form: any numeric field may be missing, a string
or a number, and a few fields have historical aliases. Nothing here raises on
bad input; unusable values resolve to zero (or to month one for dates).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from .data_models import GroupSchedule
from .utils import ZERO, month_difference, parse_date, round_money, to_decimal, to_int


def _first_present(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def unwrap_group(payload: Any) -> Dict[str, Any]:
    """Return the group mapping from a lookup response.

    The group lookup answers either with the group itself or with
    ``{"data": {...}}``. Anything that is not a mapping becomes ``{}``.
    """
    if isinstance(payload, Mapping):
        inner = payload.get("data")
        if isinstance(inner, Mapping):
            return dict(inner)
        return dict(payload)
    return {}


def member_count(group: Mapping[str, Any]) -> int:
    """Number of members sharing the pot, never less than one."""
    raw = group.get("totalMembers")
    if raw is None and isinstance(group.get("members"), list):
        raw = len(group["members"])
    return max(1, to_int(raw) or 0)


def total_months(group: Mapping[str, Any]) -> int:
    return max(1, to_int(_first_present(group, "totalMonths", "numberOfInstallments")) or 0)


def compute_per_member_installment(group: Mapping[str, Any]) -> Decimal:
    """Monthly amount each member owes.

    An explicit ``monthlyInstallment`` wins. Otherwise the chit value is
    spread evenly over months and members. Falls back to zero.
    """
    monthly = to_decimal(_first_present(group, "monthlyInstallment", "monthly"))
    if monthly > 0:
        return round_money(monthly)
    chit_value = to_decimal(_first_present(group, "chitValue", "totalAmount"))
    if chit_value > 0:
        return round_money(chit_value / total_months(group) / member_count(group))
    return ZERO


def compute_current_month_index(start_date: Optional[date], today: Optional[date] = None) -> int:
    """Return the 1-based installment month that ``today`` falls in.

    A month only counts as elapsed once its day-of-month has been reached, so
    with a start on the 20th, the 19th of the following month is still month
    one. Without a start date the group is considered to be in month one.
    """
    if start_date is None:
        return 1
    today = today or date.today()
    months = month_difference(start_date, today)
    if today.day < start_date.day:
        months -= 1
    return max(1, months + 1)


def month_index_for_date(start_date: Optional[date], when: Optional[date]) -> Optional[int]:
    """Installment month a payment dated ``when`` belongs to, by calendar month."""
    if start_date is None or when is None:
        return None
    return month_difference(start_date, when) + 1


def penalty_percent(group: Mapping[str, Any]) -> Decimal:
    rate = to_decimal(_first_present(group, "penaltyPercent", "penalty", "penalty_rate"))
    return rate if rate > 0 else ZERO


def build_group_schedule(group: Any) -> GroupSchedule:
    """Derive the :class:`GroupSchedule` of a stored group record."""
    record = unwrap_group(group)
    return GroupSchedule(
        per_member_installment=compute_per_member_installment(record),
        total_months=total_months(record),
        start_date=parse_date(record.get("startDate")),
        penalty_percent_per_month=penalty_percent(record),
    )
