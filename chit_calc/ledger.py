"""Payment ledger reader.

The payment store returns contributions in several historical shapes: the
member may be referenced directly or through a nested object, approval may be
recorded as a status string, a flag or a timestamp, and allocation metadata
may live on the record, under ``rawMeta``, or be JSON encoded in a string.
:func:`normalize` is the single place that understands those shapes; nothing
downstream ever sees a raw store record.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .data_models import AllocationDetail, GroupSchedule, PaymentRecord
from .errors import MalformedAllocationData
from .schedule import build_group_schedule, month_index_for_date
from .utils import ZERO, parse_date, to_decimal, to_int

logger = logging.getLogger(__name__)

ALLOCATION_FIELDS = ("allocation", "allocated", "allocationSummary", "allocationDetails")
RAW_META_ALLOCATION_FIELDS = ALLOCATION_FIELDS + ("appliedAllocation",)
CONTAINER_KEYS = ("allocation", "alloc", "allocationSummary", "entries")

MONTH_KEYS = ("monthIndex", "idx", "month", "mindex")
PRINCIPAL_KEYS = ("principalPaid", "principal", "prc", "pr", "amount", "apply")
PENALTY_KEYS = ("penaltyPaid", "penalty", "pen", "penaltyApplied")


def _first_present(record: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def extract_payment_list(payload: Any) -> List[Dict[str, Any]]:
    """Pull the list of payment records out of a listing response.

    Accepts a bare list, ``{"payments": [...]}`` or ``{"data": [...]}``.
    Entries that are not mappings are dropped.
    """
    items: Any = []
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, Mapping):
        if isinstance(payload.get("payments"), list):
            items = payload["payments"]
        elif isinstance(payload.get("data"), list):
            items = payload["data"]
    return [dict(item) for item in items if isinstance(item, Mapping)]


def _id_from(value: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        value = _first_present(value, ("_id", "id"))
    if value is None or isinstance(value, (Mapping, list)):
        return None
    text = str(value).strip()
    return text or None


def resolve_member_id(record: Mapping[str, Any]) -> Optional[str]:
    """Canonical member id of a payment record, if it carries one."""
    for key in ("memberId", "member", "userId"):
        member = _id_from(record.get(key))
        if member:
            return member
    return None


def is_approved(record: Mapping[str, Any]) -> bool:
    """A record counts toward balances once approved by status, flag or a readable ``approvedAt``."""
    status = _first_present(record, ("status", "state"))
    if isinstance(status, str) and status.strip().lower() == "approved":
        return True
    verified = record.get("verified")
    if verified is True or (isinstance(verified, str) and verified.strip().lower() == "true"):
        return True
    approved_at = record.get("approvedAt")
    if isinstance(approved_at, date):
        return True
    return isinstance(approved_at, str) and parse_date(approved_at) is not None


def _decode(candidate: str) -> Any:
    try:
        return json.loads(candidate)
    except ValueError as exc:
        raise MalformedAllocationData(f"Unreadable allocation metadata: {candidate[:80]!r}") from exc


def _parse_allocation_items(items: Any) -> Optional[Tuple[AllocationDetail, ...]]:
    if isinstance(items, Mapping):
        items = _first_present(items, CONTAINER_KEYS)
    if not isinstance(items, list):
        return None
    details: List[AllocationDetail] = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        month = to_decimal(_first_present(item, MONTH_KEYS))
        # zero-based ledger months
        if 0 <= month < 1:
            month += 1
        principal = to_decimal(_first_present(item, PRINCIPAL_KEYS))
        penalty = to_decimal(_first_present(item, PENALTY_KEYS))
        details.append(
            AllocationDetail(
                month_index=max(1, to_int(month) or 0),
                principal_paid=max(principal, ZERO),
                penalty_paid=max(penalty, ZERO),
            )
        )
    return tuple(details) or None


def parse_allocation_details(record: Mapping[str, Any]) -> Optional[Tuple[AllocationDetail, ...]]:
    """Allocation details of a payment, or ``None`` if it has none usable.

    Candidate fields are tried in order and the first one yielding at least
    one entry wins. Undecodable JSON strings are logged and skipped.
    """
    candidates = [record.get(key) for key in ALLOCATION_FIELDS]
    raw_meta = record.get("rawMeta")
    if isinstance(raw_meta, Mapping):
        candidates.extend(raw_meta.get(key) for key in RAW_META_ALLOCATION_FIELDS)

    for candidate in candidates:
        if candidate is None:
            continue
        if isinstance(candidate, str):
            try:
                candidate = _decode(candidate)
            except MalformedAllocationData as exc:
                logger.warning("Ignoring allocation metadata on payment %s: %s", _id_from(record), exc)
                continue
        details = _parse_allocation_items(candidate)
        if details:
            return details
    return None


def _explicit_month_index(record: Mapping[str, Any]) -> Optional[int]:
    month = to_int(record.get("monthIndex"))
    if month is None and isinstance(record.get("allocation"), Mapping):
        month = to_int(record["allocation"].get("monthIndex"))
    return month


def normalize_record(
    record: Mapping[str, Any],
    schedule: GroupSchedule,
    position: int = 0,
    default_member_id: str = "",
) -> PaymentRecord:
    """Convert one raw store record into a :class:`PaymentRecord`."""
    payment_id = _id_from(record.get("_id")) or _id_from(record.get("id")) or f"payment-{position}"
    when = parse_date(_first_present(record, ("date", "createdAt")))
    month_index = _explicit_month_index(record)
    if month_index is None:
        month_index = month_index_for_date(schedule.start_date, when)
    status = _first_present(record, ("status", "state"))
    return PaymentRecord(
        id=payment_id,
        member_id=resolve_member_id(record) or default_member_id,
        amount=max(to_decimal(_first_present(record, ("amount", "amt"))), ZERO),
        date=when,
        is_approved=is_approved(record),
        allocation_details=parse_allocation_details(record),
        month_index=month_index,
        status=status if isinstance(status, str) else "",
    )


def normalize(
    raw_records: Any,
    group: Union[GroupSchedule, Mapping[str, Any], None],
    member_id: str,
) -> List[PaymentRecord]:
    """Normalize a payment listing into the ledger of one member.

    Records that name another member are dropped; records without any member
    reference are taken to belong to ``member_id`` since listings are scoped
    to one member and group. When an id appears more than once the approved
    copy is kept, in the position of the first occurrence.
    """
    schedule = group if isinstance(group, GroupSchedule) else build_group_schedule(group)
    member_id = str(member_id)
    ledger: List[PaymentRecord] = []
    seen: Dict[str, int] = {}
    for position, raw in enumerate(extract_payment_list(raw_records)):
        payment = normalize_record(raw, schedule, position, default_member_id=member_id)
        if payment.member_id != member_id:
            continue
        if payment.id in seen:
            slot = seen[payment.id]
            logger.debug("Duplicate payment id %s in ledger for member %s", payment.id, member_id)
            if payment.is_approved and not ledger[slot].is_approved:
                ledger[slot] = payment
            continue
        seen[payment.id] = len(ledger)
        ledger.append(payment)
    return ledger
