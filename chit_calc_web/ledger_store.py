"""Persistence layer for chit groups and their payment ledger.

The store keeps group records and payment records as JSON payloads, exactly
as they were submitted, so the ledger reader sees the same heterogeneous
shapes it has to cope with in production. Payments are only ever appended and
have their approval status flipped; balances are never stored and are always
recomputed from the ledger. It defaults to SQLite for local development, but
accepts any SQLAlchemy-compatible URL.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import Column, DateTime, String, Text, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

from chit_calc.errors import MissingGroupOrMember

logger = logging.getLogger(__name__)

Base = declarative_base()


class ChitGroupModel(Base):
    __tablename__ = "chit_groups"

    id = Column(String(64), primary_key=True)
    payload_json = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class PaymentModel(Base):
    __tablename__ = "chit_payments"

    id = Column(String(64), primary_key=True)
    group_id = Column(String(64), index=True, nullable=False)
    member_id = Column(String(64), index=True, nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    payload_json = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    approved_at = Column(DateTime, nullable=True)


class LedgerStore:
    """Database-backed group and payment store."""

    def __init__(self, url: str, *, max_payments_per_page: int = 500) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)
        self._max_payments_per_page = max_payments_per_page

    def save_group(self, group_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        with self._session_factory() as session:
            row = session.get(ChitGroupModel, group_id)
            if row is None:
                row = ChitGroupModel(id=group_id, payload_json=json.dumps(payload))
                session.add(row)
            else:
                row.payload_json = json.dumps(payload)
            session.commit()
            return self._group_to_dict(row)

    def get_group(self, group_id: str) -> Dict[str, Any]:
        with self._session_factory() as session:
            row = session.get(ChitGroupModel, group_id)
            if row is None:
                raise MissingGroupOrMember(f"Chit group not found: {group_id}")
            return self._group_to_dict(row)

    @property
    def max_payments_per_page(self) -> int:
        return self._max_payments_per_page

    def list_payments(
        self, group_id: str, member_id: Optional[str] = None, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Payments for a group, oldest first; the whole ledger unless ``limit`` is given."""
        query = select(PaymentModel).where(PaymentModel.group_id == group_id)
        if member_id:
            query = query.where(PaymentModel.member_id == member_id)
        query = query.order_by(PaymentModel.created_at.asc())
        if limit and limit > 0:
            query = query.limit(limit)
        with self._session_factory() as session:
            rows = session.execute(query).scalars()
            return [self._payment_to_dict(row) for row in rows]

    def add_payment(self, group_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Append a payment record and return it as stored."""
        member_id = str(payload.get("memberId") or "")
        if not member_id:
            raise MissingGroupOrMember("Payment record has no memberId")
        row = PaymentModel(
            id=uuid4().hex,
            group_id=group_id,
            member_id=member_id,
            status=str(payload.get("status") or "pending"),
            payload_json=json.dumps(payload),
        )
        with self._session_factory() as session:
            session.add(row)
            session.commit()
            logger.info("Stored payment %s for member %s in group %s", row.id, member_id, group_id)
            return self._payment_to_dict(row)

    def decide_payment(
        self,
        group_id: str,
        payment_id: str,
        approve: bool,
        admin_note: str = "",
    ) -> Tuple[Dict[str, Any], bool]:
        """Approve or reject a payment.

        Returns the payment and whether anything changed; repeating the
        decision already recorded is a no-op.
        """
        with self._session_factory() as session:
            row = session.get(PaymentModel, payment_id)
            if row is None or row.group_id != group_id:
                raise MissingGroupOrMember(f"Payment not found: {payment_id}")
            target = "approved" if approve else "rejected"
            if row.status == target:
                return self._payment_to_dict(row), False

            payload = json.loads(row.payload_json)
            payload["status"] = target
            if approve:
                row.approved_at = datetime.utcnow()
                payload["approvedAt"] = row.approved_at.isoformat()
                payload["verified"] = True
                payload["adminNote"] = admin_note or "Approved by admin"
                raw_meta = payload.get("rawMeta")
                if isinstance(raw_meta, dict) and "appliedAllocation" not in payload:
                    payload["appliedAllocation"] = raw_meta.get("allocationSummary")
            else:
                row.approved_at = None
                payload["approvedAt"] = None
                payload["verified"] = False
                payload["adminNote"] = admin_note or "Rejected by admin"
            row.status = target
            row.payload_json = json.dumps(payload)
            session.commit()
            logger.info("Payment %s %s", payment_id, target)
            return self._payment_to_dict(row), True

    @staticmethod
    def _group_to_dict(row: ChitGroupModel) -> Dict[str, Any]:
        data = json.loads(row.payload_json)
        data["_id"] = row.id
        return data

    @staticmethod
    def _payment_to_dict(row: PaymentModel) -> Dict[str, Any]:
        data = json.loads(row.payload_json)
        data["_id"] = row.id
        data["groupId"] = row.group_id
        data["memberId"] = row.member_id
        data["status"] = row.status
        data.setdefault("createdAt", row.created_at.isoformat())
        return data


def create_store_from_env(url: str | None, max_payments_per_page: str | None = None) -> LedgerStore:
    limit = int(max_payments_per_page) if max_payments_per_page else 500
    return LedgerStore(url or "sqlite:///chit_ledger.sqlite3", max_payments_per_page=limit)
