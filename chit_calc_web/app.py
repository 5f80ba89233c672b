import logging
import os
from datetime import date

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from chit_calc.engine import compute_member_position, plan_payment
from chit_calc.errors import ExceedsCeiling, InvalidAmount, MissingGroupOrMember
from chit_calc.submission import (
    build_payment_request,
    bucket_to_dict,
    money_to_json,
    overdue_to_dict,
    plan_to_dict,
)
from chit_calc.utils import parse_iso_day, to_decimal
from chit_calc_web.ledger_store import create_store_from_env

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
ledger_store = create_store_from_env(
    os.environ.get("CHIT_DATABASE_URL"),
    os.environ.get("CHIT_MAX_PAYMENTS_PER_PAGE"),
)


def _error(message: str, status: int, **extra):
    body = {"success": False, "error": message}
    body.update(extra)
    return jsonify(body), status


def _today_from(value) -> date:
    if not value:
        return date.today()
    return parse_iso_day(str(value))


def _payment_record_for_view(p) -> dict:
    return {
        "id": p.id,
        "amount": money_to_json(p.amount),
        "date": p.date.isoformat() if p.date else None,
        "status": p.status or ("approved" if p.is_approved else "pending"),
    }


def _position_for_view(position) -> dict:
    return {
        "memberId": position.member_id,
        "perMemberInstallment": money_to_json(position.schedule.per_member_installment),
        "totalMonths": position.schedule.total_months,
        "currentMonthIndex": position.current_month_index,
        "alreadyPaidThisMonth": money_to_json(position.already_paid_this_month),
        "totalPaid": money_to_json(position.total_paid),
        "buckets": [bucket_to_dict(b) for b in position.buckets],
        "overdue": overdue_to_dict(position.overdue),
        "pendingRequests": [_payment_record_for_view(p) for p in position.pending_requests],
        "maxPayableNow": money_to_json(position.max_payable_now),
    }


def _load_position(group_id: str, member_id: str, today: date):
    group = ledger_store.get_group(group_id)
    payments = ledger_store.list_payments(group_id, member_id)
    return compute_member_position(group, payments, member_id, today)


@app.errorhandler(MissingGroupOrMember)
def handle_missing(exc):
    return _error(str(exc), 404)


@app.put("/api/chitgroups/<group_id>")
def save_group(group_id):
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return _error("Group payload must be a JSON object", 400)
    group = ledger_store.save_group(group_id, payload)
    return jsonify({"success": True, "data": group})


@app.get("/api/chitgroups/<group_id>")
def get_group(group_id):
    return jsonify({"success": True, "data": ledger_store.get_group(group_id)})


@app.get("/api/chitgroups/<group_id>/payments")
def list_payments(group_id):
    ledger_store.get_group(group_id)
    member_id = request.args.get("memberId") or None
    payments = ledger_store.list_payments(group_id, member_id, limit=ledger_store.max_payments_per_page)
    return jsonify({"success": True, "payments": payments})


@app.get("/api/chitgroups/<group_id>/members/<member_id>/position")
def member_position(group_id, member_id):
    try:
        today = _today_from(request.args.get("today"))
    except ValueError as exc:
        return _error(str(exc), 400)
    position = _load_position(group_id, member_id, today)
    return jsonify({"success": True, "position": _position_for_view(position)})


@app.post("/api/chitgroups/<group_id>/payments/request")
def request_payment(group_id):
    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        return _error("Request body must be a JSON object", 400)
    member_id = str(body.get("memberId") or "").strip()
    if not member_id:
        return _error("memberId is required", 400)
    try:
        today = _today_from(body.get("today"))
    except ValueError as exc:
        return _error(str(exc), 400)

    position = _load_position(group_id, member_id, today)
    amount = to_decimal(body.get("amount"))
    try:
        plan = plan_payment(position, amount)
    except ExceedsCeiling as exc:
        return _error(str(exc), 400, maxPayableNow=money_to_json(exc.max_payable_now))
    except InvalidAmount as exc:
        return _error(str(exc), 400, maxPayableNow=money_to_json(position.max_payable_now))

    record = build_payment_request(
        member_id,
        amount,
        position.current_month_index,
        plan,
        utr=body.get("utr") or body.get("reference"),
        note=body.get("note"),
        attachment=body.get("attachment"),
    )
    saved = ledger_store.add_payment(group_id, record)
    logger.info("Payment request %s by member %s for %s", saved["_id"], member_id, amount)
    return jsonify({"success": True, "payment": saved, "plan": plan_to_dict(plan)}), 201


@app.post("/api/chitgroups/<group_id>/payments/approve")
def approve_payment(group_id):
    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        return _error("Request body must be a JSON object", 400)
    payment_id = str(body.get("paymentId") or "").strip()
    if not payment_id:
        return _error("Missing parameters", 400)
    approve = body.get("approve") is True
    admin_note = body.get("adminNote") if isinstance(body.get("adminNote"), str) else ""

    payment, changed = ledger_store.decide_payment(group_id, payment_id, approve, admin_note)
    response = {"success": True, "payment": payment}
    if not changed:
        response["message"] = "Already approved" if approve else "Already rejected"
    return jsonify(response)


@app.errorhandler(Exception)
def handle_unexpected(exc):
    if isinstance(exc, HTTPException):
        return _error(exc.description or exc.name, exc.code or 500)
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return _error(str(exc) or "Unexpected error", 500)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print("Starting chit calculator API...")
    app.run(host="0.0.0.0", port=8710, debug=True)
