"""Command-line interface for the chit calculator.

This module uses the ``click`` library to implement a multi-command
interface. Group and payment data are read from JSON files in the shapes the
payment store returns. Users can inspect a member's month-by-month position,
plan how a payment would be allocated, build the payment request that would
be submitted, or quote a penalty. Results can be printed to the terminal or
exported to JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
import logging
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, List, Optional

import click

from .data_models import MemberPosition, MonthBucket
from .engine import compute_member_position, compute_penalty, plan_payment
from .errors import ChitCalcError
from .formatter import print_buckets, print_overdue, print_plan, print_position_summary
from .submission import build_payment_request, bucket_to_dict, overdue_to_dict, plan_to_dict
from .utils import decimal_from_str, parse_iso_day


def parse_amount(value: str) -> Decimal:
    """Parse a numeric string with optional suffixes.

    Accepts plain numbers ("5000", "5,000") and shorthand with ``k``/``m``
    suffixes (e.g., "5k" meaning 5_000). Returns a ``Decimal``.
    """
    value = value.strip().lower()
    value = value.replace(",", "")
    factor = Decimal(1)
    if value.endswith("k"):
        factor = Decimal(1_000)
        value = value[:-1]
    elif value.endswith("m"):
        factor = Decimal(1_000_000)
        value = value[:-1]
    try:
        return decimal_from_str(value) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")


def load_json_file(path: str) -> Any:
    try:
        with Path(path).open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as exc:
        raise click.BadParameter(f"Cannot read JSON from {path}: {exc}")


def parse_today(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return parse_iso_day(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def build_position_from_options(
    group_path: str,
    payments_path: str,
    member_id: str,
    today: Optional[str],
) -> MemberPosition:
    group = load_json_file(group_path)
    payments = load_json_file(payments_path)
    return compute_member_position(group, payments, member_id, parse_today(today))


def position_options(func: Callable) -> Callable:
    """Options shared by every command that works on one member's ledger."""
    func = click.option("--today", "today", help="Evaluate as of this date (YYYY-MM-DD)")(func)
    func = click.option("--member", "-m", "member_id", required=True, help="Member id")(func)
    func = click.option(
        "--payments", "payments_path", required=True, help="Payment listing JSON file"
    )(func)
    func = click.option("--group", "-g", "group_path", required=True, help="Group record JSON file")(func)
    return func


def export_to_json(path: Path, position: MemberPosition) -> None:
    """Export buckets and the overdue breakdown to a JSON file."""
    data = {
        "memberId": position.member_id,
        "currentMonthIndex": position.current_month_index,
        "buckets": [bucket_to_dict(b) for b in position.buckets],
        "overdue": overdue_to_dict(position.overdue),
    }
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, buckets: List[MonthBucket]) -> None:
    """Export month buckets to a CSV file."""
    header = ["Month", "Expected", "Principal_Paid", "Penalty_Paid", "Remaining", "Status"]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for b in buckets:
            writer.writerow(
                [
                    b.month_index,
                    float(b.expected),
                    float(b.principal_paid),
                    float(b.penalty_paid),
                    float(b.remaining),
                    b.status,
                ]
            )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """A command-line chit fund installment and penalty calculator."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@position_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def status(
    group_path: str,
    payments_path: str,
    member_id: str,
    today: Optional[str],
    output: Optional[str],
) -> None:
    """Show a member's month buckets and overdue breakdown."""
    position = build_position_from_options(group_path, payments_path, member_id, today)
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, position)
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, position.buckets)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Position exported to {path}")
        return
    print_position_summary(position)
    print_buckets(position.buckets, upto=position.current_month_index)
    print_overdue(position.overdue)


@cli.command()
@position_options
@click.option("--amount", "-a", "amount", required=True, help="Amount the member wants to pay")
@click.option("--output", "output", type=str, help="Output file path (.json)")
def plan(
    group_path: str,
    payments_path: str,
    member_id: str,
    today: Optional[str],
    amount: str,
    output: Optional[str],
) -> None:
    """Plan how a payment would be allocated, oldest overdue month first."""
    position = build_position_from_options(group_path, payments_path, member_id, today)
    try:
        allocation = plan_payment(position, parse_amount(amount))
    except ChitCalcError as exc:
        raise click.ClickException(str(exc))
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Plan export must use .json extension")
        with path.open("w", encoding="utf-8") as f:
            json.dump(plan_to_dict(allocation), f, indent=2)
        click.echo(f"Plan exported to {path}")
    else:
        print_plan(allocation)


@cli.command()
@position_options
@click.option("--amount", "-a", "amount", required=True, help="Amount the member wants to pay")
@click.option("--utr", "utr", help="Bank/UPI transaction reference")
@click.option("--note", "note", help="Free-text note for the approver")
def request(
    group_path: str,
    payments_path: str,
    member_id: str,
    today: Optional[str],
    amount: str,
    utr: Optional[str],
    note: Optional[str],
) -> None:
    """Print the payment request that would be submitted for approval."""
    position = build_position_from_options(group_path, payments_path, member_id, today)
    value = parse_amount(amount)
    try:
        allocation = plan_payment(position, value)
    except ChitCalcError as exc:
        raise click.ClickException(str(exc))
    payload = build_payment_request(
        member_id, value, position.current_month_index, allocation, utr=utr, note=note
    )
    click.echo(json.dumps(payload, indent=2))


@cli.command()
@click.option("--remaining", "-r", "remaining", required=True, help="Unpaid principal of the month")
@click.option("--rate", "rate", required=True, help="Penalty percent per month")
@click.option("--months", "months", required=True, type=click.IntRange(min=0), help="Months overdue")
def penalty(remaining: str, rate: str, months: int) -> None:
    """Quote the compounded penalty on an overdue balance."""
    principal = parse_amount(remaining)
    try:
        percent = decimal_from_str(rate.strip())
    except ValueError:
        raise click.BadParameter(f"Invalid rate: {rate}", param_hint="--rate")
    amount = compute_penalty(principal, percent, months)
    click.echo(f"Penalty          : {amount:,.2f}")
    click.echo(f"Total to clear   : {principal + amount:,.2f}")


if __name__ == "__main__":
    cli()
