import csv
import json

import pytest
from click.testing import CliRunner

from chit_calc.main import cli, parse_amount


@pytest.fixture
def files(group, write_json):
    payments = {
        "payments": [
            {"_id": "p1", "memberId": "m1", "amount": 3000, "monthIndex": 2, "status": "approved"},
            {"_id": "p2", "memberId": "m1", "amount": 900, "status": "pending"},
            {"_id": "p3", "memberId": "m2", "amount": 5000, "monthIndex": 1, "status": "approved"},
        ]
    }
    return ["--group", write_json("group.json", group), "--payments", write_json("payments.json", payments)]


def _run(*args):
    return CliRunner().invoke(cli, list(args))


def test_parse_amount():
    assert parse_amount("7k") == 7000
    assert parse_amount("1,250.50") == parse_amount("1250.5")


def test_status(files):
    result = _run("status", *files, "--member", "m1", "--today", "2024-04-15")
    assert result.exit_code == 0, result.output
    assert "Current month       : 4 of 20" in result.output
    assert "Partial" in result.output
    # month 1: 5000 + 306, month 2: 2000 + 81, month 3: 5000 + 100, month 4: 5000
    assert "Max payable now     : 17,487.00" in result.output
    assert "Pending requests    : 1 (900.00)" in result.output


def test_status_csv_export(files, tmp_path):
    out = tmp_path / "buckets.csv"
    result = _run("status", *files, "-m", "m1", "--today", "2024-04-15", "--output", str(out))
    assert result.exit_code == 0, result.output
    with out.open(newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[0][0] == "Month"
    assert len(rows) == 21
    assert rows[2][5] == "Partial"


def test_plan_json_export(files, tmp_path):
    out = tmp_path / "plan.json"
    result = _run("plan", *files, "-m", "m1", "--today", "2024-04-15", "--amount", "6k", "--output", str(out))
    assert result.exit_code == 0, result.output
    data = json.loads(out.read_text(encoding="utf-8"))
    assert [e["monthIndex"] for e in data["entries"]] == [1, 2]
    assert data["entries"][0]["apply"] == 5306


def test_plan_over_ceiling_fails(files):
    result = _run("plan", *files, "-m", "m1", "--today", "2024-04-15", "--amount", "50000")
    assert result.exit_code == 1
    assert "17487" in result.output


def test_request_prints_pending_payload(files):
    result = _run("request", *files, "-m", "m1", "--today", "2024-04-15", "--amount", "5306", "--utr", "UTR9")
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["status"] == "pending"
    assert payload["monthIndex"] == 4
    assert payload["utr"] == "UTR9"
    assert json.loads(payload["allocationSummary"])["entries"][0]["monthIndex"] == 1


def test_bad_today_is_rejected(files):
    result = _run("status", *files, "-m", "m1", "--today", "15/04/2024")
    assert result.exit_code == 2


def test_penalty_quote():
    result = _run("penalty", "--remaining", "5000", "--rate", "2", "--months", "3")
    assert result.exit_code == 0, result.output
    assert "Penalty          : 306.00" in result.output
    assert "Total to clear   : 5,306.00" in result.output


@pytest.mark.parametrize("rate", ["nan", "inf", "two"])
def test_penalty_rejects_non_finite_rate(rate):
    result = _run("penalty", "--remaining", "5000", "--rate", rate, "--months", "3")
    assert result.exit_code == 2
    assert "Invalid rate" in result.output
