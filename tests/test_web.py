import pytest

from chit_calc_web import app as web_app
from chit_calc_web.ledger_store import LedgerStore


@pytest.fixture
def client(tmp_path, monkeypatch, group):
    store = LedgerStore(f"sqlite:///{tmp_path / 'ledger.sqlite3'}")
    monkeypatch.setattr(web_app, "ledger_store", store)
    web_app.app.config["TESTING"] = True
    with web_app.app.test_client() as client:
        resp = client.put("/api/chitgroups/g1", json=group)
        assert resp.status_code == 200
        yield client


def _position(client, today="2024-04-15"):
    resp = client.get(f"/api/chitgroups/g1/members/m1/position?today={today}")
    assert resp.status_code == 200
    return resp.get_json()["position"]


def _request(client, amount):
    return client.post(
        "/api/chitgroups/g1/payments/request",
        json={"memberId": "m1", "amount": amount, "utr": "UTR1", "today": "2024-04-15"},
    )


def test_position_for_new_member(client):
    position = _position(client)
    assert position["currentMonthIndex"] == 4
    assert position["perMemberInstallment"] == 5000
    assert position["maxPayableNow"] == 20608
    assert position["overdue"]["totalPenaltyIfPaidNow"] == 608
    assert [d["monthsOverdue"] for d in position["overdue"]["details"]] == [3, 2, 1]
    assert position["buckets"][0]["status"] == "Unpaid"


def test_request_over_ceiling_reports_ceiling(client):
    resp = _request(client, 25000)
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["success"] is False
    assert body["maxPayableNow"] == 20608


def test_request_zero_amount(client):
    resp = _request(client, 0)
    assert resp.status_code == 400
    assert "positive" in resp.get_json()["error"]


def test_request_requires_member(client):
    resp = client.post("/api/chitgroups/g1/payments/request", json={"amount": 100})
    assert resp.status_code == 400


def test_request_then_approve_flow(client):
    resp = _request(client, 10508)
    assert resp.status_code == 201
    body = resp.get_json()
    payment_id = body["payment"]["_id"]
    assert body["payment"]["status"] == "pending"
    assert [e["monthIndex"] for e in body["plan"]["entries"]] == [1, 2]

    pending = _position(client)
    assert pending["maxPayableNow"] == 20608
    assert [p["id"] for p in pending["pendingRequests"]] == [payment_id]

    resp = client.post("/api/chitgroups/g1/payments/approve", json={"paymentId": payment_id, "approve": True})
    assert resp.status_code == 200
    assert resp.get_json()["payment"]["status"] == "approved"

    after = _position(client)
    assert after["pendingRequests"] == []
    assert [d["monthIndex"] for d in after["overdue"]["details"]] == [3]
    assert after["maxPayableNow"] == 10100
    assert after["totalPaid"] == 10508

    again = client.post("/api/chitgroups/g1/payments/approve", json={"paymentId": payment_id, "approve": True})
    assert again.get_json()["message"] == "Already approved"


def test_payment_listing(client):
    _request(client, 1000)
    resp = client.get("/api/chitgroups/g1/payments?memberId=m1")
    assert resp.status_code == 200
    assert len(resp.get_json()["payments"]) == 1


def test_unknown_group_is_404(client):
    resp = client.get("/api/chitgroups/missing/members/m1/position")
    assert resp.status_code == 404
    assert resp.get_json()["success"] is False


def test_unknown_payment_is_404(client):
    resp = client.post("/api/chitgroups/g1/payments/approve", json={"paymentId": "nope", "approve": True})
    assert resp.status_code == 404


def test_bad_today_is_400(client):
    resp = client.get("/api/chitgroups/g1/members/m1/position?today=yesterday")
    assert resp.status_code == 400


def test_unknown_route_stays_404(client):
    resp = client.get("/api/nothing-here")
    assert resp.status_code == 404


@pytest.fixture
def capped_client(tmp_path, monkeypatch, group):
    store = LedgerStore(f"sqlite:///{tmp_path / 'capped.sqlite3'}", max_payments_per_page=2)
    monkeypatch.setattr(web_app, "ledger_store", store)
    web_app.app.config["TESTING"] = True
    with web_app.app.test_client() as client:
        client.put("/api/chitgroups/g1", json=group)
        for month in (1, 2, 3):
            store.add_payment(
                "g1", {"memberId": "m1", "amount": 5000, "monthIndex": month, "status": "approved"}
            )
        yield client


def test_position_counts_payments_beyond_listing_cap(capped_client):
    listing = capped_client.get("/api/chitgroups/g1/payments?memberId=m1").get_json()
    assert len(listing["payments"]) == 2

    position = _position(capped_client)
    assert position["overdue"]["details"] == []
    assert position["maxPayableNow"] == 5000
    assert position["totalPaid"] == 15000


def test_request_ceiling_uses_whole_ledger(capped_client):
    resp = _request(capped_client, 10100)
    assert resp.status_code == 400
    assert resp.get_json()["maxPayableNow"] == 5000


@pytest.mark.parametrize("path", ["/api/chitgroups/g1/payments/request", "/api/chitgroups/g1/payments/approve"])
def test_non_object_body_is_400(client, path):
    resp = client.post(path, json=[{"memberId": "m1", "amount": 100}])
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False
