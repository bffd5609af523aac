import http.client
import json
import threading

import pytest

from finance_tracker import web
from finance_tracker.auth import issue_token

SECRET = "test-secret"


@pytest.fixture
def server(tmp_path):
    srv = web.create_server(str(tmp_path / "finance.db"), SECRET, "127.0.0.1", 0)
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    yield srv
    srv.shutdown()
    srv.server_close()


def _request(server, method, path, owner=None, body=None, raw=None, token=None):
    host, port = server.server_address[:2]
    conn = http.client.HTTPConnection(host, port, timeout=5)
    headers = {}
    if owner is not None:
        token = issue_token(owner, SECRET)
    if token is not None:
        headers["Authorization"] = f"Bearer {token}"
    data = raw if raw is not None else (json.dumps(body).encode("utf-8") if body is not None else None)
    if data is not None:
        headers["Content-Type"] = "application/json"
    try:
        conn.request(method, path, body=data, headers=headers)
        resp = conn.getresponse()
        return resp.status, json.loads(resp.read().decode("utf-8"))
    finally:
        conn.close()


def test_health_needs_no_token(server):
    assert _request(server, "GET", "/api/health") == (200, {"status": "ok"})


def test_requests_without_valid_token_are_rejected(server):
    status, body = _request(server, "GET", "/api/transactions")
    assert status == 401
    assert body["message"] == "Not authorized, no token"

    status, _ = _request(server, "GET", "/api/transactions", token="garbage")
    assert status == 401

    forged = issue_token("alice", "other-secret")
    status, _ = _request(server, "GET", "/api/budgets", token=forged)
    assert status == 401


def test_transaction_crud_round_trip(server):
    status, created = _request(
        server,
        "POST",
        "/api/transactions",
        owner="alice",
        body={"type": "expense", "category": "Food", "amount": 12.5, "description": "Lunch", "date": "2025-05-02"},
    )
    assert status == 201
    assert created["owner"] == "alice"
    tx_path = f"/api/transactions/{created['id']}"

    assert _request(server, "GET", tx_path, owner="alice") == (200, created)
    assert _request(server, "GET", "/api/transactions", owner="alice") == (200, [created])

    status, updated = _request(server, "PUT", tx_path, owner="alice", body={"amount": 15})
    assert status == 200
    assert updated["amount"] == 15
    assert updated["description"] == "Lunch"

    assert _request(server, "DELETE", tx_path, owner="alice") == (200, {"message": "Transaction removed"})
    status, body = _request(server, "GET", tx_path, owner="alice")
    assert status == 404
    assert body["message"] == "Transaction not found"


def test_cross_owner_access_is_401(server):
    _, goal = _request(
        server,
        "POST",
        "/api/savings-goals",
        owner="alice",
        body={"name": "Trip", "targetAmount": 500, "targetDate": "2026-06-01"},
    )
    path = f"/api/savings-goals/{goal['id']}"
    for method, body in (("GET", None), ("PUT", {"name": "Mine now"}), ("DELETE", None)):
        status, payload = _request(server, method, path, owner="bob", body=body)
        assert status == 401
        assert payload == {"message": "Not authorized"}
    status, _ = _request(server, "PUT", path + "/add-amount", owner="bob", body={"amount": 10})
    assert status == 401
    assert _request(server, "GET", path, owner="alice")[1]["name"] == "Trip"


def test_validation_errors_are_400(server):
    status, body = _request(
        server, "POST", "/api/budgets", owner="alice", body={"name": "Food", "category": "Food"}
    )
    assert status == 400
    assert body["message"] == "amount is required"

    status, _ = _request(server, "POST", "/api/budgets", owner="alice", raw=b"{not json")
    assert status == 400

    status, _ = _request(
        server, "GET", "/api/transactions/stats?startDate=nope", owner="alice"
    )
    assert status == 400


def test_stats_endpoints(server):
    for body in (
        {"type": "income", "category": "Salary", "amount": 1000, "description": "Pay", "date": "2025-03-01"},
        {"type": "expense", "category": "Food", "amount": 200, "description": "Shop", "date": "2025-03-02"},
        {"type": "expense", "category": "Food", "amount": 50, "description": "Cafe", "date": "2025-03-03"},
        {"type": "expense", "category": "Food", "amount": 70, "description": "Later", "date": "2025-04-03"},
    ):
        assert _request(server, "POST", "/api/transactions", owner="alice", body=body)[0] == 201

    status, stats = _request(
        server,
        "GET",
        "/api/transactions/stats?startDate=2025-03-01T00:00:00.000Z&endDate=2025-03-31T00:00:00.000Z",
        owner="alice",
    )
    assert status == 200
    assert stats == {
        "totalIncome": 1000,
        "totalExpenses": 250,
        "netAmount": 750,
        "transactionCount": 3,
        "categoryBreakdown": {
            "Salary": {"income": 1000, "expenses": 0},
            "Food": {"income": 0, "expenses": 250},
        },
    }

    _request(server, "POST", "/api/budgets", owner="alice", body={"name": "Food", "category": "Food", "amount": 300})
    status, budgets = _request(server, "GET", "/api/budgets/stats", owner="alice")
    assert status == 200
    assert budgets["totalBudgetAmount"] == 300

    status, goals = _request(server, "GET", "/api/savings-goals/stats", owner="alice")
    assert status == 200
    assert goals["totalGoals"] == 0


def test_add_amount_endpoint(server):
    _, goal = _request(
        server,
        "POST",
        "/api/savings-goals",
        owner="alice",
        body={"name": "Bike", "targetAmount": 500, "targetDate": "2026-01-01"},
    )
    path = f"/api/savings-goals/{goal['id']}"
    _request(server, "PUT", path + "/add-amount", owner="alice", body={"amount": 480})
    status, updated = _request(server, "PUT", path + "/add-amount", owner="alice", body={"amount": 30})
    assert status == 200
    assert updated["currentAmount"] == 510
    assert updated["isActive"] is False

    status, body = _request(server, "PUT", path, owner="alice", body={"currentAmount": 0})
    assert status == 400
    assert "currentAmount" in body["message"]


def test_reports_endpoint(server):
    status, report = _request(server, "GET", "/api/reports?range=year&category=all", owner="alice")
    assert status == 200
    assert set(report) >= {"transactionStats", "monthlyTrend", "topExpenses", "budgetStats", "savingsGoalStats"}

    status, report = _request(server, "GET", "/api/reports?range=decade", owner="alice")
    assert status == 200
    assert report["range"]["name"] == "month"


def test_unknown_routes_are_404(server):
    assert _request(server, "GET", "/api/accounts", owner="alice")[0] == 404
    assert _request(server, "PUT", "/api/budgets/abc/add-amount", owner="alice", body={"amount": 1})[0] == 404
    assert _request(server, "POST", "/api/budgets/abc", owner="alice", body={})[0] == 404


def test_unexpected_failure_is_500(server, monkeypatch):
    def boom(*_a, **_k):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(web.handlers, "list_records", boom)
    status, body = _request(server, "GET", "/api/transactions", owner="alice")
    assert status == 500
    assert body == {"message": "Server error"}
