"""
API tests for the credit, transaction and report routes.
"""
from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from config import LedgerSettings
from dependencies import build_services
from main import create_app

FUTURE = "2099-01-01T00:00:00Z"


@pytest.fixture
def services(session_factory, store, hook):
    return build_services(session_factory, settings=LedgerSettings(), hook=hook)


@pytest.fixture
def client(services):
    app = create_app(services, scheduler_enabled=False)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth():
    token = jwt.encode({"id": 7, "role": "admin"}, "test-secret", algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


def issue(client, auth, amount="100.00", **extra):
    body = {"customer_id": "cust-1", "amount": amount, **extra}
    response = client.post("/api/credits", json=body, headers=auth)
    assert response.status_code == 201, response.text
    return response.json()


class TestAuth:
    def test_missing_token(self, client):
        assert client.get("/api/credits").status_code == 401

    def test_invalid_token(self, client):
        response = client.get("/api/credits", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 403


class TestCreditRoutes:
    def test_issue_credit(self, client, auth, hook):
        data = issue(client, auth, currency="usd", expiration_date=FUTURE, note="Refund")

        credit = data["credit"]
        assert credit["status"] == "ACTIVE"
        assert credit["balance"] == "100.00"
        assert credit["currency"] == "USD"
        assert credit["expiration_date"] == "2099-01-01T00:00:00+00:00"
        assert data["transaction"]["type"] == "ISSUE"
        assert data["transaction"]["staff_id"] == "7"
        assert hook.of_kind("issued") == [("issued", credit["id"])]

    def test_issue_validation(self, client, auth):
        response = client.post("/api/credits", json={"amount": "-1"}, headers=auth)
        assert response.status_code == 422
        response = client.post("/api/credits", json={"amount": "1.001"}, headers=auth)
        assert response.status_code == 422

    def test_issue_past_expiration(self, client, auth):
        response = client.post(
            "/api/credits", json={"amount": "10", "expiration_date": "2001-01-01T00:00:00Z"}, headers=auth
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_expiration_date"

    def test_get_credit_and_by_code(self, client, auth):
        credit = issue(client, auth)["credit"]

        by_id = client.get(f"/api/credits/{credit['id']}", headers=auth)
        assert by_id.status_code == 200
        assert by_id.json()["code"] == credit["code"]

        by_code = client.get(f"/api/credits/code/{credit['code'].lower()}", headers=auth)
        assert by_code.status_code == 200
        assert by_code.json()["id"] == credit["id"]

    def test_not_found(self, client, auth):
        response = client.get("/api/credits/999", headers=auth)
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "credit_not_found"
        assert client.get("/api/credits/code/SC-NOPE", headers=auth).status_code == 404

    def test_redeem_and_insufficient_balance(self, client, auth):
        credit = issue(client, auth)["credit"]

        response = client.post(
            f"/api/credits/{credit['id']}/redeem",
            json={"amount": "60.00", "order_id": "gid-1", "order_number": "#1001"},
            headers=auth,
        )
        assert response.status_code == 200
        assert response.json()["credit"]["balance"] == "40.00"
        assert response.json()["transaction"]["amount"] == "-60.00"

        response = client.post(f"/api/credits/{credit['id']}/redeem", json={"amount": "60.00"}, headers=auth)
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "insufficient_balance"

    def test_redeem_by_code(self, client, auth):
        credit = issue(client, auth, amount="30.00")["credit"]
        response = client.post("/api/credits/redeem", json={"code": credit["code"], "amount": "30.00"}, headers=auth)
        assert response.status_code == 200
        assert response.json()["credit"]["status"] == "USED"

    def test_adjust(self, client, auth):
        credit = issue(client, auth)["credit"]
        response = client.post(
            f"/api/credits/{credit['id']}/adjust", json={"amount": "-25.00", "reason": "Damaged"}, headers=auth
        )
        assert response.status_code == 200
        assert response.json()["credit"]["balance"] == "75.00"

        response = client.post(
            f"/api/credits/{credit['id']}/adjust", json={"amount": "50.00", "reason": "Too much"}, headers=auth
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "adjustment_out_of_range"

    def test_cancel_twice(self, client, auth):
        credit = issue(client, auth)["credit"]
        url = f"/api/credits/{credit['id']}/cancel"

        first = client.post(url, json={"reason": "Customer request"}, headers=auth)
        assert first.status_code == 200
        assert first.json()["credit"]["status"] == "CANCELLED"
        assert first.json()["transaction"]["amount"] == "-100.00"

        second = client.post(url, json={"reason": "Again"}, headers=auth)
        assert second.status_code == 409
        assert second.json()["detail"]["code"] == "already_terminal"

    def test_extend_expiration(self, client, auth):
        credit = issue(client, auth, expiration_date="2098-01-01T00:00:00Z")["credit"]
        response = client.post(
            f"/api/credits/{credit['id']}/extend-expiration",
            json={"new_expiration_date": FUTURE, "reason": "Goodwill"},
            headers=auth,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["credit"]["expiration_date"] == "2099-01-01T00:00:00+00:00"
        assert data["transaction"]["type"] == "EXTEND"
        assert data["transaction"]["previous_expiration_date"] == "2098-01-01T00:00:00+00:00"

    def test_list_credits(self, client, auth):
        first = issue(client, auth)["credit"]
        second = issue(client, auth, amount="5.00")["credit"]
        client.post(f"/api/credits/{second['id']}/cancel", json={"reason": "x"}, headers=auth)

        everything = client.get("/api/credits", headers=auth).json()
        assert everything["total"] == 2

        active = client.get("/api/credits", params={"include_terminal": "false"}, headers=auth).json()
        assert [c["id"] for c in active["credits"]] == [first["id"]]

        cancelled = client.get("/api/credits", params={"status": "CANCELLED"}, headers=auth).json()
        assert [c["id"] for c in cancelled["credits"]] == [second["id"]]

        assert client.get("/api/credits", params={"sort_by": "code"}, headers=auth).status_code == 422

    def test_expiring_and_process_expired(self, client, auth):
        issue(client, auth, expiration_date=FUTURE)
        expiring = client.get("/api/credits/expiring", params={"days": 30}, headers=auth).json()
        assert expiring["total"] == 0

        result = client.post("/api/credits/process-expired", headers=auth).json()
        assert result == {"expired_count": 0, "skipped_count": 0, "failed_credit_ids": [], "errors": []}

    def test_verify_and_balance_at(self, client, auth):
        credit = issue(client, auth)["credit"]
        client.post(f"/api/credits/{credit['id']}/redeem", json={"amount": "10.00"}, headers=auth)

        verify = client.get(f"/api/credits/{credit['id']}/verify", headers=auth).json()
        assert verify["ok"] is True

        balance = client.get(
            f"/api/credits/{credit['id']}/balance-at", params={"at": "2000-01-01T00:00:00"}, headers=auth
        ).json()
        assert balance["balance"] is None


class TestTransactionRoutes:
    def test_list_get_and_audit(self, client, auth):
        credit = issue(client, auth)["credit"]
        redeem = client.post(
            f"/api/credits/{credit['id']}/redeem", json={"amount": "10.00"}, headers=auth
        ).json()["transaction"]

        listed = client.get("/api/transactions", params={"credit_id": credit["id"]}, headers=auth).json()
        assert listed["total"] == 2
        assert [t["type"] for t in listed["transactions"]] == ["REDEEM", "ISSUE"]

        only_redeems = client.get("/api/transactions", params={"type": "REDEEM"}, headers=auth).json()
        assert only_redeems["total"] == 1

        single = client.get(f"/api/transactions/{redeem['id']}", headers=auth)
        assert single.status_code == 200
        assert single.json()["balance_after"] == "90.00"
        assert client.get("/api/transactions/999", headers=auth).status_code == 404

        audit = client.get(
            "/api/transactions/audit", params={"entity_type": "customer", "entity_id": "cust-1"}, headers=auth
        ).json()
        assert audit["total"] == 2


class TestReportRoutes:
    def test_aggregate_and_stats(self, client, auth):
        credit = issue(client, auth)["credit"]
        client.post(f"/api/credits/{credit['id']}/redeem", json={"amount": "10.00"}, headers=auth)

        report = client.get("/api/reports/aggregate", params={"group_by": "type"}, headers=auth).json()
        buckets = {b["key"]: b for b in report["buckets"]}
        assert buckets["ISSUE"]["total_amount"] == "100.00"
        assert buckets["REDEEM"]["count"] == 1
        assert report["total_count"] == 2

        assert client.get("/api/reports/aggregate", params={"group_by": "hour"}, headers=auth).status_code == 422

        stats = client.get("/api/reports/stats", headers=auth).json()
        assert stats["total_credits"] == 1
        assert stats["active_credits"] == 1
        assert stats["issued_in_period"] == 1


class TestServiceRoutes:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] is True

    def test_metrics(self, client, auth):
        issue(client, auth)
        assert client.get("/metrics").json()["issue"]["count"] == 1

    def test_shutdown_closes_notification_executor(self, session_factory, store, hook):
        executor = ThreadPoolExecutor(max_workers=1)
        services = build_services(session_factory, settings=LedgerSettings(), hook=hook, executor=executor)

        with TestClient(create_app(services, scheduler_enabled=False)):
            pass

        with pytest.raises(RuntimeError):
            executor.submit(print)
