"""HTTP tests for trade endpoints, authentication and write rate limiting.

Runs the real app (lifespan included) against a temp SQLite file and the
in-memory limiter with a budget of 3 writes per scope.
"""

from unittest.mock import AsyncMock

from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from tradelog.ratelimit import FailurePolicy, RateLimiter

TRADE = {
    "symbol": "AAPL",
    "direction": "long",
    "entry_price": "175.23",
    "quantity": "100",
    "entry_date": "2023-12-15T14:30:00Z",
}


def _create(client: TestClient, headers: dict, **overrides) -> dict:
    response = client.post("/api/trades", json={**TRADE, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["trade"]


class TestAuthentication:
    def test_health_is_public(self, client: TestClient) -> None:
        assert client.get("/api/health").json() == {"status": "ok"}

    def test_missing_session_is_401(self, client: TestClient) -> None:
        response = client.get("/api/trades")
        assert response.status_code == 401
        assert response.json() == {"error": "Authentication required. Please log in."}

    def test_expired_session_is_401(self, client: TestClient, make_token) -> None:
        response = client.get(
            "/api/trades",
            headers={"Authorization": f"Bearer {make_token(expires_in=-10)}"},
        )
        assert response.status_code == 401
        assert "expired" in response.json()["error"]

    def test_session_cookie_accepted(self, client: TestClient, make_token) -> None:
        client.cookies.set("session", make_token("user-1"))
        response = client.get("/api/trades")
        client.cookies.clear()
        assert response.status_code == 200


class TestTradeCrud:
    def test_create_manual_trade(self, client: TestClient, auth_headers) -> None:
        trade = _create(client, auth_headers(), user_id="someone-else")

        assert trade["user_id"] == "user-1"
        assert trade["status"] == "open"
        assert trade["import_source"] == "manual"
        assert trade["entry_price"] == "175.23"
        assert trade["fees"] == "0"
        assert trade["profit_loss"] is None

    def test_create_closed_trade(self, client: TestClient, auth_headers) -> None:
        trade = _create(client, auth_headers(), exit_price="182.67", fees="1")

        assert trade["status"] == "closed"
        assert trade["profit_loss"] == "743.00"
        assert trade["profit_loss_percent"] == "4.24"

    def test_invalid_body_is_422(self, client: TestClient, auth_headers) -> None:
        response = client.post(
            "/api/trades", json={**TRADE, "quantity": "-1"}, headers=auth_headers()
        )
        assert response.status_code == 422

    def test_get_update_delete(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers()
        trade = _create(client, headers)

        fetched = client.get(f"/api/trades/{trade['id']}", headers=headers).json()["trade"]
        assert fetched["symbol"] == "AAPL"
        assert fetched["trade_screenshots"] == []

        response = client.put(
            f"/api/trades/{trade['id']}", json={"exit_price": "180"}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Trade updated successfully"
        assert response.json()["trade"]["status"] == "closed"

        response = client.delete(f"/api/trades/{trade['id']}", headers=headers)
        assert response.json() == {"message": "Trade deleted successfully"}
        assert client.get(f"/api/trades/{trade['id']}", headers=headers).status_code == 404

    def test_null_required_field_rejected(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers()
        trade = _create(client, headers)

        response = client.put(f"/api/trades/{trade['id']}", json={"symbol": None}, headers=headers)
        assert response.status_code == 422

    def test_other_users_trade_is_404(self, client: TestClient, auth_headers) -> None:
        trade = _create(client, auth_headers("user-1"))

        response = client.get(f"/api/trades/{trade['id']}", headers=auth_headers("user-2"))

        assert response.status_code == 404
        assert response.json() == {"error": "Trade not found"}

    def test_list_with_filters(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers()
        _create(client, headers, symbol="AAPL")
        _create(client, headers, symbol="MSFT", direction="short", exit_price="170")

        response = client.get(
            "/api/trades",
            params={"status": "closed", "sortField": "symbol", "sortDirection": "asc"},
            headers=headers,
        )
        body = response.json()
        assert body["count"] == 1
        assert [t["symbol"] for t in body["trades"]] == ["MSFT"]

    def test_screenshots(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers()
        trade = _create(client, headers)

        response = client.post(
            f"/api/trades/{trade['id']}/screenshots",
            json={"storage_path": "user-1/aapl-entry.png", "caption": "entry"},
            headers=headers,
        )
        assert response.status_code == 201
        shot = response.json()["screenshot"]

        fetched = client.get(f"/api/trades/{trade['id']}", headers=headers).json()["trade"]
        assert [s["id"] for s in fetched["trade_screenshots"]] == [shot["id"]]

    def test_summary(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers()
        _create(client, headers, exit_price="185")
        _create(client, headers, exit_price="170")
        # third write uses up the budget; summary is a read and stays available
        _create(client, headers)

        summary = client.get("/api/trades/summary", headers=headers).json()

        assert summary["total_trades"] == 3
        assert summary["open_trades"] == 1
        assert summary["closed_trades"] == 2
        assert summary["wins"] == 1
        assert summary["win_rate"] == "0.500"


class TestWriteRateLimit:
    def test_headers_on_admitted_write(self, client: TestClient, auth_headers) -> None:
        response = client.post("/api/trades", json=TRADE, headers=auth_headers())

        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "2"
        assert int(response.headers["X-RateLimit-Reset"]) > 0

    def test_budget_exhausted_is_429(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers()
        for _ in range(3):
            _create(client, headers)

        response = client.post("/api/trades", json=TRADE, headers=headers)

        assert response.status_code == 429
        assert response.json() == {"error": "Rate limit exceeded. Please try again later."}
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert int(response.headers["Retry-After"]) >= 0
        assert client.get("/api/trades", headers=headers).json()["count"] == 3

    def test_budgets_are_per_user(self, client: TestClient, auth_headers) -> None:
        for _ in range(3):
            _create(client, auth_headers("user-1"))

        assert client.post("/api/trades", json=TRADE, headers=auth_headers("user-1")).status_code == 429
        assert client.post("/api/trades", json=TRADE, headers=auth_headers("user-2")).status_code == 201

    def test_budgets_are_per_scope(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers()
        for _ in range(3):
            _create(client, headers)

        response = client.post(
            "/api/journal/entries",
            json={"title": "Still allowed", "content": "text", "mood": "calm"},
            headers=headers,
        )
        assert response.status_code == 201

    def test_backend_outage_fails_open(self, client: TestClient, auth_headers) -> None:
        backend = AsyncMock()
        backend.hit.side_effect = RedisConnectionError("connection refused")
        client.app.state.rate_limiter = RateLimiter(backend, failure_policy=FailurePolicy.OPEN)

        headers = auth_headers()
        statuses = [
            client.post("/api/trades", json=TRADE, headers=headers).status_code
            for _ in range(5)
        ]

        assert statuses == [201] * 5

    def test_backend_outage_fails_closed(self, client: TestClient, auth_headers) -> None:
        backend = AsyncMock()
        backend.hit.side_effect = RedisConnectionError("connection refused")
        client.app.state.rate_limiter = RateLimiter(backend, failure_policy=FailurePolicy.CLOSED)

        response = client.post("/api/trades", json=TRADE, headers=auth_headers())

        assert response.status_code == 429
