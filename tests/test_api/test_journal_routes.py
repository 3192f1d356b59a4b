"""HTTP tests for journal entry endpoints."""

from fastapi.testclient import TestClient

ENTRY = {
    "title": "Opening range",
    "content": {"type": "doc", "content": [{"type": "paragraph", "text": "Waited."}]},
    "mood": "confident",
    "confidence_score": 8,
    "tags": ["orb"],
}


class TestJournalRoutes:
    def test_create_and_fetch(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers()

        response = client.post("/api/journal/entries", json=ENTRY, headers=headers)
        assert response.status_code == 201
        entry = response.json()["entry"]
        assert entry["user_id"] == "user-1"
        assert entry["content"] == ENTRY["content"]

        fetched = client.get(f"/api/journal/entries/{entry['id']}", headers=headers)
        assert fetched.json()["entry"]["mood"] == "confident"

    def test_link_to_trade(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers()
        trade = client.post(
            "/api/trades",
            json={
                "symbol": "AAPL",
                "direction": "long",
                "entry_price": "100",
                "quantity": "1",
                "entry_date": "2024-01-02T14:30:00Z",
            },
            headers=headers,
        ).json()["trade"]

        response = client.post(
            "/api/journal/entries", json={**ENTRY, "trade_id": trade["id"]}, headers=headers
        )
        assert response.json()["entry"]["trade_id"] == trade["id"]

        listed = client.get(
            "/api/journal/entries", params={"trade_id": trade["id"]}, headers=headers
        ).json()
        assert listed["count"] == 1

    def test_unknown_trade_link_is_404(self, client: TestClient, auth_headers) -> None:
        response = client.post(
            "/api/journal/entries", json={**ENTRY, "trade_id": "missing"}, headers=auth_headers()
        )
        assert response.status_code == 404
        assert response.json() == {"error": "Linked trade not found"}

    def test_validation(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers()
        bad_mood = client.post("/api/journal/entries", json={**ENTRY, "mood": "euphoric"}, headers=headers)
        bad_score = client.post("/api/journal/entries", json={**ENTRY, "confidence_score": 11}, headers=headers)
        no_content = client.post("/api/journal/entries", json={**ENTRY, "content": ""}, headers=headers)

        assert [r.status_code for r in (bad_mood, bad_score, no_content)] == [422, 422, 422]

    def test_update_list_delete(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers()
        entry = client.post("/api/journal/entries", json=ENTRY, headers=headers).json()["entry"]

        response = client.put(
            f"/api/journal/entries/{entry['id']}",
            json={"mood": "frustrated", "lessons_learned": "Respect the stop"},
            headers=headers,
        )
        assert response.json()["entry"]["mood"] == "frustrated"

        listed = client.get(
            "/api/journal/entries", params={"mood": "frustrated"}, headers=headers
        ).json()
        assert [e["id"] for e in listed["entries"]] == [entry["id"]]

        response = client.delete(f"/api/journal/entries/{entry['id']}", headers=headers)
        assert response.json() == {"message": "Journal entry deleted successfully"}
        assert client.get(f"/api/journal/entries/{entry['id']}", headers=headers).status_code == 404

    def test_entries_are_private(self, client: TestClient, auth_headers) -> None:
        entry = client.post(
            "/api/journal/entries", json=ENTRY, headers=auth_headers("user-1")
        ).json()["entry"]

        response = client.get(f"/api/journal/entries/{entry['id']}", headers=auth_headers("user-2"))
        assert response.status_code == 404
        assert client.get("/api/journal/entries", headers=auth_headers("user-2")).json()["count"] == 0


MEDIA = {
    "media_url": "user-1/journal/recap.png",
    "media_type": "image",
    "file_name": "recap.png",
    "file_size": 4096,
}


class TestJournalMediaRoutes:
    def test_add_list_delete(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers()
        entry = client.post("/api/journal/entries", json=ENTRY, headers=headers).json()["entry"]
        base = f"/api/journal/entries/{entry['id']}/media"

        response = client.post(base, json=MEDIA, headers=headers)
        assert response.status_code == 201
        media = response.json()["media"]
        assert media["journal_entry_id"] == entry["id"]
        assert media["media_type"] == "image"
        assert response.headers["X-RateLimit-Remaining"] == "1"

        listed = client.get(base, headers=headers).json()["media"]
        assert [m["id"] for m in listed] == [media["id"]]

        response = client.delete(f"{base}/{media['id']}", headers=headers)
        assert response.json() == {"message": "Media deleted successfully"}
        assert client.get(base, headers=headers).json()["media"] == []

    def test_unknown_media_type_is_422(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers()
        entry = client.post("/api/journal/entries", json=ENTRY, headers=headers).json()["entry"]

        response = client.post(
            f"/api/journal/entries/{entry['id']}/media",
            json={**MEDIA, "media_type": "spreadsheet"},
            headers=headers,
        )
        assert response.status_code == 422

    def test_media_is_private(self, client: TestClient, auth_headers) -> None:
        owner = auth_headers("user-1")
        entry = client.post("/api/journal/entries", json=ENTRY, headers=owner).json()["entry"]
        base = f"/api/journal/entries/{entry['id']}/media"
        media = client.post(base, json=MEDIA, headers=owner).json()["media"]

        other = auth_headers("user-2")
        assert client.get(base, headers=other).json() == {"error": "Journal entry not found"}
        assert client.post(base, json=MEDIA, headers=other).status_code == 404
        assert client.delete(f"{base}/{media['id']}", headers=other).status_code == 404

    def test_media_writes_share_journal_budget(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers()
        entry = client.post("/api/journal/entries", json=ENTRY, headers=headers).json()["entry"]
        base = f"/api/journal/entries/{entry['id']}/media"

        statuses = [client.post(base, json=MEDIA, headers=headers).status_code for _ in range(3)]

        assert statuses == [201, 201, 429]
