"""
tests/test_protocol_routes.py -- Integration tests for /api/protocols.

Covers:
  - Listing: default scope (public first) and ?scope=account
  - Fetch by ?id= and by path; 404 payloads identical for private vs missing
  - POST dispatch: save, update, fork, publish, delete (204), both flags (400)
  - Publish ignores name/data; saving never demotes a public row
  - DELETE by path; second delete is 404
  - Unauthenticated access is 401
"""

from __future__ import annotations

import pytest
from conftest import login, make_user
from fastapi.testclient import TestClient


@pytest.fixture
def other_protocols(user_store, protocol_store):
    """Return (private_id, public_id) owned by another user."""
    other = make_user(user_store, "other@example.com")
    private_id = protocol_store.save(other.id, "their secret", "s")
    public_id = protocol_store.save(other.id, "their shared", "p")
    protocol_store.publish(public_id, other.id)
    return private_id, public_id


@pytest.fixture
def author(client: TestClient, user_store) -> TestClient:
    make_user(user_store, "me@example.com")
    assert login(client, "me@example.com").status_code == 200
    return client


def _save(client: TestClient, name: str, data: str, protocol_id: int = 0) -> int:
    resp = client.post("/api/protocols", json={"id": protocol_id, "name": name, "data": data})
    assert resp.status_code == 200, resp.text
    return resp.json()["id"]


class TestListing:
    def test_default_scope_includes_public_first(self, author: TestClient, other_protocols) -> None:
        private_id, public_id = other_protocols
        mine = _save(author, "mine", "d")

        rows = author.get("/api/protocols").json()
        assert [r["id"] for r in rows] == [public_id, mine]
        assert private_id not in [r["id"] for r in rows]
        assert rows[0]["is_owner"] is False
        assert rows[1]["is_owner"] is True
        assert "data" not in rows[0]

    def test_account_scope_only_mine(self, author: TestClient, other_protocols) -> None:
        mine = _save(author, "mine", "d")
        rows = author.get("/api/protocols", params={"scope": "account"}).json()
        assert [r["id"] for r in rows] == [mine]

    def test_requires_session(self, client: TestClient) -> None:
        assert client.get("/api/protocols").status_code == 401


class TestFetch:
    def test_fetch_by_query_and_path(self, author: TestClient) -> None:
        pid = _save(author, "doc", '{"columns": []}')
        by_query = author.get("/api/protocols", params={"id": pid}).json()
        by_path = author.get(f"/api/protocols/{pid}").json()
        assert by_query == by_path
        assert by_path["data"] == '{"columns": []}'
        assert by_path["is_public"] is False

    def test_public_row_of_other_user(self, author: TestClient, other_protocols) -> None:
        _, public_id = other_protocols
        body = author.get(f"/api/protocols/{public_id}").json()
        assert body["data"] == "p"
        assert body["is_owner"] is False

    def test_private_and_missing_are_indistinguishable(self, author: TestClient, other_protocols) -> None:
        private_id, _ = other_protocols
        private = author.get(f"/api/protocols/{private_id}")
        missing = author.get("/api/protocols/99999")
        assert private.status_code == missing.status_code == 404
        assert private.json() == missing.json()


class TestWrite:
    def test_update_in_place(self, author: TestClient) -> None:
        pid = _save(author, "v1", "a")
        assert _save(author, "v2", "b", pid) == pid
        assert author.get(f"/api/protocols/{pid}").json()["name"] == "v2"

    def test_save_over_public_row_forks(self, author: TestClient, protocol_store, other_protocols) -> None:
        _, public_id = other_protocols
        fork_id = _save(author, "my copy", "changed", public_id)
        assert fork_id != public_id

        original = author.get(f"/api/protocols/{public_id}").json()
        assert original["data"] == "p"
        fork = author.get(f"/api/protocols/{fork_id}").json()
        assert fork["is_owner"] is True
        assert fork["is_public"] is False

    def test_blank_name_is_400(self, author: TestClient) -> None:
        resp = author.post("/api/protocols", json={"name": " ", "data": "x"})
        assert resp.status_code == 400

    def test_publish(self, author: TestClient) -> None:
        pid = _save(author, "share me", "x")
        resp = author.post("/api/protocols", json={"id": pid, "makePublic": True})
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "id": pid, "isPublic": True}
        assert author.get(f"/api/protocols/{pid}").json()["is_public"] is True

    def test_publish_ignores_name_and_data(self, author: TestClient) -> None:
        pid = _save(author, "kept name", "kept data")
        resp = author.post("/api/protocols", json={"id": pid, "makePublic": True, "name": "x", "data": "y"})
        assert resp.status_code == 200
        stored = author.get(f"/api/protocols/{pid}").json()
        assert stored["is_public"] is True
        assert stored["name"] == "kept name"
        assert stored["data"] == "kept data"

    def test_owner_save_keeps_row_public(self, author: TestClient) -> None:
        pid = _save(author, "shared", "v1")
        author.post("/api/protocols", json={"id": pid, "makePublic": True})
        assert _save(author, "shared", "v2", pid) == pid
        assert author.get(f"/api/protocols/{pid}").json()["is_public"] is True

    def test_publish_other_users_row_is_404(self, author: TestClient, other_protocols) -> None:
        private_id, _ = other_protocols
        resp = author.post("/api/protocols", json={"id": private_id, "makePublic": True})
        assert resp.status_code == 404

    def test_delete_via_post_twice(self, author: TestClient) -> None:
        pid = _save(author, "temp", "x")
        first = author.post("/api/protocols", json={"id": pid, "delete": True})
        assert first.status_code == 204
        assert first.content == b""
        second = author.post("/api/protocols", json={"id": pid, "delete": True})
        assert second.status_code == 404

    def test_delete_without_id_is_400(self, author: TestClient) -> None:
        assert author.post("/api/protocols", json={"delete": True}).status_code == 400

    def test_both_flags_is_400(self, author: TestClient) -> None:
        pid = _save(author, "temp", "x")
        resp = author.post("/api/protocols", json={"id": pid, "delete": True, "makePublic": True})
        assert resp.status_code == 400
        assert author.get(f"/api/protocols/{pid}").status_code == 200

    def test_unknown_field_is_400(self, author: TestClient) -> None:
        resp = author.post("/api/protocols", json={"name": "x", "data": "y", "owner": 1})
        assert resp.status_code == 400


class TestDeleteByPath:
    def test_delete_then_404(self, author: TestClient) -> None:
        pid = _save(author, "temp", "x")
        assert author.delete(f"/api/protocols/{pid}").status_code == 204
        assert author.delete(f"/api/protocols/{pid}").status_code == 404

    def test_non_owner_cannot_delete_public_row(self, author: TestClient, other_protocols) -> None:
        _, public_id = other_protocols
        assert author.delete(f"/api/protocols/{public_id}").status_code == 404
        assert author.get(f"/api/protocols/{public_id}").status_code == 200
