"""
tests/test_franchise_routes.py -- Integration tests for /api/franchise.

Coverage:
  - Admin-only create/delete with the per-action 403 messages for others
  - Store create/delete for the franchise's own admin, 403 for everyone else,
    403 before 404 for a caller without scope
  - Franchise delete cascades to its stores and revokes franchisee scope
  - Public listing: no auth needed, admins hidden from anonymous callers,
    pagination "more" flag
  - GET /franchise/{userId}: own franchises with revenue, [] for other callers
"""

from __future__ import annotations

import uuid

import pytest
from fastapi.testclient import TestClient


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _name(prefix: str = "pizza") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def owned_franchise(api_client: tuple[TestClient, str, int], register):
    """A franchise administered by a freshly registered user.

    Returns (franchise, owner_user, owner_token). The owner's token was issued
    before the franchise existed; the grant is picked up on the next request.
    """
    client, admin_token, _uid = api_client
    owner, owner_token = register(name="pizza franchisee")
    resp = client.post(
        "/api/franchise",
        json={"name": _name(), "admins": [{"email": owner["email"]}]},
        headers=bearer(admin_token),
    )
    assert resp.status_code == 200, resp.text
    return resp.json(), owner, owner_token


class TestCreateFranchise:
    def test_admin_creates(self, api_client: tuple[TestClient, str, int], register) -> None:
        client, admin_token, _uid = api_client
        owner, _ = register()
        name = _name()
        resp = client.post(
            "/api/franchise",
            json={"name": name, "admins": [{"email": owner["email"]}]},
            headers=bearer(admin_token),
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["name"] == name
        assert body["admins"] == [{"id": owner["id"], "name": owner["name"], "email": owner["email"]}]
        assert body["stores"] == []

    def test_diner_forbidden(self, api_client: tuple[TestClient, str, int], register) -> None:
        client, _admin_token, _uid = api_client
        _user, token = register()
        resp = client.post("/api/franchise", json={"name": _name(), "admins": []}, headers=bearer(token))
        assert resp.status_code == 403
        assert resp.json()["message"] == "unable to create a franchise"

    def test_anonymous(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _admin_token, _uid = api_client
        resp = client.post("/api/franchise", json={"name": _name(), "admins": []})
        assert resp.status_code == 401

    def test_unknown_admin_email(self, api_client: tuple[TestClient, str, int]) -> None:
        client, admin_token, _uid = api_client
        resp = client.post(
            "/api/franchise",
            json={"name": _name(), "admins": [{"email": "ghost@nowhere.test"}]},
            headers=bearer(admin_token),
        )
        assert resp.status_code == 404
        assert resp.json()["message"] == "unknown user for franchise admin ghost@nowhere.test provided"

    def test_duplicate_name(self, api_client: tuple[TestClient, str, int]) -> None:
        client, admin_token, _uid = api_client
        name = _name()
        assert client.post("/api/franchise", json={"name": name}, headers=bearer(admin_token)).status_code == 200
        resp = client.post("/api/franchise", json={"name": name}, headers=bearer(admin_token))
        assert resp.status_code == 409

    def test_owner_sees_franchisee_role(self, api_client: tuple[TestClient, str, int], owned_franchise) -> None:
        client, _admin_token, _uid = api_client
        franchise, _owner, owner_token = owned_franchise
        roles = client.get("/api/user/me", headers=bearer(owner_token)).json()["roles"]
        assert {"role": "franchisee", "objectId": franchise["id"]} in roles


class TestStores:
    def test_owner_creates_and_deletes(self, api_client: tuple[TestClient, str, int], owned_franchise) -> None:
        client, _admin_token, _uid = api_client
        franchise, _owner, owner_token = owned_franchise
        fid = franchise["id"]

        resp = client.post(f"/api/franchise/{fid}/store", json={"name": "SLC"}, headers=bearer(owner_token))
        assert resp.status_code == 200, resp.text
        store = resp.json()
        assert store["name"] == "SLC"
        assert store["franchiseId"] == fid

        resp = client.delete(f"/api/franchise/{fid}/store/{store['id']}", headers=bearer(owner_token))
        assert resp.status_code == 200
        assert resp.json() == {"message": "store deleted"}

    def test_other_diner_forbidden(self, api_client: tuple[TestClient, str, int], owned_franchise, register) -> None:
        client, _admin_token, _uid = api_client
        franchise, _owner, _owner_token = owned_franchise
        _user, token = register()
        resp = client.post(f"/api/franchise/{franchise['id']}/store", json={"name": "x"}, headers=bearer(token))
        assert resp.status_code == 403
        assert resp.json()["message"] == "unable to create a store"

    def test_owner_of_other_franchise_forbidden(
        self, api_client: tuple[TestClient, str, int], owned_franchise
    ) -> None:
        client, admin_token, _uid = api_client
        _franchise, _owner, owner_token = owned_franchise
        other = client.post("/api/franchise", json={"name": _name()}, headers=bearer(admin_token)).json()
        store = client.post(
            f"/api/franchise/{other['id']}/store", json={"name": "SLC"}, headers=bearer(admin_token)
        ).json()

        resp = client.delete(f"/api/franchise/{other['id']}/store/{store['id']}", headers=bearer(owner_token))
        assert resp.status_code == 403
        assert resp.json()["message"] == "unable to delete a store"

    def test_forbidden_before_not_found(self, api_client: tuple[TestClient, str, int], register) -> None:
        client, _admin_token, _uid = api_client
        _user, token = register()
        resp = client.delete("/api/franchise/999999/store/1", headers=bearer(token))
        assert resp.status_code == 403

    def test_admin_not_found(self, api_client: tuple[TestClient, str, int]) -> None:
        client, admin_token, _uid = api_client
        resp = client.post("/api/franchise/999999/store", json={"name": "x"}, headers=bearer(admin_token))
        assert resp.status_code == 404
        resp = client.delete("/api/franchise/999999/store/1", headers=bearer(admin_token))
        assert resp.status_code == 404


class TestDeleteFranchise:
    def test_diner_forbidden(self, api_client: tuple[TestClient, str, int], owned_franchise) -> None:
        client, _admin_token, _uid = api_client
        franchise, _owner, owner_token = owned_franchise
        resp = client.delete(f"/api/franchise/{franchise['id']}", headers=bearer(owner_token))
        assert resp.status_code == 403
        assert resp.json()["message"] == "unable to delete a franchise"

    def test_cascade(self, api_client: tuple[TestClient, str, int], owned_franchise) -> None:
        client, admin_token, _uid = api_client
        franchise, owner, owner_token = owned_franchise
        fid = franchise["id"]
        store = client.post(f"/api/franchise/{fid}/store", json={"name": "SLC"}, headers=bearer(owner_token)).json()

        resp = client.delete(f"/api/franchise/{fid}", headers=bearer(admin_token))
        assert resp.status_code == 200
        assert resp.json() == {"message": "franchise deleted"}

        # The store went with it and the former owner lost scope.
        assert client.get(f"/api/franchise/{owner['id']}", headers=bearer(owner_token)).json() == []
        resp = client.delete(f"/api/franchise/{fid}/store/{store['id']}", headers=bearer(owner_token))
        assert resp.status_code == 403
        resp = client.post(f"/api/franchise/{fid}/store", json={"name": "late"}, headers=bearer(admin_token))
        assert resp.status_code == 404

    def test_missing(self, api_client: tuple[TestClient, str, int]) -> None:
        client, admin_token, _uid = api_client
        resp = client.delete("/api/franchise/999999", headers=bearer(admin_token))
        assert resp.status_code == 404


class TestListing:
    def test_public_listing(self, api_client: tuple[TestClient, str, int], owned_franchise) -> None:
        client, _admin_token, _uid = api_client
        franchise, _owner, _owner_token = owned_franchise
        resp = client.get("/api/franchise", params={"name": franchise["name"]})
        assert resp.status_code == 200
        body = resp.json()
        assert [f["id"] for f in body["franchises"]] == [franchise["id"]]
        assert "admins" not in body["franchises"][0]
        assert body["more"] is False

    def test_admin_sees_admins(self, api_client: tuple[TestClient, str, int], owned_franchise) -> None:
        client, admin_token, _uid = api_client
        franchise, owner, _owner_token = owned_franchise
        resp = client.get("/api/franchise", params={"name": franchise["name"]}, headers=bearer(admin_token))
        assert resp.json()["franchises"][0]["admins"][0]["email"] == owner["email"]

    def test_more_flag(self, api_client: tuple[TestClient, str, int]) -> None:
        client, admin_token, _uid = api_client
        prefix = f"paged{uuid.uuid4().hex[:6]}"
        for i in range(3):
            client.post("/api/franchise", json={"name": f"{prefix}-{i}"}, headers=bearer(admin_token))
        first = client.get("/api/franchise", params={"name": f"{prefix}*", "limit": 2, "page": 0}).json()
        last = client.get("/api/franchise", params={"name": f"{prefix}*", "limit": 2, "page": 1}).json()
        assert len(first["franchises"]) == 2 and first["more"] is True
        assert len(last["franchises"]) == 1 and last["more"] is False


class TestUserFranchises:
    def test_own_franchises(self, api_client: tuple[TestClient, str, int], owned_franchise) -> None:
        client, _admin_token, _uid = api_client
        franchise, owner, owner_token = owned_franchise
        client.post(f"/api/franchise/{franchise['id']}/store", json={"name": "SLC"}, headers=bearer(owner_token))
        resp = client.get(f"/api/franchise/{owner['id']}", headers=bearer(owner_token))
        assert resp.status_code == 200
        body = resp.json()
        assert [f["id"] for f in body] == [franchise["id"]]
        assert body[0]["stores"][0]["totalRevenue"] == 0.0

    def test_admin_may_look(self, api_client: tuple[TestClient, str, int], owned_franchise) -> None:
        client, admin_token, _uid = api_client
        franchise, owner, _owner_token = owned_franchise
        resp = client.get(f"/api/franchise/{owner['id']}", headers=bearer(admin_token))
        assert [f["id"] for f in resp.json()] == [franchise["id"]]

    def test_other_user_gets_empty(self, api_client: tuple[TestClient, str, int], owned_franchise, register) -> None:
        client, _admin_token, _uid = api_client
        _franchise, owner, _owner_token = owned_franchise
        _user, token = register()
        resp = client.get(f"/api/franchise/{owner['id']}", headers=bearer(token))
        assert resp.status_code == 200
        assert resp.json() == []

    def test_requires_auth(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _admin_token, uid = api_client
        assert client.get(f"/api/franchise/{uid}").status_code == 401
