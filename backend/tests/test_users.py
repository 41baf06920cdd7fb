"""Tests for the signed-in user's profile and saved routes."""
import pytest
from fastapi import HTTPException

from trainbuddy.services import user_service
from trainbuddy.store.document_store import DocumentStore
from trainbuddy.store.errors import PermissionDeniedError
from tests.conftest import auth, sign_up

RAJDHANI = {"train_number": "12951", "train_name": "Mumbai Rajdhani", "route": "Mumbai Central - New Delhi"}


class TestProfile:

    def test_get_my_profile(self, client):
        account = sign_up(client, "priya@commuters.in", "Priya")
        resp = client.get("/api/users/me", headers=auth(account))
        assert resp.status_code == 200
        profile = resp.json()
        assert profile["email"] == "priya@commuters.in"
        assert profile["display_name"] == "Priya"
        assert profile["frequent_routes"] == []

    def test_requires_sign_in(self, client):
        assert client.get("/api/users/me").status_code == 401
        assert client.get("/api/users/me", headers={"Authorization": "Bearer nope"}).status_code == 401

    def test_partial_update(self, client):
        account = sign_up(client, "priya@commuters.in", "Priya")
        resp = client.patch("/api/users/me", headers=auth(account), json={"phone_number": "+91 98765 43210"})
        assert resp.status_code == 200
        assert resp.json()["phone_number"] == "+91 98765 43210"
        assert resp.json()["display_name"] == "Priya"

        resp = client.patch("/api/users/me", headers=auth(account), json={"display_name": "Priya S"})
        assert resp.json()["display_name"] == "Priya S"
        assert resp.json()["phone_number"] == "+91 98765 43210"

    def test_empty_display_name_rejected(self, client):
        account = sign_up(client)
        resp = client.patch("/api/users/me", headers=auth(account), json={"display_name": ""})
        assert resp.status_code == 422

    def test_view_other_user(self, client):
        priya = sign_up(client, "priya@commuters.in", "Priya")
        rahul = sign_up(client, "rahul@commuters.in", "Rahul")
        resp = client.get(f"/api/users/{rahul['user']['user_id']}", headers=auth(priya))
        assert resp.status_code == 200
        assert resp.json()["display_name"] == "Rahul"

    def test_view_unknown_user(self, client):
        priya = sign_up(client)
        assert client.get("/api/users/nobody", headers=auth(priya)).status_code == 404


class TestFrequentRoutes:

    def test_add_route_once(self, client):
        account = sign_up(client)
        for _ in range(2):
            resp = client.post("/api/users/me/routes", headers=auth(account), json=RAJDHANI)
            assert resp.status_code == 201
        assert [r["train_number"] for r in resp.json()["frequent_routes"]] == ["12951"]

    def test_remove_route(self, client):
        account = sign_up(client)
        client.post("/api/users/me/routes", headers=auth(account), json=RAJDHANI)
        client.post("/api/users/me/routes", headers=auth(account), json={"train_number": "12301"})
        resp = client.delete("/api/users/me/routes/12951", headers=auth(account))
        assert resp.status_code == 200
        assert [r["train_number"] for r in resp.json()["frequent_routes"]] == ["12301"]

    def test_remove_unsaved_route_is_noop(self, client):
        account = sign_up(client)
        resp = client.delete("/api/users/me/routes/12951", headers=auth(account))
        assert resp.status_code == 200
        assert resp.json()["frequent_routes"] == []


class TestDegradedProfile:

    def test_degraded_profile_is_read_only(self, client, monkeypatch):
        def refuse(*args, **kwargs):
            raise PermissionDeniedError("attempt to write a readonly database")

        monkeypatch.setattr(DocumentStore, "set", refuse)
        account = sign_up(client, "priya@commuters.in", "Priya")
        assert account["degraded"] is True
        assert account["user"]["display_name"] == "Priya"

        resp = client.get("/api/users/me", headers=auth(account))
        assert resp.status_code == 200
        assert resp.json()["email"] == "priya@commuters.in"

        resp = client.patch("/api/users/me", headers=auth(account), json={"display_name": "P"})
        assert resp.status_code == 409
        resp = client.post("/api/users/me/routes", headers=auth(account), json=RAJDHANI)
        assert resp.status_code == 409


class TestNullFields:

    def test_null_display_name_is_ignored(self, seeded_client):
        account = sign_up(seeded_client, "priya@commuters.in", "Priya")
        resp = seeded_client.patch("/api/users/me", headers=auth(account),
                                   json={"display_name": None, "phone_number": "+91 98765 43210"})
        assert resp.status_code == 200
        assert resp.json()["display_name"] == "Priya"
        assert resp.json()["phone_number"] == "+91 98765 43210"

        # The account keeps working afterwards.
        assert seeded_client.get("/api/auth/me", headers=auth(account)).status_code == 200
        assert seeded_client.get("/api/groups/", headers=auth(account)).status_code == 200

    def test_invalid_merged_profile_is_not_written(self, store):
        store.set("users", "u1", {"user_id": "u1", "display_name": "Priya"})
        with pytest.raises(HTTPException) as excinfo:
            user_service.update_profile(store, "u1", {"display_name": None})
        assert excinfo.value.status_code == 422
        assert store.get("users", "u1")["display_name"] == "Priya"
