"""Test the slot pool HTTP API."""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from slot_engine.api.container import get_slot_service
from slot_engine.api.main import app
from slot_engine.core.errors import SlotPersistenceError


@pytest.fixture
def client(service):
    """Test client with the in-memory slot service."""
    app.dependency_overrides[get_slot_service] = lambda: service

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def assign(client, customer_id=None, **extra):
    body = {"customer_id": str(customer_id or uuid4()), **extra}
    return client.post("/slots/assign", json=body)


class TestAssignEndpoints:
    """Test assignment endpoints."""

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_assign_slot(self, client):
        customer_id = uuid4()

        response = assign(client, customer_id, plan_tag="ESSENTIAL", expires_at="2027-01-31")

        assert response.status_code == 201
        data = response.json()
        assert data["customer_id"] == str(customer_id)
        assert data["state"] == "ASSIGNED"
        assert data["account_label"] == "1a8@pool.test"
        assert data["display_name"] == "1"
        assert data["expires_at"] == "2027-01-31"
        assert len(data["credential"]) == 4

    def test_assign_requires_customer(self, client):
        assert client.post("/slots/assign", json={}).status_code == 422

    def test_batch_assign(self, client):
        response = client.post(
            "/slots/batch-assign",
            json={"customer_id": str(uuid4()), "quantity": 3},
        )

        assert response.status_code == 201
        assert [s["display_name"] for s in response.json()] == ["1", "2", "3"]

    def test_batch_assign_over_limit(self, client):
        response = client.post(
            "/slots/batch-assign",
            json={"customer_id": str(uuid4()), "quantity": 51},
        )

        assert response.status_code == 400

    def test_batch_assign_zero(self, client):
        response = client.post(
            "/slots/batch-assign",
            json={"customer_id": str(uuid4()), "quantity": 0},
        )

        assert response.status_code == 422

    def test_pool_unavailable(self, client, memory_repository):
        memory_repository.schema_present = False

        response = assign(client)

        assert response.status_code == 503
        assert response.json()["detail"] == "Slot pool is unavailable"


class TestReleaseEndpoints:
    """Test release endpoints."""

    def test_release_customer(self, client):
        customer_id = uuid4()
        assign(client, customer_id)

        response = client.post(f"/customers/{customer_id}/release")

        assert response.status_code == 200
        assert [s["state"] for s in response.json()] == ["RECLAIMED"]
        assert client.post(f"/customers/{customer_id}/release").json() == []

    def test_release_slot(self, client):
        slot_id = assign(client).json()["slot_id"]

        response = client.post(f"/slots/{slot_id}/release")

        assert response.status_code == 200
        assert response.json()["customer_id"] is None

    def test_release_unknown_slot(self, client):
        assert client.post(f"/slots/{uuid4()}/release").status_code == 404

    def test_release_already_released_slot(self, client):
        slot_id = assign(client).json()["slot_id"]
        client.post(f"/slots/{slot_id}/release")

        assert client.post(f"/slots/{slot_id}/release").status_code == 400


class TestEditEndpoints:
    """Test slot edits."""

    def test_patch_slot(self, client):
        slot_id = assign(client).json()["slot_id"]

        response = client.patch(f"/slots/{slot_id}", json={"note": "renewed", "has_add_on": True})

        assert response.status_code == 200
        assert response.json()["note"] == "renewed"
        assert response.json()["has_add_on"] is True

    def test_patch_released_slot(self, client):
        slot_id = assign(client).json()["slot_id"]
        client.post(f"/slots/{slot_id}/release")

        response = client.patch(f"/slots/{slot_id}", json={"note": "x"})

        assert response.status_code == 400

    def test_regenerate_credential(self, client):
        slot_id = assign(client).json()["slot_id"]

        response = client.post(f"/slots/{slot_id}/regenerate-credential")

        assert response.status_code == 200
        assert response.json()["credential"].isdigit()

    def test_regenerate_unknown_slot(self, client):
        assert client.post(f"/slots/{uuid4()}/regenerate-credential").status_code == 404


class TestReadEndpoints:
    """Test reporting endpoints."""

    def test_free_count(self, client):
        assert client.get("/slots/free-count").json() == {"free": 0}

        assign(client)

        assert client.get("/slots/free-count").json() == {"free": 7}

    def test_history(self, client):
        slot_id = assign(client).json()["slot_id"]
        client.post(f"/slots/{slot_id}/release")

        response = client.get(f"/slots/{slot_id}/history")

        assert response.status_code == 200
        assert [e["action"] for e in response.json()] == ["RELEASED", "ASSIGNED"]

    def test_history_store_failure(self, client, memory_repository, monkeypatch):
        def broken_history(slot_id):
            raise SlotPersistenceError("history query failed")

        monkeypatch.setattr(memory_repository, "list_history", broken_history)

        response = client.get(f"/slots/{uuid4()}/history")

        assert response.status_code == 500
        assert response.json()["detail"] == "Slot operation failed"

    def test_accounts(self, client):
        client.post("/slots/batch-assign", json={"customer_id": str(uuid4()), "quantity": 9})

        accounts = client.get("/accounts").json()

        assert [a["label"] for a in accounts] == ["1a8@pool.test", "9a16@pool.test"]
        assert len(accounts[1]["slots"]) == 8

    def test_overview(self, client):
        assign(client)

        data = client.get("/overview").json()

        assert data["accounts"] == 1
        assert data["total_slots"] == 8
        assert data["assignable"] == 7
        assert data["by_state"]["ASSIGNED"] == 1
        assert data["by_state"]["FREE"] == 7
