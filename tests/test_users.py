from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, select

from nexus import main as app_main
from nexus.config import get_settings
from nexus.domain.models import User
from nexus.infra import db
from nexus.infra.auth import decode_access_token


@pytest.fixture()
def user_client(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[TestClient, None, None]:
    test_engine = db.build_engine(f"sqlite:///{tmp_path / 'users_test.db'}")
    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    client = TestClient(app_main.app)
    yield client
    client.close()


def _create_org(client: TestClient, name: str) -> str:
    response = client.post("/api/organizations", json={"name": name})
    assert response.status_code == 201
    return response.json()["data"]["id"]


def _create_user(client: TestClient, email: str, **extra: object) -> dict:
    response = client.post("/api/users", json={"email": email, **extra})
    assert response.status_code == 201
    return response.json()["data"]


def test_create_user_with_organization(user_client: TestClient) -> None:
    org_id = _create_org(user_client, "Acme")
    response = user_client.post(
        "/api/users",
        json={"email": "alice@acme.com", "name": "Alice", "role": "ADMIN", "organizationId": org_id},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User created successfully"
    data = body["data"]
    assert data["role"] == "ADMIN"
    assert data["isActive"] is True
    assert data["organization"] == {"id": org_id, "name": "Acme"}
    assert data["lastLoginAt"] is not None


def test_create_user_rejects_duplicates_and_bad_references(user_client: TestClient) -> None:
    _create_user(user_client, "alice@acme.com")

    duplicate = user_client.post("/api/users", json={"email": "alice@acme.com"})
    assert duplicate.status_code == 409
    assert duplicate.json()["message"] == "User with this email already exists"

    bad_org = user_client.post("/api/users", json={"email": "bob@acme.com", "organizationId": "nope"})
    assert bad_org.status_code == 400
    assert bad_org.json()["message"] == "Invalid organization ID"

    bad_role = user_client.post("/api/users", json={"email": "carol@acme.com", "role": "OWNER"})
    assert bad_role.status_code == 400

    missing_email = user_client.post("/api/users", json={"name": "No Email"})
    assert missing_email.status_code == 400


def test_list_users_filters(user_client: TestClient) -> None:
    org_id = _create_org(user_client, "Acme")
    admin = _create_user(user_client, "admin@acme.com", role="ADMIN", organizationId=org_id)
    _create_user(user_client, "user@acme.com", organizationId=org_id)
    _create_user(user_client, "loner@example.com")
    user_client.delete(f"/api/users/{admin['id']}")

    by_org = user_client.get("/api/users", params={"organizationId": org_id}).json()["data"]
    assert {item["email"] for item in by_org} == {"admin@acme.com", "user@acme.com"}

    admins = user_client.get("/api/users", params={"role": "ADMIN"}).json()["data"]
    assert [item["email"] for item in admins] == ["admin@acme.com"]

    inactive = user_client.get("/api/users", params={"isActive": "false"}).json()["data"]
    assert [item["email"] for item in inactive] == ["admin@acme.com"]

    active = user_client.get("/api/users", params={"isActive": "true"}).json()["data"]
    assert len(active) == 2
    assert active[0]["counts"] == {
        "createdAssets": 0,
        "assignedWorkOrders": 0,
        "createdWorkOrders": 0,
        "comments": 0,
    }

    assert user_client.get("/api/users", params={"role": "OWNER"}).status_code == 400


def test_get_user_detail(user_client: TestClient) -> None:
    org_id = _create_org(user_client, "Acme")
    alice = _create_user(user_client, "alice@acme.com", organizationId=org_id)
    response = user_client.post(
        "/api/assets",
        json={
            "name": "Pump-1",
            "type": "Pump",
            "location": "Plant A",
            "organizationId": org_id,
            "createdById": alice["id"],
        },
    )
    assert response.status_code == 201

    detail = user_client.get(f"/api/users/{alice['id']}")
    assert detail.status_code == 200
    data = detail.json()["data"]
    assert [asset["name"] for asset in data["createdAssets"]] == ["Pump-1"]
    assert data["counts"]["createdAssets"] == 1

    assert user_client.get("/api/users/missing").status_code == 404


def test_update_user(user_client: TestClient) -> None:
    alice = _create_user(user_client, "alice@acme.com", name="Alice")
    response = user_client.put(f"/api/users/{alice['id']}", json={"locale": "en-GB", "role": "ADMIN"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["locale"] == "en-GB"
    assert data["role"] == "ADMIN"
    assert data["name"] == "Alice"

    bad_org = user_client.put(f"/api/users/{alice['id']}", json={"organizationId": "nope"})
    assert bad_org.status_code == 400


def test_login_creates_then_updates_user(user_client: TestClient) -> None:
    first = user_client.post("/api/users/login", json={"email": "dana@acme.com", "name": "Dana"})
    assert first.status_code == 200
    body = first.json()
    assert body["message"] == "User created and logged in"
    user_id = body["data"]["id"]
    claims = decode_access_token(get_settings(), body["data"]["accessToken"])
    assert claims["sub"] == user_id
    assert claims["email"] == "dana@acme.com"

    second = user_client.post(
        "/api/users/login",
        json={"email": "dana@acme.com", "name": "", "picture": "https://img.example.com/dana.png"},
    )
    assert second.status_code == 200
    body = second.json()
    assert body["message"] == "Login successful"
    assert body["data"]["id"] == user_id
    assert body["data"]["name"] == "Dana"
    assert body["data"]["picture"] == "https://img.example.com/dana.png"


def test_soft_delete_keeps_row(user_client: TestClient) -> None:
    alice = _create_user(user_client, "alice@acme.com")
    response = user_client.delete(f"/api/users/{alice['id']}")
    assert response.status_code == 200
    assert response.json()["message"] == "User deactivated"

    with Session(db.get_engine()) as session:
        row = session.exec(select(User).where(User.id == alice["id"])).one()
        assert row.is_active is False


def test_permanent_delete_guarded_by_work_orders(user_client: TestClient) -> None:
    org_id = _create_org(user_client, "Acme")
    alice = _create_user(user_client, "alice@acme.com", organizationId=org_id)
    response = user_client.post(
        "/api/work-orders",
        json={"title": "Fix", "organizationId": org_id, "createdById": alice["id"]},
    )
    assert response.status_code == 201

    blocked = user_client.delete(f"/api/users/{alice['id']}", params={"permanent": "true"})
    assert blocked.status_code == 400
    assert blocked.json()["details"] == {"workOrders": 1}

    bob = _create_user(user_client, "bob@acme.com")
    removed = user_client.delete(f"/api/users/{bob['id']}", params={"permanent": "true"})
    assert removed.status_code == 200
    assert removed.json()["message"] == "User permanently deleted"
    assert user_client.get(f"/api/users/{bob['id']}").status_code == 404
