from __future__ import annotations

from collections.abc import Generator
from datetime import UTC, date, datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, select

from nexus import main as app_main
from nexus.domain.models import ActivityLog, Asset, parse_date_value
from nexus.infra import db


@pytest.fixture()
def asset_client(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[TestClient, None, None]:
    test_engine = db.build_engine(f"sqlite:///{tmp_path / 'assets_test.db'}")
    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    client = TestClient(app_main.app)
    yield client
    client.close()


def _bootstrap(client: TestClient, org_name: str = "Acme") -> tuple[str, str]:
    org = client.post("/api/organizations", json={"name": org_name})
    assert org.status_code == 201
    org_id = org.json()["data"]["id"]
    user = client.post(
        "/api/users",
        json={"email": f"alice@{org_name.lower()}.com", "name": "Alice", "role": "ADMIN", "organizationId": org_id},
    )
    assert user.status_code == 201
    return org_id, user.json()["data"]["id"]


def _create_asset(client: TestClient, org_id: str, user_id: str, name: str, **extra: object) -> dict:
    response = client.post(
        "/api/assets",
        json={
            "name": name,
            "type": "Pump",
            "location": "Plant A",
            "organizationId": org_id,
            "createdById": user_id,
            **extra,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _activity(entity_id: str) -> list[ActivityLog]:
    with Session(db.get_engine()) as session:
        return list(session.exec(select(ActivityLog).where(ActivityLog.entity_id == entity_id)).all())


def test_create_and_fetch_asset_round_trip(asset_client: TestClient) -> None:
    org_id, user_id = _bootstrap(asset_client)
    created = _create_asset(
        asset_client,
        org_id,
        user_id,
        "Pump-1",
        description="Main feed pump",
        status="ACTIVE",
        criticality="HIGH",
        manufacturer="Grundfos",
        model="CR 10",
        serialNumber="SN-001",
        purchaseDate="2024-01-15",
        warrantyExpiry="2027-01-15T00:00:00Z",
        purchasePrice=12500.5,
        specifications={"flow": "10m3/h"},
    )
    assert created["imageUrls"] == []
    assert created["fileUrls"] == []

    response = asset_client.get(f"/api/assets/{created['id']}")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Pump-1"
    assert data["criticality"] == "HIGH"
    assert data["serialNumber"] == "SN-001"
    assert data["purchaseDate"].startswith("2024-01-15")
    assert data["warrantyExpiry"].startswith("2027-01-15")
    assert data["purchasePrice"] == 12500.5
    assert data["specifications"] == {"flow": "10m3/h"}
    assert data["organization"] == {"id": org_id, "name": "Acme"}
    assert data["createdBy"] == {"id": user_id, "name": "Alice", "email": "alice@acme.com"}
    assert data["workOrders"] == []

    logs = _activity(created["id"])
    assert [log.action for log in logs] == ["created"]
    assert logs[0].new_values is not None
    assert logs[0].new_values["name"] == "Pump-1"


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def test_asset_dates_are_stored_as_utc_instants(asset_client: TestClient) -> None:
    org_id, user_id = _bootstrap(asset_client)
    created = _create_asset(
        asset_client,
        org_id,
        user_id,
        "Pump-2",
        purchaseDate="2024-01-15",
        warrantyExpiry="2024-03-01T10:00:00+02:00",
        installationDate="2024-02-01T06:30:00",
    )
    assert created["warrantyExpiry"].startswith("2024-03-01T08:00:00")

    with Session(db.get_engine()) as session:
        row = session.exec(select(Asset).where(Asset.id == created["id"])).one()
    assert _as_naive_utc(row.purchase_date) == datetime(2024, 1, 15)
    assert _as_naive_utc(row.warranty_expiry) == datetime(2024, 3, 1, 8, 0)
    assert _as_naive_utc(row.installation_date) == datetime(2024, 2, 1, 6, 30)

    updated = asset_client.put(f"/api/assets/{created['id']}", json={"nextMaintenance": "2024-06-01"})
    assert updated.status_code == 200
    assert updated.json()["data"]["nextMaintenance"].startswith("2024-06-01")


def test_parse_date_value_returns_aware_utc() -> None:
    assert parse_date_value(date(2024, 1, 15)) == datetime(2024, 1, 15, tzinfo=UTC)
    assert parse_date_value("2024-01-15T10:00:00Z") == datetime(2024, 1, 15, 10, tzinfo=UTC)
    shifted = parse_date_value(datetime(2024, 1, 15, 10, tzinfo=timezone(timedelta(hours=-5))))
    assert shifted == datetime(2024, 1, 15, 15, tzinfo=UTC)
    assert shifted.tzinfo is UTC
    assert parse_date_value("  ") is None
    with pytest.raises(ValueError):
        parse_date_value("15/01/2024")


def test_create_asset_validation(asset_client: TestClient) -> None:
    org_id, user_id = _bootstrap(asset_client)

    missing = asset_client.post("/api/assets", json={"name": "Pump", "organizationId": org_id})
    assert missing.status_code == 400
    assert missing.json()["message"] == "Validation failed"

    bad_org = asset_client.post(
        "/api/assets",
        json={"name": "P", "type": "Pump", "location": "A", "organizationId": "nope", "createdById": user_id},
    )
    assert bad_org.status_code == 400
    assert bad_org.json()["message"] == "Invalid organization ID"

    bad_user = asset_client.post(
        "/api/assets",
        json={"name": "P", "type": "Pump", "location": "A", "organizationId": org_id, "createdById": "nope"},
    )
    assert bad_user.status_code == 400
    assert bad_user.json()["message"] == "Invalid creator user ID"

    bad_enum = asset_client.post(
        "/api/assets",
        json={
            "name": "P",
            "type": "Pump",
            "location": "A",
            "criticality": "SEVERE",
            "organizationId": org_id,
            "createdById": user_id,
        },
    )
    assert bad_enum.status_code == 400

    bad_date = asset_client.post(
        "/api/assets",
        json={
            "name": "P",
            "type": "Pump",
            "location": "A",
            "purchaseDate": "not-a-date",
            "organizationId": org_id,
            "createdById": user_id,
        },
    )
    assert bad_date.status_code == 400


def test_list_assets_filters_search_and_pagination(asset_client: TestClient) -> None:
    org_id, user_id = _bootstrap(asset_client)
    _create_asset(asset_client, org_id, user_id, "Feed Pump", status="ACTIVE", criticality="HIGH")
    _create_asset(asset_client, org_id, user_id, "Boiler", status="ACTIVE", criticality="HIGH", model="PUMP-X")
    _create_asset(asset_client, org_id, user_id, "Spare Pump", status="INACTIVE", criticality="HIGH")
    _create_asset(asset_client, org_id, user_id, "Compressor", status="ACTIVE", criticality="LOW", type="Air")
    other_org, other_user = _bootstrap(asset_client, "Other")
    _create_asset(asset_client, other_org, other_user, "Foreign Pump")

    both = asset_client.get(
        "/api/assets",
        params={"organizationId": org_id, "status": "ACTIVE", "criticality": "HIGH"},
    ).json()
    assert {item["name"] for item in both["data"]} == {"Feed Pump", "Boiler"}
    assert both["pagination"]["total"] == 2

    searched = asset_client.get(
        "/api/assets",
        params={"organizationId": org_id, "status": "ACTIVE", "criticality": "HIGH", "search": "pump"},
    ).json()
    assert {item["name"] for item in searched["data"]} == {"Feed Pump", "Boiler"}

    by_name = asset_client.get("/api/assets", params={"organizationId": org_id, "search": "SPARE"}).json()
    assert [item["name"] for item in by_name["data"]] == ["Spare Pump"]

    by_type = asset_client.get("/api/assets", params={"type": "ai"}).json()
    assert [item["name"] for item in by_type["data"]] == ["Compressor"]

    empty_search = asset_client.get("/api/assets", params={"organizationId": org_id, "search": ""}).json()
    assert empty_search["pagination"]["total"] == 4

    page = asset_client.get("/api/assets", params={"organizationId": org_id, "limit": "2", "offset": "1"}).json()
    assert len(page["data"]) == 2
    assert page["pagination"] == {"total": 4, "offset": 1, "limit": 2}

    lenient = asset_client.get("/api/assets", params={"organizationId": org_id, "limit": "abc", "offset": "x"})
    assert lenient.status_code == 200
    assert len(lenient.json()["data"]) == 4
    assert lenient.json()["pagination"]["offset"] == 0

    assert asset_client.get("/api/assets", params={"status": "BROKEN"}).status_code == 400


def test_update_asset_logs_only_with_actor(asset_client: TestClient) -> None:
    org_id, user_id = _bootstrap(asset_client)
    asset = _create_asset(asset_client, org_id, user_id, "Pump-1", notes="initial")

    silent = asset_client.put(f"/api/assets/{asset['id']}", json={"location": "Plant B"})
    assert silent.status_code == 200
    assert silent.json()["data"]["location"] == "Plant B"
    assert silent.json()["data"]["notes"] == "initial"
    assert [log.action for log in _activity(asset["id"])] == ["created"]

    logged = asset_client.put(
        f"/api/assets/{asset['id']}",
        json={"status": "UNDER_MAINTENANCE", "lastMaintenance": "2025-03-01", "updatedById": user_id},
    )
    assert logged.status_code == 200
    data = logged.json()["data"]
    assert data["status"] == "UNDER_MAINTENANCE"
    assert data["lastMaintenance"].startswith("2025-03-01")

    logs = [log for log in _activity(asset["id"]) if log.action == "updated"]
    assert len(logs) == 1
    assert logs[0].user_id == user_id
    assert logs[0].old_values is not None and logs[0].old_values["status"] == "ACTIVE"
    assert logs[0].new_values is not None and logs[0].new_values["status"] == "UNDER_MAINTENANCE"

    assert asset_client.put("/api/assets/missing", json={"name": "x"}).status_code == 404


def test_delete_asset_guarded_by_work_orders(asset_client: TestClient) -> None:
    org_id, user_id = _bootstrap(asset_client)
    busy = _create_asset(asset_client, org_id, user_id, "Pump-1")
    idle = _create_asset(asset_client, org_id, user_id, "Pump-2")
    response = asset_client.post(f"/api/assets/{busy['id']}/maintenance", json={"createdById": user_id})
    assert response.status_code == 201

    blocked = asset_client.delete(f"/api/assets/{busy['id']}")
    assert blocked.status_code == 400
    assert blocked.json()["message"] == "Cannot delete asset with associated work orders"
    assert blocked.json()["details"] == {"workOrders": 1}
    assert asset_client.get(f"/api/assets/{busy['id']}").status_code == 200

    deleted = asset_client.request("DELETE", f"/api/assets/{idle['id']}", json={"deletedById": user_id})
    assert deleted.status_code == 200
    assert asset_client.get(f"/api/assets/{idle['id']}").status_code == 404
    assert [log.action for log in _activity(idle["id"])] == ["created", "deleted"]


def test_schedule_maintenance_scenario(asset_client: TestClient) -> None:
    org_id, user_id = _bootstrap(asset_client)
    other_org, _ = _bootstrap(asset_client, "Other")
    asset = _create_asset(asset_client, org_id, user_id, "Pump-1", status="ACTIVE", criticality="HIGH")

    response = asset_client.post(
        f"/api/assets/{asset['id']}/maintenance",
        json={"createdById": user_id, "organizationId": other_org, "priority": "HIGH"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Maintenance work order created successfully"
    work_order = body["data"]
    assert work_order["type"] == "Preventive Maintenance"
    assert work_order["status"] == "OPEN"
    assert work_order["priority"] == "HIGH"
    assert work_order["assetId"] == asset["id"]
    assert work_order["organizationId"] == org_id
    assert work_order["workOrderNumber"] == "WO-000001"
    assert work_order["title"] == "Scheduled Maintenance - Pump-1"

    custom = asset_client.post(
        f"/api/assets/{asset['id']}/maintenance",
        json={"createdById": user_id, "title": "Replace seals"},
    )
    assert custom.json()["data"]["title"] == "Replace seals"
    assert custom.json()["data"]["workOrderNumber"] == "WO-000002"

    missing = asset_client.post("/api/assets/missing/maintenance", json={"createdById": user_id})
    assert missing.status_code == 404

    detail = asset_client.get(f"/api/assets/{asset['id']}").json()["data"]
    assert detail["workOrderCount"] == 2
    assert [item["title"] for item in detail["workOrders"]] == ["Replace seals", "Scheduled Maintenance - Pump-1"]


def test_maintenance_history_orders_by_completion(asset_client: TestClient) -> None:
    org_id, user_id = _bootstrap(asset_client)
    asset = _create_asset(asset_client, org_id, user_id, "Pump-1")

    first = asset_client.post(f"/api/assets/{asset['id']}/maintenance", json={"createdById": user_id}).json()
    second = asset_client.post(f"/api/assets/{asset['id']}/maintenance", json={"createdById": user_id}).json()
    repair = asset_client.post(
        "/api/work-orders",
        json={
            "title": "Repair",
            "type": "Corrective",
            "organizationId": org_id,
            "assetId": asset["id"],
            "createdById": user_id,
        },
    )
    assert repair.status_code == 201

    asset_client.put(f"/api/work-orders/{first['data']['id']}", json={"status": "COMPLETED"})

    response = asset_client.get(f"/api/assets/{asset['id']}/maintenance-history")
    assert response.status_code == 200
    ids = [item["id"] for item in response.json()["data"]]
    assert ids == [first["data"]["id"], second["data"]["id"]]
    assert asset_client.get("/api/assets/missing/maintenance-history").status_code == 404
