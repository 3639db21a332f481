from __future__ import annotations

import os
import time
from uuid import uuid4

import httpx


def _assert_status(response: httpx.Response, expected: int | tuple[int, ...]) -> None:
    expected_codes = (expected,) if isinstance(expected, int) else expected
    if response.status_code not in expected_codes:
        raise RuntimeError(
            f"{response.request.method} {response.request.url} expected {expected_codes}, "
            f"got {response.status_code}: {response.text}"
        )


def _wait_ok(client: httpx.Client, path: str, timeout_seconds: float = 60.0) -> None:
    deadline = time.monotonic() + timeout_seconds
    last_status = "n/a"
    last_body = ""
    while time.monotonic() < deadline:
        try:
            response = client.get(path)
            if response.status_code == 200:
                return
            last_status = str(response.status_code)
            last_body = response.text
        except httpx.HTTPError as exc:
            last_status = "http_error"
            last_body = str(exc)
        time.sleep(1.0)
    raise RuntimeError(f"timeout waiting for {path}, last_status={last_status}, detail={last_body}")


def main() -> None:
    base_url = os.getenv("APP_BASE_URL", "http://localhost:3002").rstrip("/")
    run_id = uuid4().hex[:8]

    with httpx.Client(base_url=base_url, timeout=httpx.Timeout(20.0)) as client:
        _wait_ok(client, "/api/health")

        org_resp = client.post("/api/organizations", json={"name": f"Acme {run_id}"})
        _assert_status(org_resp, 201)
        organization_id = org_resp.json()["data"]["id"]

        user_resp = client.post(
            "/api/users",
            json={
                "email": f"alice-{run_id}@acme.com",
                "name": "Alice",
                "role": "ADMIN",
                "organizationId": organization_id,
            },
        )
        _assert_status(user_resp, 201)
        user_id = user_resp.json()["data"]["id"]

        asset_resp = client.post(
            "/api/assets",
            json={
                "name": "Pump-1",
                "type": "Pump",
                "location": "Plant A",
                "status": "ACTIVE",
                "criticality": "HIGH",
                "organizationId": organization_id,
                "createdById": user_id,
            },
        )
        _assert_status(asset_resp, 201)
        asset_id = asset_resp.json()["data"]["id"]

        maintenance_resp = client.post(f"/api/assets/{asset_id}/maintenance", json={"createdById": user_id})
        _assert_status(maintenance_resp, 201)
        work_order = maintenance_resp.json()["data"]
        if work_order["workOrderNumber"] != "WO-000001":
            raise RuntimeError(f"unexpected work order number: {work_order['workOrderNumber']}")
        if work_order["type"] != "Preventive Maintenance" or work_order["status"] != "OPEN":
            raise RuntimeError(f"unexpected maintenance work order: {work_order}")
        if work_order["assetId"] != asset_id:
            raise RuntimeError("maintenance work order is not linked to the asset")

        blocked_resp = client.delete(f"/api/assets/{asset_id}")
        _assert_status(blocked_resp, 400)

        deactivate_resp = client.delete(f"/api/users/{user_id}")
        _assert_status(deactivate_resp, 200)
        user_detail = client.get(f"/api/users/{user_id}")
        _assert_status(user_detail, 200)
        if user_detail.json()["data"]["isActive"] is not False:
            raise RuntimeError("user was not deactivated")

    print("smoke_ok")


if __name__ == "__main__":
    main()
