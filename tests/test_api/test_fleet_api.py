"""HTTP tests for the driver, vehicle and admin routes."""

import pytest
from httpx import AsyncClient

from porter.models.common import Actor
from porter.models.vehicle import VehicleCreate

DRIVER_BODY = {
    "personal_info": {
        "first_name": "Bob",
        "last_name": "Rider",
        "email": "bob@example.com",
        "phone": "+1 555 987 6543",
    },
    "user_id": "drv-user-1",
}


@pytest.mark.asyncio
async def test_driver_crud(test_client: AsyncClient, admin: Actor, auth) -> None:
    created = await test_client.post("/api/drivers", json=DRIVER_BODY, headers=auth(admin))
    assert created.status_code == 201
    driver = created.json()
    assert driver["driver_code"].startswith("DRV-")

    duplicate = await test_client.post("/api/drivers", json=DRIVER_BODY, headers=auth(admin))
    assert duplicate.status_code == 409

    by_email = await test_client.get("/api/drivers/BOB@example.com", headers=auth(admin))
    assert by_email.json()["id"] == driver["id"]

    listing = await test_client.get("/api/drivers", params={"q": "bob"}, headers=auth(admin))
    assert listing.json()["total"] == 1

    patched = await test_client.patch(
        f"/api/drivers/{driver['driver_code']}/status",
        json={"status": "offline"},
        headers=auth(admin),
    )
    assert patched.json()["status"] == "offline"

    perf = await test_client.patch(
        f"/api/drivers/{driver['id']}/performance",
        json={"deliveryCompleted": True, "rating": 4, "distance": 3.5},
        headers=auth(admin),
    )
    assert perf.json()["performance"]["completed_jobs"] == 1
    assert perf.json()["performance"]["rating_count"] == 1


@pytest.mark.asyncio
async def test_driver_profile_and_location(
    test_client: AsyncClient,
    admin: Actor,
    driver_actor: Actor,
    customer: Actor,
    auth,
) -> None:
    driver = (await test_client.post("/api/drivers", json=DRIVER_BODY, headers=auth(admin))).json()

    me = await test_client.get("/api/drivers/me", headers=auth(driver_actor))
    assert me.json()["id"] == driver["id"]

    location = {"coordinates": {"lat": 12.97, "lng": 77.59}, "address": "Depot"}
    moved = await test_client.patch(
        f"/api/drivers/{driver['id']}/location", json=location, headers=auth(driver_actor)
    )
    assert moved.status_code == 200
    assert moved.json()["current_location"]["address"] == "Depot"

    denied = await test_client.patch(
        f"/api/drivers/{driver['id']}/location", json=location, headers=auth(customer)
    )
    assert denied.status_code == 403


@pytest.mark.asyncio
async def test_vehicle_routes(
    test_client: AsyncClient,
    admin: Actor,
    vehicle_payload: VehicleCreate,
    auth,
) -> None:
    body = vehicle_payload.model_dump(mode="json")
    created = await test_client.post("/api/vehicles", json=body, headers=auth(admin))
    assert created.status_code == 201
    vehicle = created.json()

    body["registration_number"] = " ka01 AB1234 "
    duplicate = await test_client.post("/api/vehicles", json=body, headers=auth(admin))
    assert duplicate.status_code == 409

    found = await test_client.get("/api/vehicles/ka01ab1234", headers=auth(admin))
    assert found.json()["id"] == vehicle["id"]

    listing = await test_client.get(
        "/api/vehicles", params={"type": "mini-truck", "status": "available"}, headers=auth(admin)
    )
    assert listing.json()["total"] == 1

    maintenance = await test_client.patch(
        f"/api/vehicles/{vehicle['vehicle_code']}/status",
        json={"status": "maintenance"},
        headers=auth(admin),
    )
    assert maintenance.json()["status"] == "maintenance"

    deleted = await test_client.delete(f"/api/vehicles/{vehicle['id']}", headers=auth(admin))
    assert deleted.status_code == 200
    assert (await test_client.get(f"/api/vehicles/{vehicle['id']}", headers=auth(admin))).status_code == 404


@pytest.mark.asyncio
async def test_reconciliation_routes(test_client: AsyncClient, admin: Actor, customer: Actor, auth) -> None:
    assert (await test_client.get("/api/admin/reconciliation", headers=auth(customer))).status_code == 403

    pending = await test_client.get("/api/admin/reconciliation", headers=auth(admin))
    assert pending.json() == {"records": [], "count": 0}

    replay = await test_client.post("/api/admin/reconciliation/replay", headers=auth(admin))
    assert replay.json() == {"applied": [], "pending": []}


@pytest.mark.asyncio
async def test_invalid_driver_update_is_rejected(
    test_client: AsyncClient,
    admin: Actor,
    driver_actor: Actor,
    auth,
) -> None:
    driver = (await test_client.post("/api/drivers", json=DRIVER_BODY, headers=auth(admin))).json()

    for body in ({"first_name": ""}, {"phone": None}, {"status": None}):
        response = await test_client.patch(f"/api/drivers/{driver['id']}", json=body, headers=auth(admin))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    # The stored profile is still readable by every driver-facing path.
    assert (await test_client.get("/api/drivers", headers=auth(admin))).json()["total"] == 1
    assert (await test_client.get("/api/drivers/me", headers=auth(driver_actor))).status_code == 200
    assert (await test_client.get("/api/drivers/jobs", headers=auth(driver_actor))).status_code == 200


@pytest.mark.asyncio
async def test_driver_map_and_delete(test_client: AsyncClient, admin: Actor, auth) -> None:
    driver = (await test_client.post("/api/drivers", json=DRIVER_BODY, headers=auth(admin))).json()
    await test_client.patch(
        f"/api/drivers/{driver['id']}/location",
        json={"coordinates": {"lat": 12.97, "lng": 77.59}},
        headers=auth(admin),
    )

    located = await test_client.get("/api/drivers/map/locations", headers=auth(admin))
    assert [d["id"] for d in located.json()] == [driver["id"]]

    deleted = await test_client.delete(f"/api/drivers/{driver['driver_code']}", headers=auth(admin))
    assert deleted.status_code == 200
    assert (await test_client.get(f"/api/drivers/{driver['id']}", headers=auth(admin))).status_code == 404


@pytest.mark.asyncio
async def test_vehicle_update_assign_stats_and_map(
    test_client: AsyncClient,
    admin: Actor,
    customer: Actor,
    vehicle_payload: VehicleCreate,
    auth,
) -> None:
    vehicle = (
        await test_client.post("/api/vehicles", json=vehicle_payload.model_dump(mode="json"), headers=auth(admin))
    ).json()
    driver = (await test_client.post("/api/drivers", json=DRIVER_BODY, headers=auth(admin))).json()

    patched = await test_client.patch(
        f"/api/vehicles/{vehicle['vehicle_code']}", json={"make": "Ashok", "year": 2023}, headers=auth(admin)
    )
    assert (patched.json()["make"], patched.json()["year"]) == ("Ashok", 2023)
    bad_year = await test_client.patch(f"/api/vehicles/{vehicle['id']}", json={"year": 1800}, headers=auth(admin))
    assert bad_year.status_code == 400

    paired = await test_client.patch(
        f"/api/vehicles/{vehicle['id']}/assign-driver", json={"driverId": driver["driver_code"]}, headers=auth(admin)
    )
    assert paired.json()["assigned_driver"] == driver["id"]

    stats = await test_client.get("/api/vehicles/stats/overview", headers=auth(admin))
    assert stats.json()["total_vehicles"] == 1
    assert stats.json()["by_type"] == {"mini-truck": 1}
    assert (await test_client.get("/api/vehicles/stats/overview", headers=auth(customer))).status_code == 403

    await test_client.patch(
        f"/api/vehicles/{vehicle['id']}/location",
        json={"coordinates": {"lat": 12.95, "lng": 77.61}},
        headers=auth(admin),
    )
    located = await test_client.get("/api/vehicles/map/locations", headers=auth(admin))
    assert [v["id"] for v in located.json()] == [vehicle["id"]]
