"""HTTP tests for the order routes."""

from typing import Any

import pytest
from httpx import AsyncClient

from porter.models.common import Actor
from porter.models.order import OrderCreate


def order_body(order_payload: OrderCreate) -> dict[str, Any]:
    return order_payload.model_dump(mode="json")


async def create_driver(client: AsyncClient, headers: dict[str, str]) -> dict[str, Any]:
    response = await client.post(
        "/api/drivers",
        json={
            "personal_info": {
                "first_name": "Bob",
                "last_name": "Rider",
                "email": "bob@example.com",
                "phone": "+1 555 987 6543",
            },
            "user_id": "drv-user-1",
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_health(test_client: AsyncClient) -> None:
    response = await test_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_missing_identity_is_unauthenticated(test_client: AsyncClient) -> None:
    response = await test_client.get("/api/orders/my")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHENTICATED"


@pytest.mark.asyncio
async def test_create_and_fetch_order(
    test_client: AsyncClient,
    customer: Actor,
    order_payload: OrderCreate,
    auth,
) -> None:
    response = await test_client.post("/api/orders", json=order_body(order_payload), headers=auth(customer))

    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "pending"
    assert len(created["timeline"]) == 1

    by_code = await test_client.get(f"/api/orders/{created['order_code']}", headers=auth(customer))
    assert by_code.status_code == 200
    assert by_code.json()["id"] == created["id"]

    mine = await test_client.get("/api/orders/my", headers=auth(customer))
    assert mine.json()["total"] == 1


@pytest.mark.asyncio
async def test_invalid_body_maps_fields(test_client: AsyncClient, customer: Actor, order_payload: OrderCreate, auth) -> None:
    body = order_body(order_payload)
    body["package_details"]["weight"] = 0

    response = await test_client.post("/api/orders", json=body, headers=auth(customer))

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert "package_details.weight" in error["details"]


@pytest.mark.asyncio
async def test_unknown_order_is_404(test_client: AsyncClient, customer: Actor, auth) -> None:
    response = await test_client.get("/api/orders/ORD-404-NOPE", headers=auth(customer))

    assert response.status_code == 404
    assert response.json()["error"]["details"]["identifier"] == "ORD-404-NOPE"


@pytest.mark.asyncio
async def test_admin_listing_requires_admin(
    test_client: AsyncClient,
    customer: Actor,
    admin: Actor,
    order_payload: OrderCreate,
    auth,
) -> None:
    await test_client.post("/api/orders", json=order_body(order_payload), headers=auth(customer))

    forbidden = await test_client.get("/api/orders", headers=auth(customer))
    assert forbidden.status_code == 403

    listing = await test_client.get(
        "/api/orders",
        params={"status": "pending", "customer_phone": "010-2030", "limit": 10},
        headers=auth(admin),
    )
    assert listing.status_code == 200
    assert listing.json()["total"] == 1
    assert listing.json()["total_pages"] == 1


@pytest.mark.asyncio
async def test_assign_with_camel_case_fields(
    test_client: AsyncClient,
    customer: Actor,
    admin: Actor,
    order_payload: OrderCreate,
    auth,
) -> None:
    order = (await test_client.post("/api/orders", json=order_body(order_payload), headers=auth(customer))).json()
    driver = await create_driver(test_client, auth(admin))

    response = await test_client.patch(
        f"/api/orders/{order['order_code']}/assign-driver",
        json={"driverId": driver["driver_code"]},
        headers=auth(admin),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["order"]["status"] == "assigned"
    assert body["order"]["assigned_driver"] == driver["id"]
    assert body["driver"]["status"] == "busy"
    assert body["warnings"] == []

    unassigned = await test_client.patch(f"/api/orders/{order['id']}/unassign-driver", headers=auth(admin))
    assert unassigned.json()["order"]["status"] == "confirmed"


@pytest.mark.asyncio
async def test_assign_unknown_driver_is_404(
    test_client: AsyncClient,
    customer: Actor,
    admin: Actor,
    order_payload: OrderCreate,
    auth,
) -> None:
    order = (await test_client.post("/api/orders", json=order_body(order_payload), headers=auth(customer))).json()

    response = await test_client.patch(
        f"/api/orders/{order['id']}/assign",
        json={"driverId": "nobody@example.com"},
        headers=auth(admin),
    )

    assert response.status_code == 404
    assert response.json()["error"]["details"]["field"] == "driverId"


@pytest.mark.asyncio
async def test_combined_patch_without_fields_is_400(
    test_client: AsyncClient,
    customer: Actor,
    admin: Actor,
    order_payload: OrderCreate,
    auth,
) -> None:
    order = (await test_client.post("/api/orders", json=order_body(order_payload), headers=auth(customer))).json()

    response = await test_client.patch(f"/api/orders/{order['id']}", json={}, headers=auth(admin))

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_driver_job_flow(
    test_client: AsyncClient,
    customer: Actor,
    admin: Actor,
    driver_actor: Actor,
    order_payload: OrderCreate,
    auth,
) -> None:
    order = (await test_client.post("/api/orders", json=order_body(order_payload), headers=auth(customer))).json()
    await create_driver(test_client, auth(admin))

    jobs = await test_client.get("/api/drivers/jobs", headers=auth(driver_actor))
    assert [j["id"] for j in jobs.json()["jobs"]] == [order["id"]]

    accepted = await test_client.post(f"/api/orders/{order['id']}/accept", headers=auth(driver_actor))
    assert accepted.status_code == 200

    again = await test_client.post(f"/api/orders/{order['id']}/accept", headers=auth(driver_actor))
    assert again.status_code == 409

    assert (await test_client.post(f"/api/orders/{order['id']}/pickup", headers=auth(driver_actor))).status_code == 200
    done = await test_client.post(f"/api/orders/{order['id']}/complete", headers=auth(driver_actor))
    assert done.json()["order"]["status"] == "delivered"
    assert len(done.json()["order"]["timeline"]) == 4

    rated = await test_client.post(
        f"/api/orders/{order['id']}/rate",
        json={"driver_rating": 5, "feedback": "Careful with the boxes"},
        headers=auth(customer),
    )
    assert rated.status_code == 200
    assert rated.json()["driver"]["performance"]["average_rating"] == 5.0

    cancel = await test_client.patch(f"/api/orders/{order['id']}/cancel", json={}, headers=auth(admin))
    assert cancel.status_code == 409


@pytest.mark.asyncio
async def test_customer_cannot_accept(
    test_client: AsyncClient,
    customer: Actor,
    order_payload: OrderCreate,
    auth,
) -> None:
    order = (await test_client.post("/api/orders", json=order_body(order_payload), headers=auth(customer))).json()

    response = await test_client.post(f"/api/orders/{order['id']}/accept", headers=auth(customer))

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_order_overview(
    test_client: AsyncClient,
    customer: Actor,
    admin: Actor,
    order_payload: OrderCreate,
    auth,
) -> None:
    order = (await test_client.post("/api/orders", json=order_body(order_payload), headers=auth(customer))).json()
    await test_client.patch(f"/api/orders/{order['id']}/status", json={"status": "delivered"}, headers=auth(admin))

    overview = (await test_client.get("/api/orders/stats/overview", headers=auth(admin))).json()

    assert overview["total_orders"] == 1
    assert overview["by_status"]["delivered"] == 1
    assert overview["total_revenue"] == pytest.approx(72.5)
