"""Pytest configuration and fixtures."""

from decimal import Decimal
from typing import Any, AsyncGenerator

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from porter.api.dependencies import DispatchServices
from porter.main import build_services, create_app
from porter.models.common import Actor, ActorRole, Coordinates, Location
from porter.models.driver import Driver, DriverCreate, PersonalInfo
from porter.models.order import (
    CustomerContact,
    Order,
    OrderCreate,
    PackageDetails,
    Pricing,
    VehicleClass,
)
from porter.models.vehicle import Capacity, Vehicle, VehicleCreate
from porter.state.manager import StateManager


class RecordingBroadcaster:
    """Captures every published frame as ``(channel, event, payload)``."""

    def __init__(self) -> None:
        self.frames: list[tuple[str, str, dict[str, Any]]] = []

    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        self.frames.append((channel, event, payload))

    def events(self, channel: str | None = None) -> list[str]:
        return [event for ch, event, _ in self.frames if channel is None or ch == channel]

    def clear(self) -> None:
        self.frames.clear()


class FailingBroadcaster:
    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        raise ConnectionError("subscriber gone")


@pytest_asyncio.fixture
async def state_manager() -> AsyncGenerator[StateManager, None]:
    """State manager over an in-memory Redis."""
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    manager = StateManager(redis_client=client, key_prefix="porter-test")
    yield manager
    await client.flushall()
    await manager.disconnect()


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def services(state_manager: StateManager, broadcaster: RecordingBroadcaster) -> DispatchServices:
    return DispatchServices(state_manager, broadcaster)


@pytest_asyncio.fixture
async def test_client(state_manager: StateManager) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against an app wired to the in-memory Redis."""
    app = create_app()
    build_services(app, state_manager)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


# Actors


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="admin-1", role=ActorRole.ADMIN, email="ops@example.com")


@pytest.fixture
def customer() -> Actor:
    return Actor(user_id="cust-1", role=ActorRole.CUSTOMER, email="alice@example.com")


@pytest.fixture
def driver_actor() -> Actor:
    return Actor(user_id="drv-user-1", role=ActorRole.DRIVER, email="bob@example.com")


def headers_for(actor: Actor) -> dict[str, str]:
    headers = {"X-User-Id": actor.user_id, "X-User-Role": actor.role.value}
    if actor.email:
        headers["X-User-Email"] = actor.email
    return headers


# Sample data fixtures


@pytest.fixture
def order_payload() -> OrderCreate:
    return OrderCreate(
        customer=CustomerContact(name="Alice", phone="+1 (555) 010-2030", email="alice@example.com"),
        pickup_location=Location(
            address="12 Dock Road", coordinates=Coordinates(lat=12.97, lng=77.59)
        ),
        delivery_location=Location(
            address="48 Hill Street", coordinates=Coordinates(lat=12.93, lng=77.62)
        ),
        vehicle_type=VehicleClass.MINI_TRUCK,
        package_details=PackageDetails(weight=120, description="Boxes"),
        pricing=Pricing(base_fare=Decimal("40.00"), distance=8.5, total_amount=Decimal("72.50")),
    )


@pytest.fixture
def driver_payload() -> DriverCreate:
    return DriverCreate(
        personal_info=PersonalInfo(
            first_name="Bob",
            last_name="Rider",
            email="Bob@Example.com",
            phone="+1 555 987 6543",
        ),
        user_id="drv-user-1",
    )


@pytest.fixture
def vehicle_payload() -> VehicleCreate:
    return VehicleCreate(
        registration_number="KA01AB1234",
        type=VehicleClass.MINI_TRUCK,
        make="Tata",
        model="Ace",
        year=2021,
        capacity=Capacity(weight=750, volume=4.5),
    )


@pytest_asyncio.fixture
async def order(services: DispatchServices, customer: Actor, order_payload: OrderCreate) -> Order:
    return await services.lifecycle.create(customer, order_payload)


@pytest_asyncio.fixture
async def driver(services: DispatchServices, driver_payload: DriverCreate) -> Driver:
    return await services.fleet.create_driver(driver_payload)


@pytest_asyncio.fixture
async def vehicle(services: DispatchServices, vehicle_payload: VehicleCreate) -> Vehicle:
    return await services.fleet.create_vehicle(vehicle_payload)


@pytest.fixture
def auth():
    """Identity headers for an actor, as the gateway would set them."""
    return headers_for


@pytest.fixture
def failing_broadcaster() -> FailingBroadcaster:
    return FailingBroadcaster()
