"""Tests for best-effort driver/vehicle sync and the reconciliation log."""

from uuid import uuid4

import pytest

from porter.api.dependencies import DispatchServices
from porter.models.driver import Driver, DriverStatus, PersonalInfo
from porter.models.order import Order, OrderStatus


@pytest.mark.asyncio
async def test_failed_driver_sync_is_a_warning(
    services: DispatchServices,
    order: Order,
    driver: Driver,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    async def unavailable(*args, **kwargs):
        raise ConnectionError("driver store unavailable")

    monkeypatch.setattr(services.stores.drivers, "modify", unavailable)

    result = await services.assignment.assign(order.order_code, driver_ref=driver.driver_code)

    # The order write stands even though the driver could not be updated.
    assert result.order.status == OrderStatus.ASSIGNED
    assert result.order.assigned_driver == driver.id
    assert len(result.warnings) == 1
    assert driver.driver_code in result.warnings[0]

    pending = await services.sync.pending()
    assert len(pending) == 1
    assert pending[0].entity == "driver"
    assert pending[0].entity_id == driver.id
    assert pending[0].action == "occupy"
    assert pending[0].order_id == order.id
    assert "driver store unavailable" in pending[0].error


@pytest.mark.asyncio
async def test_replay_applies_and_drains(
    services: DispatchServices,
    order: Order,
    driver: Driver,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    async def unavailable(*args, **kwargs):
        raise ConnectionError("driver store unavailable")

    monkeypatch.setattr(services.stores.drivers, "modify", unavailable)
    await services.assignment.assign(order.order_code, driver_ref=driver.driver_code)
    monkeypatch.undo()

    report = await services.sync.replay()

    assert len(report.applied) == 1
    assert report.pending == []
    assert await services.sync.pending() == []

    synced = await services.stores.drivers.get(driver.id)
    assert synced.status == DriverStatus.BUSY
    assert synced.current_order == order.id


@pytest.mark.asyncio
async def test_replay_keeps_records_that_still_fail(services: DispatchServices, order: Order) -> None:
    missing = uuid4()

    assert await services.sync.driver(missing, "release", order.id) is None

    report = await services.sync.replay()
    assert report.applied == []
    assert [r.entity_id for r in report.pending] == [missing]

    # The driver shows up later; the next replay succeeds.
    await services.stores.drivers.insert(
        Driver(
            id=missing,
            driver_code="DRV-1-LATE",
            personal_info=PersonalInfo(first_name="Late", email="late@example.com", phone="5550001111"),
            status=DriverStatus.BUSY,
            current_order=order.id,
        )
    )

    report = await services.sync.replay()
    assert [r.entity_id for r in report.applied] == [missing]
    released = await services.stores.drivers.get(missing)
    assert released.status == DriverStatus.ACTIVE
    assert released.current_order is None


@pytest.mark.asyncio
async def test_release_ignores_driver_on_other_order(services: DispatchServices, driver: Driver, order: Order) -> None:
    other_order = uuid4()
    await services.sync.driver(driver.id, "occupy", other_order)

    released = await services.sync.driver(driver.id, "release", order.id)

    assert released.current_order == other_order
    assert released.status == DriverStatus.BUSY
