"""Tests for loose identifier classification and resolution."""

from uuid import uuid4

import pytest

from porter.api.dependencies import DispatchServices
from porter.core.identifiers import (
    CanonicalId,
    Code,
    Email,
    EntityKind,
    Partial,
    Phone,
    Registration,
    classify,
)
from porter.exceptions import NotFoundError
from porter.models.driver import Driver
from porter.models.order import Order
from porter.models.vehicle import Vehicle


def test_classify_canonical_id_comes_first() -> None:
    entity_id = uuid4()

    chain = classify(str(entity_id), EntityKind.ORDER)

    assert chain[0] == CanonicalId(entity_id)
    assert chain[1:] == [Code(str(entity_id)), Partial(str(entity_id))]


def test_classify_driver_tokens() -> None:
    assert classify("DRV-1718000000000-AB12", EntityKind.DRIVER) == [
        Code("DRV-1718000000000-AB12")
    ]
    assert classify(" Bob@Example.com ", EntityKind.DRIVER) == [
        Email("bob@example.com"),
        Code("Bob@Example.com"),
    ]
    assert classify("+1 555-987", EntityKind.DRIVER) == [Phone("1555987"), Code("+1 555-987")]
    # Too few digits for a phone number.
    assert classify("12345", EntityKind.DRIVER) == [Code("12345")]


def test_classify_vehicle_tokens() -> None:
    chain = classify(" ka01 ab1234 ", EntityKind.VEHICLE)

    assert chain == [
        Code("ka01 ab1234"),
        Registration("KA01AB1234"),
        Partial("ka01 ab1234"),
    ]


def test_classify_blank_token() -> None:
    assert classify("   ", EntityKind.ORDER) == []


@pytest.mark.asyncio
async def test_resolve_order_by_id_code_and_prefix(services: DispatchServices, order: Order) -> None:
    resolver = services.resolver

    assert (await resolver.resolve_order(str(order.id))).id == order.id
    assert (await resolver.resolve_order(order.order_code)).id == order.id
    assert (await resolver.resolve_order(order.order_code.lower()[:10])).id == order.id


@pytest.mark.asyncio
async def test_resolve_order_unknown(services: DispatchServices, order: Order) -> None:
    assert await services.resolver.resolve_order("ORD-0000-NOPE") is None
    assert await services.resolver.resolve_order(str(uuid4())) is None


@pytest.mark.asyncio
async def test_require_order_reports_token_and_field(services: DispatchServices) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        await services.resolver.require_order("ORD-missing", field="orderId")

    assert exc_info.value.status_code == 404
    assert exc_info.value.details == {
        "kind": "order",
        "identifier": "ORD-missing",
        "field": "orderId",
    }


@pytest.mark.asyncio
async def test_resolve_driver_variants(services: DispatchServices, driver: Driver) -> None:
    resolver = services.resolver

    assert (await resolver.resolve_driver(str(driver.id))).id == driver.id
    assert (await resolver.resolve_driver(driver.driver_code)).id == driver.id
    assert (await resolver.resolve_driver("  BOB@example.COM ")).id == driver.id
    assert (await resolver.resolve_driver("555-987-6543")).id == driver.id
    assert await resolver.resolve_driver("nobody@example.com") is None


@pytest.mark.asyncio
async def test_resolve_vehicle_registration_fallbacks(
    services: DispatchServices,
    vehicle: Vehicle,
) -> None:
    resolver = services.resolver

    assert (await resolver.resolve_vehicle(vehicle.vehicle_code)).id == vehicle.id
    assert (await resolver.resolve_vehicle("ka01ab1234")).id == vehicle.id
    assert (await resolver.resolve_vehicle(" KA01 AB1234 ")).id == vehicle.id
    assert (await resolver.resolve_vehicle("AB12")).id == vehicle.id
    assert await resolver.resolve_vehicle("MH12ZZ9999") is None


@pytest.mark.asyncio
async def test_canonical_id_wins_over_other_matches(
    services: DispatchServices,
    order: Order,
    customer,
    order_payload,
) -> None:
    other = await services.lifecycle.create(customer, order_payload)

    resolved = await services.resolver.resolve_order(str(other.id))

    assert resolved.id == other.id
    assert resolved.id != order.id
