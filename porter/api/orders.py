"""Order routes: booking, lifecycle, assignment and driver jobs."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import AliasChoices, BaseModel, Field

from porter.api.dependencies import (
    DispatchServices,
    Pagination,
    get_current_actor,
    get_services,
    require_admin,
    require_driver,
)
from porter.core.assignment import AssignmentResult
from porter.core.lifecycle import JobResult
from porter.exceptions import ValidationFailure
from porter.models.common import Actor
from porter.models.order import (
    ACTIVE_STATUSES,
    Order,
    OrderCreate,
    OrderRating,
    OrderStatus,
    VehicleClass,
)
from porter.utils.codes import digits_only

router = APIRouter(prefix="/orders", tags=["orders"])


# Request Models


def _driver_field(**kwargs: Any) -> Any:
    return Field(validation_alias=AliasChoices("driverId", "driver_id"), **kwargs)


def _vehicle_field(**kwargs: Any) -> Any:
    return Field(validation_alias=AliasChoices("vehicleId", "vehicle_id"), **kwargs)


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    location: str | None = None
    notes: str | None = None


class OrderPatchRequest(BaseModel):
    """Combined admin update: any mix of assignment and status fields."""

    driver_id: str | None = _driver_field(default=None)
    vehicle_id: str | None = _vehicle_field(default=None)
    status: OrderStatus | None = None
    location: str | None = None
    notes: str | None = None


class AssignDriverRequest(BaseModel):
    driver_id: str = _driver_field(min_length=1)
    vehicle_id: str | None = _vehicle_field(default=None)
    notes: str | None = None


class AssignRequest(BaseModel):
    driver_id: str | None = _driver_field(default=None)
    vehicle_id: str | None = _vehicle_field(default=None)
    notes: str | None = None


class AssignVehicleRequest(BaseModel):
    vehicle_id: str = _vehicle_field(min_length=1)
    notes: str | None = None


class AssignBothRequest(BaseModel):
    driver_id: str = _driver_field(min_length=1)
    vehicle_id: str = _vehicle_field(min_length=1)
    notes: str | None = None


class CancelRequest(BaseModel):
    reason: str | None = None


class OrderPage(BaseModel):
    orders: list[Order]
    total: int
    current_page: int
    total_pages: int


# Routes


@router.post("", response_model=Order, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    actor: Actor = Depends(get_current_actor),
    services: DispatchServices = Depends(get_services),
) -> Order:
    """Book a new delivery."""
    return await services.lifecycle.create(actor, payload)


@router.get("", response_model=OrderPage)
async def list_orders(
    order_status: OrderStatus | None = Query(default=None, alias="status"),
    customer_phone: str | None = None,
    vehicle_type: VehicleClass | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    pagination: Pagination = Depends(),
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> OrderPage:
    """All orders, newest first."""
    phone = digits_only(customer_phone or "")

    def matches(order: Order) -> bool:
        if order_status is not None and order.status != order_status:
            return False
        if vehicle_type is not None and order.vehicle_type != vehicle_type:
            return False
        if phone and phone not in digits_only(order.customer.phone):
            return False
        if date_from is not None and order.created_at < _naive(date_from):
            return False
        if date_to is not None and order.created_at > _naive(date_to):
            return False
        return True

    orders = await services.stores.orders.find(matches)
    page = pagination.apply(list(reversed(orders)))
    return OrderPage(orders=page.pop("items"), **page)


@router.get("/my", response_model=OrderPage)
async def my_orders(
    pagination: Pagination = Depends(),
    actor: Actor = Depends(get_current_actor),
    services: DispatchServices = Depends(get_services),
) -> OrderPage:
    """Orders booked by the calling user, newest first."""
    orders = await services.stores.orders.find(lambda o: o.customer_user_id == actor.user_id)
    page = pagination.apply(list(reversed(orders)))
    return OrderPage(orders=page.pop("items"), **page)


@router.get("/stats/overview")
async def order_overview(
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> dict[str, Any]:
    """Counts per status and delivered revenue."""
    orders = await services.stores.orders.find(
        lambda o: (date_from is None or o.created_at >= _naive(date_from))
        and (date_to is None or o.created_at <= _naive(date_to))
    )

    by_status = {s.value: 0 for s in OrderStatus}
    revenue = Decimal("0")
    for order in orders:
        by_status[order.status.value] += 1
        if order.status == OrderStatus.DELIVERED:
            revenue += order.pricing.total_amount

    delivered = by_status[OrderStatus.DELIVERED.value]
    return {
        "total_orders": len(orders),
        "by_status": by_status,
        "active_orders": sum(1 for o in orders if o.status in ACTIVE_STATUSES),
        "total_revenue": float(revenue),
        "average_order_value": float(revenue / delivered) if delivered else 0.0,
    }


@router.get("/{order_id}", response_model=Order)
async def get_order(
    order_id: str,
    _: Actor = Depends(get_current_actor),
    services: DispatchServices = Depends(get_services),
) -> Order:
    """Look an order up by id, code or code prefix."""
    return await services.resolver.require_order(order_id)


@router.patch("/{order_id}", response_model=AssignmentResult)
async def update_order(
    order_id: str,
    request: OrderPatchRequest,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> AssignmentResult:
    """
    Combined update.

    With a driver or vehicle the call is an assignment (``status`` then
    overrides the default ``assigned``); otherwise it is a plain status change.
    """
    if request.driver_id or request.vehicle_id:
        return await services.assignment.assign(
            order_id,
            driver_ref=request.driver_id,
            vehicle_ref=request.vehicle_id,
            status=request.status,
            location=request.location,
            notes=request.notes,
        )

    if request.status is None:
        raise ValidationFailure(
            "Nothing to update",
            details={"status": "provide status, driverId or vehicleId"},
        )

    order = await services.lifecycle.transition(
        order_id, request.status, location=request.location, notes=request.notes
    )
    return AssignmentResult(order=order)


@router.patch("/{order_id}/status", response_model=Order)
async def update_order_status(
    order_id: str,
    request: StatusUpdateRequest,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> Order:
    return await services.lifecycle.transition(
        order_id, request.status, location=request.location, notes=request.notes
    )


@router.patch("/{order_id}/assign-driver", response_model=AssignmentResult)
async def assign_driver(
    order_id: str,
    request: AssignDriverRequest,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> AssignmentResult:
    return await services.assignment.assign(
        order_id,
        driver_ref=request.driver_id,
        vehicle_ref=request.vehicle_id,
        notes=request.notes,
    )


@router.patch("/{order_id}/assign", response_model=AssignmentResult)
async def assign(
    order_id: str,
    request: AssignRequest,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> AssignmentResult:
    return await services.assignment.assign(
        order_id,
        driver_ref=request.driver_id,
        vehicle_ref=request.vehicle_id,
        notes=request.notes,
    )


@router.patch("/{order_id}/assign-vehicle", response_model=AssignmentResult)
async def assign_vehicle(
    order_id: str,
    request: AssignVehicleRequest,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> AssignmentResult:
    return await services.assignment.assign(
        order_id, vehicle_ref=request.vehicle_id, notes=request.notes
    )


@router.patch("/{order_id}/assign-both", response_model=AssignmentResult)
async def assign_both(
    order_id: str,
    request: AssignBothRequest,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> AssignmentResult:
    return await services.assignment.assign(
        order_id,
        driver_ref=request.driver_id,
        vehicle_ref=request.vehicle_id,
        notes=request.notes,
    )


@router.patch("/{order_id}/unassign-driver", response_model=AssignmentResult)
async def unassign_driver(
    order_id: str,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> AssignmentResult:
    return await services.assignment.unassign_driver(order_id)


@router.patch("/{order_id}/unassign-vehicle", response_model=AssignmentResult)
async def unassign_vehicle(
    order_id: str,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> AssignmentResult:
    return await services.assignment.unassign_vehicle(order_id)


@router.patch("/{order_id}/cancel", response_model=Order)
async def cancel_order(
    order_id: str,
    request: CancelRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    services: DispatchServices = Depends(get_services),
) -> Order:
    """Cancel an order; customers may only cancel their own."""
    reason = request.reason if request else None
    return await services.lifecycle.cancel(order_id, reason=reason, actor=actor)


@router.post("/{order_id}/accept", response_model=JobResult)
async def accept_job(
    order_id: str,
    actor: Actor = Depends(require_driver),
    services: DispatchServices = Depends(get_services),
) -> JobResult:
    return await services.lifecycle.accept(order_id, actor)


@router.post("/{order_id}/pickup", response_model=JobResult)
async def pickup_job(
    order_id: str,
    actor: Actor = Depends(require_driver),
    services: DispatchServices = Depends(get_services),
) -> JobResult:
    return await services.lifecycle.pickup(order_id, actor)


@router.post("/{order_id}/complete", response_model=JobResult)
async def complete_job(
    order_id: str,
    actor: Actor = Depends(require_driver),
    services: DispatchServices = Depends(get_services),
) -> JobResult:
    return await services.lifecycle.complete(order_id, actor)


@router.post("/{order_id}/rate", response_model=JobResult)
async def rate_order(
    order_id: str,
    rating: OrderRating,
    actor: Actor = Depends(get_current_actor),
    services: DispatchServices = Depends(get_services),
) -> JobResult:
    return await services.lifecycle.rate(order_id, actor, rating)


def _naive(value: datetime) -> datetime:
    """Stored timestamps are naive UTC; convert aware query values to match."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
