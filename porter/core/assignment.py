"""Assignment coordinator: attaches drivers and vehicles to orders."""

from uuid import UUID

from pydantic import BaseModel, Field

from porter.core.base import DispatchService, check_transition
from porter.exceptions import ConflictError, ValidationFailure
from porter.models.driver import Driver
from porter.models.order import Order, OrderStatus
from porter.models.vehicle import Vehicle

# Statuses an assignment pulls forward to ``assigned``; later states keep
# their status when a driver or vehicle is swapped mid-delivery.
_ADVANCES_TO_ASSIGNED = frozenset(
    {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.ASSIGNED}
)


class AssignmentResult(BaseModel):
    """Order snapshot after an assignment change, plus any sync warnings."""

    order: Order
    driver: Driver | None = None
    vehicle: Vehicle | None = None
    warnings: list[str] = Field(default_factory=list)


class AssignmentCoordinator(DispatchService):
    """
    Attach or detach a driver and/or a vehicle.

    Every supplied identifier is resolved before anything is written, so a
    bad token never leaves a half-applied assignment. Drivers and vehicles are
    claimed before the order write and put back if that write fails; a claim
    lost to a concurrent one is a conflict, while a claim the store could not
    apply is queued and reported back as a warning.
    """

    component = "assignment"

    async def assign(
        self,
        order_ref: str,
        driver_ref: str | None = None,
        vehicle_ref: str | None = None,
        status: OrderStatus | None = None,
        location: str | None = None,
        notes: str | None = None,
    ) -> AssignmentResult:
        if not driver_ref and not vehicle_ref:
            raise ValidationFailure(
                "A driver or a vehicle is required",
                details={"driverId": "required when vehicleId is missing"},
            )
        if status is not None and status.is_terminal:
            raise ValidationFailure(
                f"Cannot assign and mark an order {status.value} in one step",
                details={"status": "must not be terminal when assigning"},
            )

        order = await self.resolver.require_order(order_ref)
        driver = await self.resolver.require_driver(driver_ref, field="driverId") if driver_ref else None
        vehicle = (
            await self.resolver.require_vehicle(vehicle_ref, field="vehicleId") if vehicle_ref else None
        )

        if driver is not None:
            await self.ensure_unbound("driver", driver.driver_code, driver.current_order, order.id)
        if vehicle is not None:
            await self.ensure_unbound("vehicle", vehicle.vehicle_code, vehicle.current_order, order.id)

        replaced: dict[str, UUID | None] = {}
        claims: dict[str, Driver | Vehicle | None] = {}

        def mutate(doc: Order) -> None:
            target = status or (
                OrderStatus.ASSIGNED if doc.status in _ADVANCES_TO_ASSIGNED else doc.status
            )
            check_transition(doc.status, target, self.settings.strict_transitions and status is not None)

            if driver is not None:
                replaced["driver"] = doc.assigned_driver
                doc.assigned_driver = driver.id
            if vehicle is not None:
                replaced["vehicle"] = doc.assigned_vehicle
                doc.assigned_vehicle = vehicle.id

            doc.record(target, notes=notes or _assignment_note(driver, vehicle), location=location)

        claimed: list[tuple[str, Driver | Vehicle]] = []
        try:
            for kind, entity in (("driver", driver), ("vehicle", vehicle)):
                if entity is not None:
                    claims[kind] = await self.claim(kind, entity, order.id)
                    claimed.append((kind, entity))
            order = await self.stores.orders.modify(order.id, mutate)
        except Exception:
            for kind, entity in claimed:
                await self.unclaim(kind, entity, order.id)
            raise

        self.log.log_assignment(
            str(order.id),
            str(driver.id) if driver else None,
            str(vehicle.id) if vehicle else None,
            status=order.status.value,
        )

        result = AssignmentResult(order=order, driver=driver, vehicle=vehicle)

        if driver is not None:
            previous = replaced.get("driver")
            if previous is not None and previous != driver.id:
                await self.sync.driver(previous, "release", order.id)
            synced = claims["driver"]
            if synced is None:
                result.warnings.append(
                    f"Driver {driver.driver_code} could not be marked busy; queued for reconciliation"
                )
            else:
                result.driver = synced

        if vehicle is not None:
            previous = replaced.get("vehicle")
            if previous is not None and previous != vehicle.id:
                await self.sync.vehicle(previous, "release", order.id)
            synced = claims["vehicle"]
            if synced is None:
                result.warnings.append(
                    f"Vehicle {vehicle.vehicle_code} could not be marked busy; queued for reconciliation"
                )
            else:
                result.vehicle = synced

        await self.notifier.order_changed(
            order,
            "driver-assigned" if driver is not None else "vehicle-assigned",
            order.id,
            driver_user_id=driver.user_id if driver else None,
            driver_event="job-assigned",
        )
        return result

    async def unassign_driver(self, order_ref: str) -> AssignmentResult:
        """Detach the driver; with no vehicle left the order goes back to confirmed."""
        order = await self.resolver.require_order(order_ref)
        if order.assigned_driver is None:
            raise ConflictError("Order has no assigned driver", details={"order": order.order_code})

        removed: list[UUID] = []

        def mutate(doc: Order) -> None:
            check_transition(doc.status, OrderStatus.CONFIRMED)
            if doc.assigned_driver is None:
                raise ConflictError("Order has no assigned driver", details={"order": doc.order_code})
            removed[:] = [doc.assigned_driver]
            doc.assigned_driver = None
            target = OrderStatus.CONFIRMED if doc.assigned_vehicle is None else doc.status
            doc.record(target, notes="Driver unassigned")

        order = await self.stores.orders.modify(order.id, mutate)
        self.log.log_assignment(str(order.id), None, _str(order.assigned_vehicle), status=order.status.value)

        result = AssignmentResult(order=order)
        driver = await self.sync.driver(removed[0], "release", order.id)
        if driver is None:
            result.warnings.append("Previous driver could not be released; queued for reconciliation")
        result.driver = driver

        await self.notifier.order_changed(
            order,
            "driver-unassigned",
            order.id,
            driver_user_id=driver.user_id if driver else None,
            driver_event="job-unassigned",
        )
        return result

    async def unassign_vehicle(self, order_ref: str) -> AssignmentResult:
        """Detach the vehicle; with no driver left the order goes back to confirmed."""
        order = await self.resolver.require_order(order_ref)
        if order.assigned_vehicle is None:
            raise ConflictError("Order has no assigned vehicle", details={"order": order.order_code})

        removed: list[UUID] = []

        def mutate(doc: Order) -> None:
            check_transition(doc.status, OrderStatus.CONFIRMED)
            if doc.assigned_vehicle is None:
                raise ConflictError("Order has no assigned vehicle", details={"order": doc.order_code})
            removed[:] = [doc.assigned_vehicle]
            doc.assigned_vehicle = None
            target = OrderStatus.CONFIRMED if doc.assigned_driver is None else doc.status
            doc.record(target, notes="Vehicle unassigned")

        order = await self.stores.orders.modify(order.id, mutate)
        self.log.log_assignment(str(order.id), _str(order.assigned_driver), None, status=order.status.value)

        result = AssignmentResult(order=order)
        vehicle = await self.sync.vehicle(removed[0], "release", order.id)
        if vehicle is None:
            result.warnings.append("Previous vehicle could not be released; queued for reconciliation")
        result.vehicle = vehicle

        await self.notifier.order_changed(order, "vehicle-unassigned", order.id)
        return result


def _assignment_note(driver: Driver | None, vehicle: Vehicle | None) -> str:
    parts = []
    if driver is not None:
        parts.append(f"Driver assigned: {driver.driver_code or driver.id}")
    if vehicle is not None:
        parts.append(f"Vehicle assigned: {vehicle.vehicle_code or vehicle.id}")
    return "; ".join(parts)


def _str(value: UUID | None) -> str | None:
    return str(value) if value is not None else None
