"""Driver and vehicle administration."""

from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationError, field_validator

from porter.core.base import DispatchService
from porter.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationFailure
from porter.models.common import Actor, ActorRole, Coordinates
from porter.models.driver import Driver, DriverCreate, DriverLocation, DriverStatus, PersonalInfo
from porter.models.order import OrderStatus, VehicleClass
from porter.models.vehicle import Capacity, FuelType, Vehicle, VehicleCreate, VehicleStatus
from porter.utils.codes import digits_only, normalize_registration


class DriverUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = None
    phone: str | None = Field(default=None, min_length=1)
    status: DriverStatus | None = None
    notes: str | None = None

    @field_validator("first_name", "last_name", "phone", "status")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


class VehicleUpdate(BaseModel):
    type: VehicleClass | None = None
    make: str | None = Field(default=None, min_length=1)
    model: str | None = Field(default=None, min_length=1)
    year: int | None = Field(default=None, ge=1950, le=2100)
    capacity: Capacity | None = None
    fuel_type: FuelType | None = None

    @field_validator("type", "make", "model", "year", "capacity", "fuel_type")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


class LocationUpdate(BaseModel):
    coordinates: Coordinates
    address: str | None = None


class PerformanceUpdate(BaseModel):
    delivery_completed: bool = False
    rating: float | None = Field(default=None, ge=1, le=5)
    distance: float = Field(default=0.0, ge=0)


class FleetService(DispatchService):
    """Admin operations on drivers and vehicles; all changes go out on the fleet channel."""

    component = "fleet"

    # Drivers

    async def create_driver(self, payload: DriverCreate) -> Driver:
        info = payload.personal_info
        phone_digits = digits_only(info.phone)

        existing = await self.stores.drivers.find_one(
            lambda d: d.personal_info.email == info.email
            or (phone_digits and digits_only(d.personal_info.phone) == phone_digits)
        )
        if existing is not None:
            raise ConflictError(
                "Driver with same email or phone already exists",
                details={"existing_driver": existing.driver_code},
            )

        if payload.assigned_vehicle is not None:
            await self.stores.vehicles.require(payload.assigned_vehicle)

        driver_id = uuid4()
        driver = Driver(
            id=driver_id,
            driver_code=await self.stores.drivers.reserve_code(driver_id),
            **payload.model_dump(),
        )
        await self.stores.drivers.insert(driver)

        self.log.logger.info("driver_created", driver_id=str(driver.id), driver_code=driver.driver_code)
        await self.notifier.fleet("driver-created", driver)
        return driver

    async def list_drivers(self, status: DriverStatus | None = None, q: str | None = None) -> list[Driver]:
        needle = (q or "").strip().lower()

        def matches(driver: Driver) -> bool:
            if status is not None and driver.status != status:
                return False
            if not needle:
                return True
            info = driver.personal_info
            haystack = (info.first_name, info.last_name, info.email, info.phone, driver.driver_code)
            return any(needle in value.lower() for value in haystack)

        drivers = await self.stores.drivers.find(matches)
        return list(reversed(drivers))

    async def update_driver(self, driver_ref: str, changes: DriverUpdate) -> Driver:
        fields = changes.model_dump(exclude_unset=True)
        if not fields:
            raise ValidationFailure("No fields to update")

        driver = await self.resolver.require_driver(driver_ref)

        contact = {name: fields[name] for name in ("first_name", "last_name", "phone") if name in fields}
        if contact:
            info = _revalidate(PersonalInfo, driver.personal_info, contact)
            contact = {name: getattr(info, name) for name in contact}

        if "phone" in contact:
            phone_digits = digits_only(contact["phone"])
            existing = await self.stores.drivers.find_one(
                lambda d: d.id != driver.id and digits_only(d.personal_info.phone) == phone_digits
            )
            if phone_digits and existing is not None:
                raise ConflictError(
                    "Driver with same phone already exists",
                    details={"existing_driver": existing.driver_code},
                )

        def mutate(doc: Driver) -> None:
            if contact:
                doc.personal_info = doc.personal_info.model_copy(update=contact)
            if "status" in fields:
                doc.status = fields["status"]
            if "notes" in fields:
                doc.notes = fields["notes"]

        driver = await self.stores.drivers.modify(driver.id, mutate)
        await self.notifier.fleet("driver-updated", driver)
        return driver

    async def set_driver_status(
        self,
        driver_ref: str,
        status: DriverStatus,
        location: LocationUpdate | None = None,
    ) -> Driver:
        """Admin override; ``current_order`` is deliberately left alone."""
        driver = await self.resolver.require_driver(driver_ref)

        def mutate(doc: Driver) -> None:
            doc.status = status
            if location is not None:
                doc.current_location = DriverLocation(**location.model_dump())

        driver = await self.stores.drivers.modify(driver.id, mutate)
        self.log.logger.info("driver_status_set", driver_id=str(driver.id), status=status.value)
        await self.notifier.fleet("driver-updated", driver)
        return driver

    async def set_driver_location(
        self,
        driver_ref: str,
        location: LocationUpdate,
        actor: Actor,
    ) -> Driver:
        driver = await self.resolver.require_driver(driver_ref)
        if not actor.is_admin:
            own = await self.driver_for_actor(actor) if actor.role == ActorRole.DRIVER else None
            if own is None or own.id != driver.id:
                raise ForbiddenError("Drivers can only report their own location")

        def mutate(doc: Driver) -> None:
            doc.current_location = DriverLocation(**location.model_dump())

        driver = await self.stores.drivers.modify(driver.id, mutate)
        await self.notifier.fleet(
            "driver-location-updated",
            {
                "driver_id": str(driver.id),
                "location": driver.current_location.model_dump(mode="json"),
            },
        )
        return driver

    async def assign_vehicle_to_driver(self, driver_ref: str, vehicle_ref: str) -> Driver:
        driver = await self.resolver.require_driver(driver_ref)
        vehicle = await self.resolver.require_vehicle(vehicle_ref, field="vehicleId")

        if vehicle.assigned_driver not in (None, driver.id):
            raise ConflictError(
                f"Vehicle {vehicle.vehicle_code} already belongs to another driver",
                details={"vehicle": vehicle.vehicle_code},
            )

        previous = driver.assigned_vehicle

        def attach(doc: Driver) -> None:
            doc.assigned_vehicle = vehicle.id

        def claim(doc: Vehicle) -> None:
            doc.assigned_driver = driver.id

        def unclaim(doc: Vehicle) -> None:
            if doc.assigned_driver == driver.id:
                doc.assigned_driver = None

        driver = await self.stores.drivers.modify(driver.id, attach)
        await self.stores.vehicles.modify(vehicle.id, claim)
        if previous is not None and previous != vehicle.id:
            await self.stores.vehicles.modify(previous, unclaim)

        await self.notifier.fleet("driver-updated", driver)
        return driver

    async def update_performance(self, driver_ref: str, update: PerformanceUpdate) -> Driver:
        driver = await self.resolver.require_driver(driver_ref)

        def mutate(doc: Driver) -> None:
            if update.delivery_completed:
                doc.performance.record_completion(update.distance)
            if update.rating is not None:
                doc.performance.apply_rating(update.rating)

        driver = await self.stores.drivers.modify(driver.id, mutate)
        await self.notifier.fleet("driver-updated", driver)
        return driver

    async def driver_overview(self) -> dict[str, Any]:
        drivers = await self.stores.drivers.all()
        counts = {status.value: 0 for status in DriverStatus}
        for driver in drivers:
            counts[driver.status.value] += 1

        rated = [d.performance.average_rating for d in drivers if d.performance.rating_count]
        return {
            "total_drivers": len(drivers),
            "by_status": counts,
            "average_rating": round(sum(rated) / len(rated), 2) if rated else 0.0,
            "total_completed_jobs": sum(d.performance.completed_jobs for d in drivers),
        }

    async def job_board(self) -> list:
        """Pending orders a driver can accept, oldest first."""
        jobs = await self.stores.orders.find(lambda o: o.status == OrderStatus.PENDING)
        return jobs[: self.settings.job_board_limit]

    async def driver_map(self) -> list[Driver]:
        """On-duty drivers with a known position."""
        return await self.stores.drivers.find(
            lambda d: d.status in (DriverStatus.ACTIVE, DriverStatus.BUSY) and _located(d.current_location)
        )

    async def delete_driver(self, driver_ref: str) -> Driver:
        driver = await self.resolver.require_driver(driver_ref)

        on_job = await self.stores.orders.find_one(
            lambda o: o.assigned_driver == driver.id and o.is_active
        )
        if on_job is not None:
            raise ConflictError(
                f"Driver {driver.driver_code} is working active order {on_job.order_code}",
                details={"driver": driver.driver_code, "order": on_job.order_code},
            )

        if driver.assigned_vehicle is not None:
            def detach(doc: Vehicle) -> None:
                if doc.assigned_driver == driver.id:
                    doc.assigned_driver = None

            if await self.stores.vehicles.get(driver.assigned_vehicle) is not None:
                await self.stores.vehicles.modify(driver.assigned_vehicle, detach)

        await self.stores.drivers.delete(driver.id)
        self.log.logger.info("driver_deleted", driver_id=str(driver.id), driver_code=driver.driver_code)
        await self.notifier.fleet("driver-deleted", {"driver_id": str(driver.id)})
        return driver

    # Vehicles

    async def create_vehicle(self, payload: VehicleCreate) -> Vehicle:
        vehicle_id = uuid4()
        await self.stores.vehicles.reserve_registration(
            normalize_registration(payload.registration_number), vehicle_id
        )

        vehicle = Vehicle(
            id=vehicle_id,
            vehicle_code=await self.stores.vehicles.reserve_code(vehicle_id),
            **payload.model_dump(),
        )
        await self.stores.vehicles.insert(vehicle)

        self.log.logger.info("vehicle_created", vehicle_id=str(vehicle.id), vehicle_code=vehicle.vehicle_code)
        await self.notifier.fleet("vehicle-created", vehicle)
        return vehicle

    async def list_vehicles(self, status: VehicleStatus | None = None, type: str | None = None) -> list[Vehicle]:
        vehicles = await self.stores.vehicles.find(
            lambda v: (status is None or v.status == status) and (type is None or v.type == type)
        )
        return list(reversed(vehicles))

    async def set_vehicle_status(
        self,
        vehicle_ref: str,
        status: VehicleStatus,
        location: LocationUpdate | None = None,
    ) -> Vehicle:
        vehicle = await self.resolver.require_vehicle(vehicle_ref)

        def mutate(doc: Vehicle) -> None:
            doc.status = status
            if location is not None:
                doc.current_location = DriverLocation(**location.model_dump())

        vehicle = await self.stores.vehicles.modify(vehicle.id, mutate)
        await self.notifier.fleet("vehicle-updated", vehicle)
        return vehicle

    async def set_vehicle_location(self, vehicle_ref: str, location: LocationUpdate) -> Vehicle:
        vehicle = await self.resolver.require_vehicle(vehicle_ref)

        def mutate(doc: Vehicle) -> None:
            doc.current_location = DriverLocation(**location.model_dump())

        vehicle = await self.stores.vehicles.modify(vehicle.id, mutate)
        await self.notifier.fleet(
            "vehicle-location-updated",
            {
                "vehicle_id": str(vehicle.id),
                "location": vehicle.current_location.model_dump(mode="json"),
            },
        )
        return vehicle

    async def delete_vehicle(self, vehicle_ref: str) -> Vehicle:
        vehicle = await self.resolver.resolve_vehicle(vehicle_ref)
        if vehicle is None:
            raise NotFoundError("vehicle", vehicle_ref)

        in_use = await self.stores.orders.find_one(
            lambda o: o.assigned_vehicle == vehicle.id and o.is_active
        )
        if in_use is not None:
            raise ConflictError(
                f"Vehicle {vehicle.vehicle_code} is attached to active order {in_use.order_code}",
                details={"vehicle": vehicle.vehicle_code, "order": in_use.order_code},
            )

        if vehicle.assigned_driver is not None:
            def detach(doc: Driver) -> None:
                if doc.assigned_vehicle == vehicle.id:
                    doc.assigned_vehicle = None

            driver = await self.stores.drivers.get(vehicle.assigned_driver)
            if driver is not None:
                await self.stores.drivers.modify(driver.id, detach)

        await self.stores.vehicles.delete(vehicle.id)
        self.log.logger.info("vehicle_deleted", vehicle_id=str(vehicle.id), vehicle_code=vehicle.vehicle_code)
        await self.notifier.fleet("vehicle-deleted", {"vehicle_id": str(vehicle.id)})
        return vehicle

    async def update_vehicle(self, vehicle_ref: str, changes: VehicleUpdate) -> Vehicle:
        """Edit a vehicle's descriptive fields; the registration number is fixed."""
        fields = changes.model_dump(exclude_unset=True)
        if not fields:
            raise ValidationFailure("No fields to update")

        vehicle = await self.resolver.require_vehicle(vehicle_ref)
        updated = _revalidate(Vehicle, vehicle, fields)
        fields = {name: getattr(updated, name) for name in fields}

        def mutate(doc: Vehicle) -> None:
            for name, value in fields.items():
                setattr(doc, name, value)

        vehicle = await self.stores.vehicles.modify(vehicle.id, mutate)
        await self.notifier.fleet("vehicle-updated", vehicle)
        return vehicle

    async def assign_driver_to_vehicle(self, vehicle_ref: str, driver_ref: str) -> Vehicle:
        """Same pairing as ``assign_vehicle_to_driver``, seen from the vehicle."""
        vehicle = await self.resolver.require_vehicle(vehicle_ref)
        await self.assign_vehicle_to_driver(driver_ref, str(vehicle.id))

        vehicle = await self.stores.vehicles.require(vehicle.id)
        await self.notifier.fleet("vehicle-updated", vehicle)
        return vehicle

    async def vehicle_overview(self) -> dict[str, Any]:
        vehicles = await self.stores.vehicles.all()
        by_status = {status.value: 0 for status in VehicleStatus}
        by_type: dict[str, int] = {}
        for vehicle in vehicles:
            by_status[vehicle.status.value] += 1
            by_type[vehicle.type.value] = by_type.get(vehicle.type.value, 0) + 1

        return {
            "total_vehicles": len(vehicles),
            "by_status": by_status,
            "by_type": by_type,
        }

    async def vehicle_map(self) -> list[Vehicle]:
        """Vehicles in service with a known position."""
        return await self.stores.vehicles.find(
            lambda v: v.status in (VehicleStatus.AVAILABLE, VehicleStatus.BUSY)
            and _located(v.current_location)
        )


def _located(location: DriverLocation | None) -> bool:
    # (0, 0) is what unset trackers report.
    return location is not None and location.coordinates.lat != 0 and location.coordinates.lng != 0


def _revalidate(model: type[BaseModel], current: BaseModel, changes: dict[str, Any]) -> Any:
    """Check ``current`` with ``changes`` applied against ``model``; 400 on failure."""
    try:
        return model.model_validate({**current.model_dump(), **changes})
    except ValidationError as e:
        raise ValidationFailure(
            "Invalid update",
            details={".".join(str(part) for part in err["loc"]): err["msg"] for err in e.errors()},
        ) from e
