"""
Best-effort cross-entity sync with a compensation log.

Orders and drivers live in separate documents, so an assignment touches two
documents. A driver (or vehicle) write that fails for any reason other than a
conflicting claim is logged and queued as a ``ReconciliationRecord`` while the
order keeps its new state; ``replay`` re-applies queued records later.
"""

from datetime import datetime
from typing import Any, Callable
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from porter.exceptions import ConflictError, DependencyFailure
from porter.models.driver import Driver, DriverStatus
from porter.models.vehicle import Vehicle, VehicleStatus
from porter.state.store import Stores
from porter.utils.logging import DispatchLogger

log = DispatchLogger("reconciliation")


def _ensure_free(kind: str, code: str, current: UUID | None, order_id: UUID, expected: str | None) -> None:
    """Refuse to claim an entity that moved to another order since it was read."""
    if current is None or current == order_id or (expected is not None and str(current) == expected):
        return
    raise ConflictError(
        f"{kind.capitalize()} {code} was claimed by another order",
        details={kind: code, "order_id": str(current)},
    )


# Driver actions


def occupy_driver(order_id: UUID, expected: str | None = None) -> Callable[[Driver], None]:
    def mutate(driver: Driver) -> None:
        _ensure_free("driver", driver.driver_code, driver.current_order, order_id, expected)
        driver.current_order = order_id
        driver.status = DriverStatus.BUSY

    return mutate


def release_driver(order_id: UUID) -> Callable[[Driver], None]:
    def mutate(driver: Driver) -> None:
        if driver.current_order not in (None, order_id):
            return
        driver.current_order = None
        if driver.status == DriverStatus.BUSY:
            driver.status = DriverStatus.ACTIVE

    return mutate


def restore_driver(order_id: UUID, status: str, previous: str | None = None) -> Callable[[Driver], None]:
    def mutate(driver: Driver) -> None:
        if driver.current_order != order_id:
            return
        driver.current_order = UUID(previous) if previous else None
        driver.status = DriverStatus(status)

    return mutate


def complete_driver(order_id: UUID, distance: float = 0.0) -> Callable[[Driver], None]:
    def mutate(driver: Driver) -> None:
        if driver.current_order in (None, order_id):
            driver.current_order = None
            driver.status = DriverStatus.ACTIVE
        driver.performance.record_completion(distance)

    return mutate


def rate_driver(order_id: UUID, rating: float) -> Callable[[Driver], None]:
    def mutate(driver: Driver) -> None:
        driver.performance.apply_rating(rating)

    return mutate


# Vehicle actions


def occupy_vehicle(order_id: UUID, expected: str | None = None) -> Callable[[Vehicle], None]:
    def mutate(vehicle: Vehicle) -> None:
        _ensure_free("vehicle", vehicle.vehicle_code, vehicle.current_order, order_id, expected)
        vehicle.current_order = order_id
        vehicle.status = VehicleStatus.BUSY

    return mutate


def release_vehicle(order_id: UUID) -> Callable[[Vehicle], None]:
    def mutate(vehicle: Vehicle) -> None:
        if vehicle.current_order not in (None, order_id):
            return
        vehicle.current_order = None
        if vehicle.status == VehicleStatus.BUSY:
            vehicle.status = VehicleStatus.AVAILABLE

    return mutate


def restore_vehicle(order_id: UUID, status: str, previous: str | None = None) -> Callable[[Vehicle], None]:
    def mutate(vehicle: Vehicle) -> None:
        if vehicle.current_order != order_id:
            return
        vehicle.current_order = UUID(previous) if previous else None
        vehicle.status = VehicleStatus(status)

    return mutate


DRIVER_ACTIONS: dict[str, Callable[..., Callable[[Driver], None]]] = {
    "occupy": occupy_driver,
    "release": release_driver,
    "restore": restore_driver,
    "complete": complete_driver,
    "rate": rate_driver,
}

VEHICLE_ACTIONS: dict[str, Callable[..., Callable[[Vehicle], None]]] = {
    "occupy": occupy_vehicle,
    "release": release_vehicle,
    "restore": restore_vehicle,
}


class ReconciliationRecord(BaseModel):
    """A secondary write that still has to be applied."""

    id: UUID = Field(default_factory=uuid4)
    entity: str
    entity_id: UUID
    action: str
    order_id: UUID
    arguments: dict[str, Any] = Field(default_factory=dict)
    error: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ReplayReport(BaseModel):
    applied: list[ReconciliationRecord] = Field(default_factory=list)
    pending: list[ReconciliationRecord] = Field(default_factory=list)


class EntitySync:
    """Applies driver/vehicle side effects of an order mutation."""

    def __init__(self, stores: Stores):
        self.stores = stores

    @property
    def _log_key(self) -> str:
        return self.stores.state.key("reconciliation", "pending")

    async def driver(
        self,
        driver_id: UUID,
        action: str,
        order_id: UUID,
        **arguments: Any,
    ) -> Driver | None:
        """Run a driver action; on failure queue it and return ``None``."""
        return await self._apply("driver", driver_id, action, order_id, arguments)

    async def vehicle(
        self,
        vehicle_id: UUID,
        action: str,
        order_id: UUID,
        **arguments: Any,
    ) -> Vehicle | None:
        return await self._apply("vehicle", vehicle_id, action, order_id, arguments)

    async def _apply(
        self,
        entity: str,
        entity_id: UUID,
        action: str,
        order_id: UUID,
        arguments: dict[str, Any],
    ) -> Any:
        try:
            return await self._write(entity, entity_id, action, order_id, arguments)
        except ConflictError:
            raise
        except Exception as e:
            failure = DependencyFailure(f"{entity} {action} failed: {e}")
            log.log_sync_failure(entity, str(entity_id), action, str(order_id), failure.message)
            await self._enqueue(
                ReconciliationRecord(
                    entity=entity,
                    entity_id=entity_id,
                    action=action,
                    order_id=order_id,
                    arguments=arguments,
                    error=failure.message,
                )
            )
            return None

    async def _write(
        self,
        entity: str,
        entity_id: UUID,
        action: str,
        order_id: UUID,
        arguments: dict[str, Any],
    ) -> Any:
        if entity == "driver":
            mutate = DRIVER_ACTIONS[action](order_id, **arguments)
            return await self.stores.drivers.modify(entity_id, mutate)
        mutate = VEHICLE_ACTIONS[action](order_id, **arguments)
        return await self.stores.vehicles.modify(entity_id, mutate)

    async def _enqueue(self, record: ReconciliationRecord) -> None:
        try:
            await self.stores.state.rpush(self._log_key, record.model_dump(mode="json"))
        except Exception as e:
            log.logger.error(
                "reconciliation_enqueue_failed",
                record_id=str(record.id),
                entity=record.entity,
                entity_id=str(record.entity_id),
                error=str(e),
            )

    async def pending(self) -> list[ReconciliationRecord]:
        return [
            ReconciliationRecord.model_validate(raw)
            for raw in await self.stores.state.lrange(self._log_key)
        ]

    async def replay(self) -> ReplayReport:
        """Re-apply queued records; the ones that succeed leave the queue."""
        report = ReplayReport()

        for raw in await self.stores.state.lrange(self._log_key):
            record = ReconciliationRecord.model_validate(raw)
            try:
                await self._write(
                    record.entity,
                    record.entity_id,
                    record.action,
                    record.order_id,
                    record.arguments,
                )
            except Exception as e:
                log.logger.warning(
                    "reconciliation_replay_failed",
                    record_id=str(record.id),
                    error=str(e),
                )
                report.pending.append(record)
                continue

            await self.stores.state.lrem(self._log_key, raw)
            report.applied.append(record)

        log.logger.info(
            "reconciliation_replayed",
            applied=len(report.applied),
            pending=len(report.pending),
        )
        return report
