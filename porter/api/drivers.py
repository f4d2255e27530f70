"""Driver routes."""

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
from porter.core.fleet import DriverUpdate, LocationUpdate, PerformanceUpdate
from porter.exceptions import NotFoundError
from porter.models.common import Actor
from porter.models.driver import Driver, DriverCreate, DriverStatus
from porter.models.order import Order

router = APIRouter(prefix="/drivers", tags=["drivers"])


class DriverStatusRequest(BaseModel):
    status: DriverStatus
    location: LocationUpdate | None = None


class DriverVehicleRequest(BaseModel):
    vehicle_id: str = Field(min_length=1, validation_alias=AliasChoices("vehicleId", "vehicle_id"))


class PerformanceRequest(BaseModel):
    delivery_completed: bool = Field(
        default=False,
        validation_alias=AliasChoices("deliveryCompleted", "delivery_completed"),
    )
    rating: float | None = Field(default=None, ge=1, le=5)
    distance: float = Field(default=0.0, ge=0)


class DriverPage(BaseModel):
    drivers: list[Driver]
    total: int
    current_page: int
    total_pages: int


class JobBoard(BaseModel):
    jobs: list[Order]
    count: int


@router.post("", response_model=Driver, status_code=status.HTTP_201_CREATED)
async def create_driver(
    payload: DriverCreate,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> Driver:
    return await services.fleet.create_driver(payload)


@router.get("", response_model=DriverPage)
async def list_drivers(
    driver_status: DriverStatus | None = Query(default=None, alias="status"),
    q: str | None = None,
    pagination: Pagination = Depends(),
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> DriverPage:
    """Drivers, newest first; ``q`` searches name, email, phone and code."""
    drivers = await services.fleet.list_drivers(status=driver_status, q=q)
    page = pagination.apply(drivers)
    return DriverPage(drivers=page.pop("items"), **page)


@router.get("/me", response_model=Driver)
async def my_profile(
    actor: Actor = Depends(require_driver),
    services: DispatchServices = Depends(get_services),
) -> Driver:
    driver = await services.fleet.driver_for_actor(actor)
    if driver is None:
        raise NotFoundError("driver", actor.user_id)
    return driver


@router.get("/jobs", response_model=JobBoard)
async def available_jobs(
    _: Actor = Depends(require_driver),
    services: DispatchServices = Depends(get_services),
) -> JobBoard:
    """Pending orders waiting for a driver, oldest first."""
    jobs = await services.fleet.job_board()
    return JobBoard(jobs=jobs, count=len(jobs))


@router.get("/stats/overview")
async def driver_overview(
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> dict[str, Any]:
    return await services.fleet.driver_overview()


@router.get("/map/locations", response_model=list[Driver])
async def driver_locations(
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> list[Driver]:
    """On-duty drivers with a reported position, for the live map."""
    return await services.fleet.driver_map()


@router.get("/{driver_id}", response_model=Driver)
async def get_driver(
    driver_id: str,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> Driver:
    """Look a driver up by id, code, email or phone."""
    return await services.resolver.require_driver(driver_id)


@router.patch("/{driver_id}", response_model=Driver)
async def update_driver(
    driver_id: str,
    changes: DriverUpdate,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> Driver:
    return await services.fleet.update_driver(driver_id, changes)


@router.patch("/{driver_id}/status", response_model=Driver)
async def update_driver_status(
    driver_id: str,
    request: DriverStatusRequest,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> Driver:
    return await services.fleet.set_driver_status(driver_id, request.status, request.location)


@router.patch("/{driver_id}/location", response_model=Driver)
async def update_driver_location(
    driver_id: str,
    location: LocationUpdate,
    actor: Actor = Depends(get_current_actor),
    services: DispatchServices = Depends(get_services),
) -> Driver:
    return await services.fleet.set_driver_location(driver_id, location, actor)


@router.patch("/{driver_id}/assign-vehicle", response_model=Driver)
async def assign_vehicle(
    driver_id: str,
    request: DriverVehicleRequest,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> Driver:
    return await services.fleet.assign_vehicle_to_driver(driver_id, request.vehicle_id)


@router.patch("/{driver_id}/performance", response_model=Driver)
async def update_performance(
    driver_id: str,
    request: PerformanceRequest,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> Driver:
    return await services.fleet.update_performance(
        driver_id, PerformanceUpdate(**request.model_dump())
    )


@router.delete("/{driver_id}", response_model=Driver)
async def delete_driver(
    driver_id: str,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> Driver:
    return await services.fleet.delete_driver(driver_id)
