"""Vehicle routes."""

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import AliasChoices, BaseModel, Field

from porter.api.dependencies import (
    DispatchServices,
    Pagination,
    get_current_actor,
    get_services,
    require_admin,
)
from porter.core.fleet import LocationUpdate, VehicleUpdate
from porter.models.common import Actor
from porter.models.order import VehicleClass
from porter.models.vehicle import Vehicle, VehicleCreate, VehicleStatus

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


class VehicleStatusRequest(BaseModel):
    status: VehicleStatus
    location: LocationUpdate | None = None


class VehicleDriverRequest(BaseModel):
    driver_id: str = Field(min_length=1, validation_alias=AliasChoices("driverId", "driver_id"))


class VehiclePage(BaseModel):
    vehicles: list[Vehicle]
    total: int
    current_page: int
    total_pages: int


@router.post("", response_model=Vehicle, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    payload: VehicleCreate,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> Vehicle:
    """Register a vehicle; registration numbers are unique after normalisation."""
    return await services.fleet.create_vehicle(payload)


@router.get("", response_model=VehiclePage)
async def list_vehicles(
    vehicle_status: VehicleStatus | None = Query(default=None, alias="status"),
    vehicle_type: VehicleClass | None = Query(default=None, alias="type"),
    pagination: Pagination = Depends(),
    _: Actor = Depends(get_current_actor),
    services: DispatchServices = Depends(get_services),
) -> VehiclePage:
    vehicles = await services.fleet.list_vehicles(status=vehicle_status, type=vehicle_type)
    page = pagination.apply(vehicles)
    return VehiclePage(vehicles=page.pop("items"), **page)


@router.get("/stats/overview")
async def vehicle_overview(
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> dict[str, Any]:
    return await services.fleet.vehicle_overview()


@router.get("/map/locations", response_model=list[Vehicle])
async def vehicle_locations(
    _: Actor = Depends(get_current_actor),
    services: DispatchServices = Depends(get_services),
) -> list[Vehicle]:
    """Vehicles in service with a reported position, for the live map."""
    return await services.fleet.vehicle_map()


@router.get("/{vehicle_id}", response_model=Vehicle)
async def get_vehicle(
    vehicle_id: str,
    _: Actor = Depends(get_current_actor),
    services: DispatchServices = Depends(get_services),
) -> Vehicle:
    """Look a vehicle up by id, code or (partial) registration number."""
    return await services.resolver.require_vehicle(vehicle_id)


@router.patch("/{vehicle_id}", response_model=Vehicle)
async def update_vehicle(
    vehicle_id: str,
    changes: VehicleUpdate,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> Vehicle:
    return await services.fleet.update_vehicle(vehicle_id, changes)


@router.patch("/{vehicle_id}/status", response_model=Vehicle)
async def update_vehicle_status(
    vehicle_id: str,
    request: VehicleStatusRequest,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> Vehicle:
    return await services.fleet.set_vehicle_status(vehicle_id, request.status, request.location)


@router.patch("/{vehicle_id}/location", response_model=Vehicle)
async def update_vehicle_location(
    vehicle_id: str,
    location: LocationUpdate,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> Vehicle:
    return await services.fleet.set_vehicle_location(vehicle_id, location)


@router.patch("/{vehicle_id}/assign-driver", response_model=Vehicle)
async def assign_driver(
    vehicle_id: str,
    request: VehicleDriverRequest,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> Vehicle:
    return await services.fleet.assign_driver_to_vehicle(vehicle_id, request.driver_id)


@router.delete("/{vehicle_id}", response_model=Vehicle)
async def delete_vehicle(
    vehicle_id: str,
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> Vehicle:
    return await services.fleet.delete_vehicle(vehicle_id)
