"""Vehicle models."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from porter.models.driver import DriverLocation
from porter.models.order import VehicleClass
from porter.utils.codes import normalize_registration


class VehicleStatus(str, Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    MAINTENANCE = "maintenance"
    OFFLINE = "offline"


class FuelType(str, Enum):
    DIESEL = "diesel"
    PETROL = "petrol"
    ELECTRIC = "electric"
    HYBRID = "hybrid"


class Capacity(BaseModel):
    weight: float = Field(gt=0)
    volume: float = Field(gt=0)


class Vehicle(BaseModel):
    """Fleet vehicle document."""

    id: UUID = Field(default_factory=uuid4)
    vehicle_code: str
    registration_number: str
    type: VehicleClass
    make: str
    model: str
    year: int = Field(ge=1950, le=2100)
    capacity: Capacity
    fuel_type: FuelType = FuelType.DIESEL
    status: VehicleStatus = VehicleStatus.AVAILABLE
    current_location: DriverLocation | None = None
    assigned_driver: UUID | None = None
    current_order: UUID | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def normalized_registration(self) -> str:
        return normalize_registration(self.registration_number)


class VehicleCreate(BaseModel):
    """Admin payload for adding a vehicle to the fleet."""

    registration_number: str = Field(min_length=1)
    type: VehicleClass
    make: str
    model: str
    year: int = Field(ge=1950, le=2100)
    capacity: Capacity
    fuel_type: FuelType = FuelType.DIESEL

    @field_validator("registration_number")
    @classmethod
    def strip_registration(cls, v: str) -> str:
        return v.strip()
