"""Data models for the dispatch core."""

from porter.models.common import Actor, ActorRole, Coordinates, Location
from porter.models.driver import (
    Driver,
    DriverCreate,
    DriverLocation,
    DriverStatus,
    LicenseInfo,
    Performance,
    PersonalInfo,
)
from porter.models.order import (
    ACTIVE_STATUSES,
    CustomerContact,
    Order,
    OrderCreate,
    OrderRating,
    OrderStatus,
    PackageDetails,
    PaymentMethod,
    PaymentStatus,
    Pricing,
    TimelineEntry,
    VehicleClass,
)
from porter.models.vehicle import Capacity, FuelType, Vehicle, VehicleCreate, VehicleStatus

__all__ = [
    # Common
    "Actor",
    "ActorRole",
    "Coordinates",
    "Location",
    # Driver
    "Driver",
    "DriverCreate",
    "DriverLocation",
    "DriverStatus",
    "LicenseInfo",
    "Performance",
    "PersonalInfo",
    # Order
    "ACTIVE_STATUSES",
    "CustomerContact",
    "Order",
    "OrderCreate",
    "OrderRating",
    "OrderStatus",
    "PackageDetails",
    "PaymentMethod",
    "PaymentStatus",
    "Pricing",
    "TimelineEntry",
    "VehicleClass",
    # Vehicle
    "Capacity",
    "FuelType",
    "Vehicle",
    "VehicleCreate",
    "VehicleStatus",
]
