"""Order-related data models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, EmailStr, Field

from porter.models.common import Location


class OrderStatus(str, Enum):
    """Order status progression."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    ASSIGNED = "assigned"
    PICKED_UP = "picked-up"
    IN_TRANSIT = "in-transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


ACTIVE_STATUSES = frozenset(
    {
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.ASSIGNED,
        OrderStatus.PICKED_UP,
        OrderStatus.IN_TRANSIT,
    }
)


class VehicleClass(str, Enum):
    """Vehicle classes a customer can request."""

    MINI_TRUCK = "mini-truck"
    PICKUP = "pickup"
    THREE_WHEELER = "3-wheeler"
    TRUCK = "truck"
    VAN = "van"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    WALLET = "wallet"


class CustomerContact(BaseModel):
    """Customer contact captured when the order is placed."""

    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: EmailStr | None = None
    address: str | None = None


class PackageDimensions(BaseModel):
    length: float | None = Field(default=None, ge=0)
    width: float | None = Field(default=None, ge=0)
    height: float | None = Field(default=None, ge=0)


class PackageDetails(BaseModel):
    """What is being moved."""

    weight: float = Field(gt=0)
    dimensions: PackageDimensions | None = None
    description: str | None = None
    special_instructions: str | None = None


class Pricing(BaseModel):
    """Price quoted at booking time."""

    base_fare: Decimal = Field(ge=0)
    distance: float = Field(ge=0)
    total_amount: Decimal = Field(ge=0)
    currency: str = "USD"


class OrderRating(BaseModel):
    """Post-delivery feedback."""

    customer_rating: int | None = Field(default=None, ge=1, le=5)
    driver_rating: int | None = Field(default=None, ge=1, le=5)
    feedback: str | None = None


class TimelineEntry(BaseModel):
    """One status change in an order's history."""

    status: OrderStatus
    location: str | None = None
    notes: str | None = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class Order(BaseModel):
    """Complete order document."""

    id: UUID = Field(default_factory=uuid4)
    order_code: str
    customer_user_id: str | None = None
    customer: CustomerContact
    pickup_location: Location
    delivery_location: Location
    vehicle_type: VehicleClass
    package_details: PackageDetails
    pricing: Pricing
    status: OrderStatus = OrderStatus.PENDING

    # Assignments
    assigned_driver: UUID | None = None
    assigned_vehicle: UUID | None = None

    # History
    timeline: list[TimelineEntry] = Field(default_factory=list)

    # Timing
    estimated_delivery_time: datetime | None = None
    actual_delivery_time: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Payment & feedback
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: PaymentMethod = PaymentMethod.CARD
    rating: OrderRating | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def record(
        self,
        status: OrderStatus,
        notes: str | None = None,
        location: str | None = None,
    ) -> TimelineEntry:
        """
        Move the order to ``status`` and append the matching timeline entry.

        Keeps the last timeline entry in step with ``status`` and stamps
        ``actual_delivery_time`` exactly when the order becomes delivered.
        """
        entry = TimelineEntry(
            status=status,
            location=location or self.pickup_location.address,
            notes=notes,
        )
        self.status = status
        self.timeline.append(entry)

        if status == OrderStatus.DELIVERED:
            self.actual_delivery_time = entry.timestamp
        else:
            self.actual_delivery_time = None

        return entry


class OrderCreate(BaseModel):
    """Payload a customer submits to book a delivery."""

    customer: CustomerContact
    pickup_location: Location
    delivery_location: Location
    vehicle_type: VehicleClass
    package_details: PackageDetails
    pricing: Pricing
    payment_method: PaymentMethod = PaymentMethod.CARD
    estimated_delivery_time: datetime | None = None
