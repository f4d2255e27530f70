"""Driver models."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, EmailStr, Field, field_validator

from porter.models.common import Coordinates


class DriverStatus(str, Enum):
    """Driver status states."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    BUSY = "busy"
    OFFLINE = "offline"


class PersonalInfo(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = ""
    email: EmailStr
    phone: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("phone")
    @classmethod
    def strip_phone(cls, v: str) -> str:
        return v.strip()


class LicenseInfo(BaseModel):
    number: str = ""
    type: str | None = None
    issue_date: date | None = None
    expiry_date: date | None = None


class DriverLocation(BaseModel):
    """Last reported driver position."""

    coordinates: Coordinates
    address: str | None = None
    last_updated: datetime = Field(default_factory=datetime.utcnow)


class Performance(BaseModel):
    """Counters maintained by the job-completion path."""

    completed_jobs: int = 0
    cancelled_jobs: int = 0
    average_rating: float = Field(default=0.0, ge=0, le=5)
    rating_count: int = 0
    total_distance: float = 0.0

    def apply_rating(self, rating: float) -> None:
        """Fold one rating into the running mean."""
        total = self.average_rating * self.rating_count + rating
        self.rating_count += 1
        self.average_rating = total / self.rating_count

    def record_completion(self, distance: float = 0.0) -> None:
        self.completed_jobs += 1
        self.total_distance += distance


class Driver(BaseModel):
    """Driver profile document."""

    id: UUID = Field(default_factory=uuid4)
    driver_code: str
    user_id: str | None = None
    personal_info: PersonalInfo
    license: LicenseInfo = Field(default_factory=LicenseInfo)
    status: DriverStatus = DriverStatus.ACTIVE
    current_location: DriverLocation | None = None
    assigned_vehicle: UUID | None = None
    current_order: UUID | None = None
    performance: Performance = Field(default_factory=Performance)
    notes: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.personal_info.first_name} {self.personal_info.last_name}".strip()


class DriverCreate(BaseModel):
    """Admin payload for registering a driver."""

    personal_info: PersonalInfo
    license: LicenseInfo = Field(default_factory=LicenseInfo)
    user_id: str | None = None
    assigned_vehicle: UUID | None = None
    notes: str | None = None
