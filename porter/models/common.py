"""Shared geographic and actor models."""

from enum import Enum

from pydantic import BaseModel, Field


class Coordinates(BaseModel):
    """Geographic point."""

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class Location(BaseModel):
    """Street address pinned to coordinates."""

    address: str = Field(min_length=1)
    coordinates: Coordinates


class ActorRole(str, Enum):
    """Roles an authenticated caller can hold."""

    CUSTOMER = "customer"
    DRIVER = "driver"
    ADMIN = "admin"


class Actor(BaseModel):
    """Already-authenticated caller of a core operation."""

    user_id: str
    role: ActorRole
    email: str | None = None
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN
