"""
Identifier classification and resolution.

Operators type order codes, driver emails, phone fragments or half a number
plate interchangeably. ``classify`` turns such a token into an ordered chain
of tagged identifiers; ``IdentifierResolver`` walks the chain against the
entity stores and returns the first entity that matches.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union
from uuid import UUID

from porter.exceptions import NotFoundError
from porter.models.driver import Driver
from porter.models.order import Order
from porter.models.vehicle import Vehicle
from porter.state.store import Stores
from porter.utils.codes import (
    DRIVER_CODE_PREFIX,
    digits_only,
    normalize_email,
    normalize_registration,
)
from porter.utils.logging import get_logger

logger = get_logger(__name__)

MIN_PHONE_DIGITS = 6


class EntityKind(str, Enum):
    ORDER = "order"
    DRIVER = "driver"
    VEHICLE = "vehicle"


@dataclass(frozen=True)
class CanonicalId:
    value: UUID


@dataclass(frozen=True)
class Code:
    value: str


@dataclass(frozen=True)
class Email:
    value: str


@dataclass(frozen=True)
class Phone:
    digits: str


@dataclass(frozen=True)
class Registration:
    value: str


@dataclass(frozen=True)
class Partial:
    value: str


Identifier = Union[CanonicalId, Code, Email, Phone, Registration, Partial]


def parse_canonical_id(token: str) -> UUID | None:
    try:
        return UUID(token)
    except (ValueError, AttributeError, TypeError):
        return None


def classify(token: str, kind: EntityKind) -> list[Identifier]:
    """Return the fallback chain to try for ``token``, most specific first."""
    token = (token or "").strip()
    if not token:
        return []

    chain: list[Identifier] = []

    canonical = parse_canonical_id(token)
    if canonical is not None:
        chain.append(CanonicalId(canonical))

    if kind == EntityKind.ORDER:
        chain.extend([Code(token), Partial(token)])

    elif kind == EntityKind.DRIVER:
        if token.upper().startswith(f"{DRIVER_CODE_PREFIX}-"):
            chain.append(Code(token))
        elif "@" in token:
            chain.append(Email(normalize_email(token)))
        else:
            digits = digits_only(token)
            if len(digits) >= MIN_PHONE_DIGITS:
                chain.append(Phone(digits))
        if Code(token) not in chain:
            chain.append(Code(token))

    elif kind == EntityKind.VEHICLE:
        chain.extend([Code(token), Registration(normalize_registration(token)), Partial(token)])

    return chain


class IdentifierResolver:
    """Read-only lookups from loose tokens to canonical entities."""

    def __init__(self, stores: Stores):
        self.stores = stores

    async def resolve_order(self, token: str) -> Order | None:
        for identifier in classify(token, EntityKind.ORDER):
            order = await self._match_order(identifier)
            if order is not None:
                return order
        return None

    async def resolve_driver(self, token: str) -> Driver | None:
        for identifier in classify(token, EntityKind.DRIVER):
            driver = await self._match_driver(identifier)
            if driver is not None:
                return driver
        return None

    async def resolve_vehicle(self, token: str) -> Vehicle | None:
        for identifier in classify(token, EntityKind.VEHICLE):
            vehicle = await self._match_vehicle(identifier)
            if vehicle is not None:
                return vehicle
        return None

    async def require_order(self, token: str, field: str | None = None) -> Order:
        order = await self.resolve_order(token)
        if order is None:
            raise NotFoundError(EntityKind.ORDER.value, token, field=field)
        return order

    async def require_driver(self, token: str, field: str | None = None) -> Driver:
        driver = await self.resolve_driver(token)
        if driver is None:
            raise NotFoundError(EntityKind.DRIVER.value, token, field=field)
        return driver

    async def require_vehicle(self, token: str, field: str | None = None) -> Vehicle:
        vehicle = await self.resolve_vehicle(token)
        if vehicle is None:
            raise NotFoundError(EntityKind.VEHICLE.value, token, field=field)
        return vehicle

    async def _match_order(self, identifier: Identifier) -> Order | None:
        orders = self.stores.orders

        if isinstance(identifier, CanonicalId):
            return await orders.get(identifier.value)
        if isinstance(identifier, Code):
            return await orders.get_by_code(identifier.value)
        if isinstance(identifier, Partial):
            prefix = identifier.value.upper()
            return await orders.find_one(lambda o: o.order_code.upper().startswith(prefix))

        raise TypeError(f"Unsupported order identifier: {identifier!r}")

    async def _match_driver(self, identifier: Identifier) -> Driver | None:
        drivers = self.stores.drivers

        if isinstance(identifier, CanonicalId):
            return await drivers.get(identifier.value)
        if isinstance(identifier, Code):
            return await drivers.get_by_code(identifier.value)
        if isinstance(identifier, Email):
            return await drivers.find_one(
                lambda d: normalize_email(d.personal_info.email) == identifier.value
            )
        if isinstance(identifier, Phone):
            return await drivers.find_one(
                lambda d: identifier.digits in digits_only(d.personal_info.phone)
            )

        raise TypeError(f"Unsupported driver identifier: {identifier!r}")

    async def _match_vehicle(self, identifier: Identifier) -> Vehicle | None:
        vehicles = self.stores.vehicles

        if isinstance(identifier, CanonicalId):
            return await vehicles.get(identifier.value)
        if isinstance(identifier, Code):
            return await vehicles.get_by_code(identifier.value)
        if isinstance(identifier, Registration):
            return await vehicles.find_one(
                lambda v: v.normalized_registration == identifier.value
            )
        if isinstance(identifier, Partial):
            needle = identifier.value.upper()
            return await vehicles.find_one(
                lambda v: needle in v.registration_number.upper()
                or v.vehicle_code.upper().startswith(needle)
            )

        raise TypeError(f"Unsupported vehicle identifier: {identifier!r}")
