"""Document stores for orders, drivers and vehicles."""

from datetime import datetime
from typing import Any, Callable, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel

from porter.config import get_settings
from porter.exceptions import ConflictError, NotFoundError
from porter.models.driver import Driver
from porter.models.order import Order
from porter.models.vehicle import Vehicle
from porter.state.manager import StateManager
from porter.utils.codes import (
    DRIVER_CODE_PREFIX,
    ORDER_CODE_PREFIX,
    VEHICLE_CODE_PREFIX,
    generate_code,
)
from porter.utils.logging import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class DocumentStore(Generic[ModelT]):
    """
    Keyed collection of JSON documents.

    Each document lives at ``<prefix>:<collection>:<id>``; the set
    ``<prefix>:<collection>`` indexes the ids for scans and the hash
    ``<prefix>:<collection>:codes`` maps human-facing codes to ids.
    """

    collection: str
    model: type[ModelT]
    code_field: str
    code_prefix: str

    def __init__(self, state: StateManager):
        self.state = state
        self.settings = get_settings()

    def _doc_key(self, entity_id: UUID | str) -> str:
        return self.state.key(self.collection, entity_id)

    @property
    def _index_key(self) -> str:
        return self.state.key(self.collection)

    @property
    def _codes_key(self) -> str:
        return self.state.key(self.collection, "codes")

    def _dump(self, doc: ModelT) -> dict[str, Any]:
        return doc.model_dump(mode="json")

    async def get(self, entity_id: UUID | str) -> ModelT | None:
        """Point read by canonical id."""
        data = await self.state.get(self._doc_key(entity_id))
        if not data:
            return None
        return self.model.model_validate(data)

    async def require(self, entity_id: UUID | str) -> ModelT:
        doc = await self.get(entity_id)
        if doc is None:
            raise NotFoundError(self.collection.rstrip("s"), str(entity_id))
        return doc

    async def get_by_code(self, code: str) -> ModelT | None:
        """Exact match on the human-facing code."""
        entity_id = await self.state.hget(self._codes_key, code)
        if entity_id is None:
            return None
        return await self.get(entity_id)

    async def reserve_code(self, entity_id: UUID) -> str:
        """Generate a code that no other document of this collection holds."""
        for _ in range(self.settings.code_generation_attempts):
            code = generate_code(self.code_prefix)
            if await self.state.hsetnx(self._codes_key, code, str(entity_id)):
                return code
            logger.debug("code_collision", collection=self.collection, code=code)

        raise ConflictError(
            f"Could not generate a unique {self.collection} code",
            details={"collection": self.collection},
        )

    async def insert(self, doc: ModelT) -> ModelT:
        """Store a new document whose code has already been reserved."""
        await self.state.set(self._doc_key(doc.id), self._dump(doc))
        await self.state.sadd(self._index_key, str(doc.id))
        logger.debug("document_inserted", collection=self.collection, id=str(doc.id))
        return doc

    async def modify(
        self,
        entity_id: UUID | str,
        mutate: Callable[[ModelT], None],
    ) -> ModelT:
        """
        Apply ``mutate`` to the freshest copy of a document and write it back
        atomically. ``mutate`` may raise to abort; it may run more than once
        when a concurrent writer gets in first.
        """
        result: list[ModelT] = []

        def update(current: Any) -> Any:
            if not current:
                raise NotFoundError(self.collection.rstrip("s"), str(entity_id))
            doc = self.model.model_validate(current)
            mutate(doc)
            doc.updated_at = datetime.utcnow()
            result[:] = [doc]
            return self._dump(doc)

        await self.state.compare_and_set(self._doc_key(entity_id), update)
        return result[0]

    async def all(self) -> list[ModelT]:
        ids = sorted(await self.state.smembers(self._index_key))
        values = await self.state.mget([self._doc_key(entity_id) for entity_id in ids])
        docs = [self.model.model_validate(value) for value in values if value]
        return sorted(docs, key=lambda doc: doc.created_at)

    async def find(self, predicate: Callable[[ModelT], bool]) -> list[ModelT]:
        """Filtered scan, oldest first."""
        return [doc for doc in await self.all() if predicate(doc)]

    async def find_one(self, predicate: Callable[[ModelT], bool]) -> ModelT | None:
        for doc in await self.all():
            if predicate(doc):
                return doc
        return None

    async def delete(self, entity_id: UUID | str) -> None:
        doc = await self.get(entity_id)
        if doc is None:
            return
        await self.state.delete(self._doc_key(entity_id))
        await self.state.srem(self._index_key, str(entity_id))
        await self.state.hdel(self._codes_key, getattr(doc, self.code_field))


class OrderStore(DocumentStore[Order]):
    collection = "orders"
    model = Order
    code_field = "order_code"
    code_prefix = ORDER_CODE_PREFIX


class DriverStore(DocumentStore[Driver]):
    collection = "drivers"
    model = Driver
    code_field = "driver_code"
    code_prefix = DRIVER_CODE_PREFIX


class VehicleStore(DocumentStore[Vehicle]):
    collection = "vehicles"
    model = Vehicle
    code_field = "vehicle_code"
    code_prefix = VEHICLE_CODE_PREFIX

    @property
    def _registrations_key(self) -> str:
        return self.state.key(self.collection, "registrations")

    async def reserve_registration(self, registration: str, vehicle_id: UUID) -> None:
        """Claim a normalised registration number or fail with a conflict."""
        if not await self.state.hsetnx(self._registrations_key, registration, str(vehicle_id)):
            raise ConflictError(
                "Vehicle with this registration number already exists",
                details={"registration_number": registration},
            )

    async def delete(self, entity_id: UUID | str) -> None:
        doc = await self.get(entity_id)
        if doc is not None:
            await self.state.hdel(self._registrations_key, doc.normalized_registration)
        await super().delete(entity_id)


class Stores:
    """The three entity stores sharing one state manager."""

    def __init__(self, state: StateManager):
        self.state = state
        self.orders = OrderStore(state)
        self.drivers = DriverStore(state)
        self.vehicles = VehicleStore(state)
