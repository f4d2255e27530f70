"""Base class with the collaborators shared by the dispatch services."""

from uuid import UUID

from porter.config import get_settings
from porter.core.identifiers import IdentifierResolver
from porter.core.notifications import Notifier
from porter.core.reconciliation import EntitySync
from porter.exceptions import ConflictError
from porter.models.common import Actor
from porter.models.driver import Driver
from porter.models.order import OrderStatus
from porter.models.vehicle import Vehicle
from porter.state.store import Stores
from porter.utils.codes import normalize_email
from porter.utils.logging import DispatchLogger

# Legal next states when transitions are enforced strictly. Cancellation is
# reachable from every non-terminal state.
TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.CONFIRMED, OrderStatus.ASSIGNED, OrderStatus.CANCELLED}
    ),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.ASSIGNED, OrderStatus.CANCELLED}),
    OrderStatus.ASSIGNED: frozenset(
        {OrderStatus.CONFIRMED, OrderStatus.PICKED_UP, OrderStatus.CANCELLED}
    ),
    OrderStatus.PICKED_UP: frozenset(
        {OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED, OrderStatus.CANCELLED}
    ),
    OrderStatus.IN_TRANSIT: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def check_transition(current: OrderStatus, target: OrderStatus, strict: bool = False) -> None:
    """
    Terminal orders never move again. Everything else is allowed unless
    ``strict`` is set, in which case only the steps in ``TRANSITIONS`` are.
    """
    if current.is_terminal:
        raise ConflictError(
            f"Order is already {current.value}",
            details={"status": current.value, "requested": target.value},
        )
    if strict and target != current and target not in TRANSITIONS[current]:
        raise ConflictError(
            f"Cannot move order from {current.value} to {target.value}",
            details={"status": current.value, "requested": target.value},
        )


class DispatchService:
    """Common wiring for the lifecycle engine and the assignment coordinator."""

    component = "dispatch"

    def __init__(
        self,
        stores: Stores,
        notifier: Notifier,
        resolver: IdentifierResolver | None = None,
        sync: EntitySync | None = None,
    ):
        self.stores = stores
        self.notifier = notifier
        self.resolver = resolver or IdentifierResolver(stores)
        self.sync = sync or EntitySync(stores)
        self.settings = get_settings()
        self.log = DispatchLogger(self.component)

    async def driver_for_actor(self, actor: Actor) -> Driver | None:
        """Find the driver profile of an authenticated user (user id, then email)."""
        driver = await self.stores.drivers.find_one(lambda d: d.user_id == actor.user_id)
        if driver is None and actor.email:
            email = normalize_email(actor.email)
            driver = await self.stores.drivers.find_one(
                lambda d: normalize_email(d.personal_info.email) == email
            )
        return driver

    async def ensure_unbound(
        self,
        kind: str,
        code: str,
        current_order: UUID | None,
        order_id: UUID,
    ) -> None:
        """Reject a driver or vehicle that is still working another live order."""
        if current_order is None or current_order == order_id:
            return

        other = await self.stores.orders.get(current_order)
        if other is not None and other.is_active:
            raise ConflictError(
                f"{kind.capitalize()} {code} is already on order {other.order_code}",
                details={kind: code, "order": other.order_code},
            )

    async def claim(self, kind: str, entity: Driver | Vehicle, order_id: UUID) -> Driver | Vehicle | None:
        """
        Bind a driver or vehicle to ``order_id`` and mark it busy.

        The write only goes through while the entity still points where it
        did when ``entity`` was read, so of two concurrent claims on one
        driver exactly one wins. ``None`` means the write could not be made
        and was queued for reconciliation.
        """
        code = entity.driver_code if kind == "driver" else entity.vehicle_code
        await self.ensure_unbound(kind, code, entity.current_order, order_id)

        expected = str(entity.current_order) if entity.current_order else None
        return await self._sync(kind)(entity.id, "occupy", order_id, expected=expected)

    async def unclaim(self, kind: str, entity: Driver | Vehicle, order_id: UUID) -> None:
        """Undo ``claim`` after the order write it guarded did not happen."""
        previous = str(entity.current_order) if entity.current_order else None
        await self._sync(kind)(entity.id, "restore", order_id, status=entity.status.value, previous=previous)

    def _sync(self, kind: str):
        return self.sync.driver if kind == "driver" else self.sync.vehicle
