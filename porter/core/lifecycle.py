"""Order lifecycle engine."""

from uuid import uuid4

from pydantic import BaseModel

from porter.core.base import DispatchService, check_transition
from porter.exceptions import ConflictError, ForbiddenError
from porter.models.common import Actor, ActorRole
from porter.models.driver import Driver
from porter.models.order import Order, OrderCreate, OrderRating, OrderStatus


class JobResult(BaseModel):
    """Outcome of a driver job action."""

    order: Order
    driver: Driver | None = None


class OrderLifecycleEngine(DispatchService):
    """
    Owns the order state machine.

    pending -> confirmed -> assigned -> picked-up -> in-transit -> delivered,
    with cancelled reachable from any non-terminal state.

    Every method resolves its order first, writes the order through an atomic
    read-modify-write, then applies driver/vehicle side effects best-effort
    and finally publishes the resulting snapshot.
    """

    component = "lifecycle"

    async def create(self, actor: Actor, payload: OrderCreate) -> Order:
        """Book a new order on behalf of a customer (or an admin)."""
        if actor.role not in (ActorRole.CUSTOMER, ActorRole.ADMIN):
            raise ForbiddenError("Only customers and admins can create orders")

        order_id = uuid4()
        order_code = await self.stores.orders.reserve_code(order_id)

        order = Order(
            id=order_id,
            order_code=order_code,
            customer_user_id=actor.user_id,
            **payload.model_dump(),
        )
        order.record(OrderStatus.PENDING, notes="Order created")
        await self.stores.orders.insert(order)

        self.log.log_transition(str(order.id), order.order_code, None, order.status.value)
        await self.notifier.fleet("order-created", order)
        return order

    async def transition(
        self,
        order_ref: str,
        status: OrderStatus,
        location: str | None = None,
        notes: str | None = None,
    ) -> Order:
        """Explicit status change requested by an operator."""
        order = await self.resolver.require_order(order_ref)
        previous = order.status

        def mutate(doc: Order) -> None:
            check_transition(doc.status, status, self.settings.strict_transitions)
            doc.record(status, notes=notes or f"Status updated to {status.value}", location=location)

        order = await self.stores.orders.modify(order.id, mutate)
        self.log.log_transition(str(order.id), order.order_code, previous.value, status.value)

        if status.is_terminal:
            await self._release(order)

        await self.notifier.order_changed(order, "order-status-changed", order.id)
        return order

    async def cancel(
        self,
        order_ref: str,
        reason: str | None = None,
        actor: Actor | None = None,
    ) -> Order:
        """Cancel a live order and free whoever was working it."""
        order = await self.resolver.require_order(order_ref)
        if actor is not None and not actor.is_admin and order.customer_user_id != actor.user_id:
            raise ForbiddenError("You can only cancel your own orders")

        previous = order.status

        def mutate(doc: Order) -> None:
            check_transition(doc.status, OrderStatus.CANCELLED)
            doc.record(OrderStatus.CANCELLED, notes=reason or "Order cancelled")

        order = await self.stores.orders.modify(order.id, mutate)
        self.log.log_transition(
            str(order.id), order.order_code, previous.value, order.status.value, reason=reason
        )

        await self._release(order)
        await self.notifier.order_changed(order, "order-cancelled", order.id)
        return order

    async def accept(self, order_ref: str, actor: Actor) -> JobResult:
        """A driver claims a pending order."""
        if actor.role != ActorRole.DRIVER:
            raise ForbiddenError("Only drivers can accept jobs")

        order = await self.resolver.require_order(order_ref)
        driver = await self.driver_for_actor(actor)
        if driver is None:
            raise ConflictError(
                "No driver profile exists for this user",
                details={"user_id": actor.user_id},
            )

        _ensure_open(order)

        # The driver is claimed first so one driver cannot win two orders at once.
        synced = await self.claim("driver", driver, order.id)

        def mutate(doc: Order) -> None:
            # Conditional write: only the first driver to see the order pending wins.
            _ensure_open(doc)
            doc.assigned_driver = driver.id
            doc.record(OrderStatus.ASSIGNED, notes=f"Accepted by driver {driver.driver_code}")

        try:
            order = await self.stores.orders.modify(order.id, mutate)
        except Exception:
            await self.unclaim("driver", driver, order.id)
            raise

        self.log.log_transition(
            str(order.id),
            order.order_code,
            OrderStatus.PENDING.value,
            order.status.value,
            driver_id=str(driver.id),
        )

        await self.notifier.order_changed(
            order,
            "order-assigned",
            order.id,
            driver_user_id=actor.user_id,
            driver_event="job-assigned",
        )
        return JobResult(order=order, driver=synced or driver)

    async def pickup(self, order_ref: str, actor: Actor) -> JobResult:
        """The assigned driver has collected the package."""
        order, driver = await self._owned_order(order_ref, actor)
        previous = order.status

        def mutate(doc: Order) -> None:
            self._check_owner(doc, driver)
            check_transition(doc.status, OrderStatus.PICKED_UP, self.settings.strict_transitions)
            doc.record(OrderStatus.PICKED_UP, notes=f"Picked up by driver {driver.driver_code}")

        order = await self.stores.orders.modify(order.id, mutate)
        self.log.log_transition(str(order.id), order.order_code, previous.value, order.status.value)

        await self.notifier.order_changed(
            order,
            "order-picked-up",
            order.id,
            driver_user_id=actor.user_id,
            driver_event="job-picked-up",
        )
        return JobResult(order=order, driver=driver)

    async def complete(self, order_ref: str, actor: Actor) -> JobResult:
        """The assigned driver has delivered the package."""
        order, driver = await self._owned_order(order_ref, actor)
        previous = order.status

        def mutate(doc: Order) -> None:
            self._check_owner(doc, driver)
            check_transition(doc.status, OrderStatus.DELIVERED, self.settings.strict_transitions)
            doc.record(OrderStatus.DELIVERED, notes=f"Delivered by driver {driver.driver_code}")

        order = await self.stores.orders.modify(order.id, mutate)
        self.log.log_transition(str(order.id), order.order_code, previous.value, order.status.value)

        synced = await self.sync.driver(
            driver.id, "complete", order.id, distance=order.pricing.distance
        )
        if order.assigned_vehicle is not None:
            await self.sync.vehicle(order.assigned_vehicle, "release", order.id)

        await self.notifier.order_changed(
            order,
            "order-delivered",
            order.id,
            driver_user_id=actor.user_id,
            driver_event="job-completed",
        )
        return JobResult(order=order, driver=synced or driver)

    async def rate(self, order_ref: str, actor: Actor, rating: OrderRating) -> JobResult:
        """Record customer feedback on a delivered order and fold it into the driver's mean."""
        order = await self.resolver.require_order(order_ref)
        if not actor.is_admin and order.customer_user_id != actor.user_id:
            raise ForbiddenError("You can only rate your own orders")

        def mutate(doc: Order) -> None:
            if doc.status != OrderStatus.DELIVERED:
                raise ConflictError(
                    "Only delivered orders can be rated",
                    details={"status": doc.status.value},
                )
            if doc.rating is not None:
                raise ConflictError("Order has already been rated")
            doc.rating = rating

        order = await self.stores.orders.modify(order.id, mutate)

        driver = None
        if rating.driver_rating is not None and order.assigned_driver is not None:
            driver = await self.sync.driver(
                order.assigned_driver, "rate", order.id, rating=rating.driver_rating
            )

        self.log.logger.info(
            "order_rated",
            order_id=str(order.id),
            driver_rating=rating.driver_rating,
            customer_rating=rating.customer_rating,
        )
        await self.notifier.order_changed(order, "order-rated", order.id)
        return JobResult(order=order, driver=driver)

    async def _owned_order(self, order_ref: str, actor: Actor) -> tuple[Order, Driver]:
        """Resolve an order and make sure the acting driver is the one assigned to it."""
        order = await self.resolver.require_order(order_ref)
        driver = await self.driver_for_actor(actor) if actor.role == ActorRole.DRIVER else None

        if driver is None:
            raise ForbiddenError("This order is not assigned to you")
        self._check_owner(order, driver)
        return order, driver

    @staticmethod
    def _check_owner(order: Order, driver: Driver) -> None:
        if order.assigned_driver is None or order.assigned_driver != driver.id:
            raise ForbiddenError(
                "This order is not assigned to you",
                details={"order": order.order_code},
            )

    async def _release(self, order: Order) -> None:
        """Free the driver and vehicle of an order that has just closed."""
        if order.assigned_driver is not None:
            await self.sync.driver(order.assigned_driver, "release", order.id)
        if order.assigned_vehicle is not None:
            await self.sync.vehicle(order.assigned_vehicle, "release", order.id)


def _ensure_open(order: Order) -> None:
    if order.status != OrderStatus.PENDING or order.assigned_driver is not None:
        raise ConflictError(
            "Order not available for acceptance",
            details={"order": order.order_code, "status": order.status.value},
        )
