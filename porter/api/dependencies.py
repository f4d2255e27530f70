"""Request dependencies: the authenticated actor, services and pagination."""

from typing import Any, Callable, Sequence

from fastapi import Depends, Header, Query, Request

from porter.config import get_settings
from porter.core.assignment import AssignmentCoordinator
from porter.core.fleet import FleetService
from porter.core.identifiers import IdentifierResolver
from porter.core.lifecycle import OrderLifecycleEngine
from porter.core.notifications import Broadcaster, Notifier
from porter.core.reconciliation import EntitySync
from porter.exceptions import ForbiddenError, UnauthenticatedError
from porter.models.common import Actor, ActorRole
from porter.state.manager import StateManager
from porter.state.store import Stores


class DispatchServices:
    """Everything the routes need, built once at startup and shared by reference."""

    def __init__(self, state: StateManager, broadcaster: Broadcaster):
        self.state = state
        self.stores = Stores(state)
        self.notifier = Notifier(broadcaster)
        self.resolver = IdentifierResolver(self.stores)
        self.sync = EntitySync(self.stores)

        wiring = (self.stores, self.notifier, self.resolver, self.sync)
        self.lifecycle = OrderLifecycleEngine(*wiring)
        self.assignment = AssignmentCoordinator(*wiring)
        self.fleet = FleetService(*wiring)


def get_services(request: Request) -> DispatchServices:
    return request.app.state.services


async def get_current_actor(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
    x_user_name: str | None = Header(default=None),
) -> Actor:
    """
    Build the actor from the identity headers set by the upstream gateway.

    Authentication itself happens before requests reach this service; a
    request without identity headers never got through it.
    """
    if not x_user_id or not x_user_role:
        raise UnauthenticatedError("Missing X-User-Id or X-User-Role header")

    try:
        role = ActorRole(x_user_role.strip().lower())
    except ValueError:
        raise UnauthenticatedError(f"Unknown role '{x_user_role}'")

    return Actor(user_id=x_user_id, role=role, email=x_user_email, name=x_user_name)


def require_role(*roles: ActorRole) -> Callable[..., Any]:
    """Dependency factory that admits only the given roles."""

    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            allowed = ", ".join(role.value for role in roles)
            raise ForbiddenError(f"This action requires one of: {allowed}")
        return actor

    return dependency


require_admin = require_role(ActorRole.ADMIN)
require_driver = require_role(ActorRole.DRIVER)


class Pagination:
    def __init__(
        self,
        page: int = Query(default=1, ge=1),
        limit: int | None = Query(default=None, ge=1),
    ):
        settings = get_settings()
        self.page = page
        self.limit = min(limit or settings.default_page_size, settings.max_page_size)

    def apply(self, items: Sequence[Any]) -> dict[str, Any]:
        """Slice ``items`` and describe the page."""
        total = len(items)
        start = (self.page - 1) * self.limit
        return {
            "items": list(items[start : start + self.limit]),
            "total": total,
            "current_page": self.page,
            "total_pages": (total + self.limit - 1) // self.limit,
        }
