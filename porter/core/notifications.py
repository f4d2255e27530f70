"""Real-time notification contract."""

from typing import Any, Protocol
from uuid import UUID

from pydantic import BaseModel

from porter.utils.logging import get_logger

logger = get_logger(__name__)

FLEET_CHANNEL = "fleet-updates"


def order_channel(order_id: UUID | str) -> str:
    return f"order-{order_id}"


def driver_channel(user_id: str) -> str:
    return f"driver-{user_id}"


class Broadcaster(Protocol):
    """Anything that can fan a payload out to the subscribers of a channel."""

    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        ...


class NullBroadcaster:
    """Broadcaster used when nobody listens (scripts, one-off jobs)."""

    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        logger.debug("notification_dropped", channel=channel, event_name=event)


class Notifier:
    """
    Publishes entity snapshots after a mutation has been written.

    Publishing is strictly after the fact: a failing broadcaster is logged
    and otherwise ignored so the caller of the mutation never sees it.
    """

    def __init__(self, broadcaster: Broadcaster):
        self.broadcaster = broadcaster

    async def emit(self, channel: str, event: str, payload: BaseModel | dict[str, Any]) -> None:
        data = payload.model_dump(mode="json") if isinstance(payload, BaseModel) else payload
        try:
            await self.broadcaster.publish(channel, event, data)
        except Exception as e:
            logger.warning(
                "notification_failed",
                channel=channel,
                event_name=event,
                error=str(e),
            )

    async def fleet(self, event: str, payload: BaseModel | dict[str, Any]) -> None:
        await self.emit(FLEET_CHANNEL, event, payload)

    async def order_changed(
        self,
        order: BaseModel,
        fleet_event: str,
        order_id: UUID | str,
        driver_user_id: str | None = None,
        driver_event: str | None = None,
    ) -> None:
        """
        Standard fan-out for an order mutation: ``order-updated`` on the
        order's own channel, ``fleet_event`` fleet-wide and, when given,
        ``driver_event`` on the driver's personal channel.
        """
        await self.emit(order_channel(order_id), "order-updated", order)
        await self.fleet(fleet_event, order)
        if driver_user_id and driver_event:
            await self.emit(driver_channel(driver_user_id), driver_event, order)
