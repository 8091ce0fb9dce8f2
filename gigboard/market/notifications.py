"""
Notification dispatch for marketplace events.

Every ``notify_*`` call schedules delivery on the running event loop and
returns immediately. Delivery errors are logged from the task's done-callback
and never reach the caller; offline recipients are dropped.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Protocol

from gigboard.logging_config import get_logger
from gigboard.market.bids.models import DEFAULT_REJECTION_REASON
from gigboard.market.common import utc_now

logger = get_logger("gigboard.notifications")


class NotificationType(str, Enum):
    HIRE = "hire"
    BID_RECEIVED = "bid_received"
    BID_REJECTED = "bid_rejected"


@dataclass
class Notification:
    """A message pushed to one user."""

    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


class NotificationTransport(Protocol):
    """Delivers a payload to a user's live connections."""

    async def send_to_user(self, user_id: str, payload: dict[str, Any]) -> bool:
        """Returns False when the user has no live connection."""
        ...

    def is_online(self, user_id: str) -> bool:
        ...


def _amount(value) -> float:
    return float(value) if isinstance(value, Decimal) else value


class NotificationDispatcher:
    """Fire-and-forget fan-out of marketplace notifications."""

    def __init__(self, transport: Optional[NotificationTransport] = None):
        self._transport = transport
        self._pending: set[asyncio.Task] = set()

    def notify_hired(self, freelancer_id: str, gig_title: str, client_name: str, amount) -> None:
        self._dispatch(
            freelancer_id,
            Notification(
                type=NotificationType.HIRE,
                title="Congratulations! You've been hired!",
                message=f'You have been hired for "{gig_title}"!',
                data={
                    "gig_title": gig_title,
                    "client_name": client_name,
                    "amount": _amount(amount),
                    "action": "hired",
                },
            ),
        )

    def notify_rejected(self, freelancer_id: str, gig_title: str, reason: Optional[str] = None) -> None:
        self._dispatch(
            freelancer_id,
            Notification(
                type=NotificationType.BID_REJECTED,
                title="Bid Update",
                message=f'Your bid for "{gig_title}" was not selected',
                data={
                    "gig_title": gig_title,
                    "reason": reason or DEFAULT_REJECTION_REASON,
                    "action": "bid_rejected",
                },
            ),
        )

    def notify_bid_received(self, gig_owner_id: str, gig_title: str, freelancer_name: str, amount) -> None:
        self._dispatch(
            gig_owner_id,
            Notification(
                type=NotificationType.BID_RECEIVED,
                title="New Bid Received",
                message=f'{freelancer_name} placed a bid of ${_amount(amount)} on "{gig_title}"',
                data={
                    "gig_title": gig_title,
                    "freelancer_name": freelancer_name,
                    "amount": _amount(amount),
                    "action": "bid_received",
                },
            ),
        )

    def is_online(self, user_id: str) -> bool:
        return bool(self._transport and self._transport.is_online(user_id))

    async def drain(self) -> None:
        """Wait for in-flight deliveries (used on shutdown and in tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _dispatch(self, user_id: str, notification: Notification) -> None:
        if self._transport is None:
            logger.debug(f"No transport configured, dropping {notification.type.value} for {user_id}")
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, dropping {notification.type.value} for {user_id}")
            return

        task = loop.create_task(self._deliver(user_id, notification))
        self._pending.add(task)
        task.add_done_callback(lambda t: self._on_done(t, user_id, notification))

    async def _deliver(self, user_id: str, notification: Notification) -> None:
        payload = {"event": "notification", "notification": notification.to_dict()}
        delivered = await self._transport.send_to_user(user_id, payload)
        if delivered:
            logger.info(f"Notification sent | user={user_id} | type={notification.type.value}")
        else:
            logger.debug(f"Notification dropped, user offline | user={user_id} | type={notification.type.value}")

    def _on_done(self, task: asyncio.Task, user_id: str, notification: Notification) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(
                f"Notification delivery failed | user={user_id} | "
                f"type={notification.type.value} | error={exc}"
            )
