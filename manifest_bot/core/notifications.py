"""Routing of outbound messages to the channel a user talks on."""

from __future__ import annotations

from typing import Sequence

import structlog

from .events import Renderable
from .interfaces import NotificationChannel, UnitOfWorkFactory, channel_for

logger = structlog.get_logger()


class NotificationDispatcher:
    """
    Sends a message to every channel identity of a user.

    Delivery is fire-and-forget: failures are logged and reported through the
    return value, never raised.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory, channels: Sequence[NotificationChannel]):
        self.uow_factory = uow_factory
        self.channels = list(channels)

    async def notify(self, user_id: int, message: Renderable) -> bool:
        """Return True when at least one channel accepted the message."""
        async with self.uow_factory() as uow:
            user = await uow.users.get(user_id)
            identities = user.identities() if user is not None else []

        if user is None:
            logger.warning("notification_user_missing", user_id=user_id)
            return False

        delivered = False
        for identity in identities:
            channel = channel_for(self.channels, identity)
            if channel is None:
                logger.warning("notification_no_channel", user_id=user_id, identity=identity.key)
                continue
            try:
                await channel.send(identity, message)
            except Exception as exc:
                logger.error(
                    "notification_failed",
                    user_id=user_id,
                    identity=identity.key,
                    error=str(exc),
                )
                continue
            delivered = True
            logger.info("notification_sent", user_id=user_id, identity=identity.key)
        return delivered

    async def notify_admins(self, message: Renderable) -> int:
        """Send ``message`` to every admin; returns the number reached."""
        async with self.uow_factory() as uow:
            admin_ids = [admin.id for admin in await uow.users.list_admins()]
        if not admin_ids:
            logger.warning("no_admins_to_notify")
        reached = 0
        for admin_id in admin_ids:
            if await self.notify(admin_id, message):
                reached += 1
        return reached
