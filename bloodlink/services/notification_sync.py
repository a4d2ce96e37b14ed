"""Notification sync protocol.

Every read mutation goes remote first, then publishes on the event bus, so a
failed call never produces a local "read" event. The unread count published
here always comes from the server; consumers treat any local arithmetic as a
placeholder until the next notification_count_updated.
"""

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from bloodlink.config import get_settings
from bloodlink.core.events import EventBus, EventName, get_event_bus
from bloodlink.core.exceptions import (
    MalformedPayload,
    NetworkError,
    RemoteMutationFailed,
    ServerError,
)
from bloodlink.integrations.notifications.base import NotificationStore
from bloodlink.schemas.notification import (
    DeviceType,
    Notification,
    NotificationPage,
    NotificationSettings,
    NotificationType,
)

logger = logging.getLogger(__name__)


class NotificationSyncService:
    """Coordinates remote notification state with in-process consumers.

    Owns no durable state. Background count refreshes triggered by push
    ingestion are tracked so drain()/aclose() can settle them.
    """

    def __init__(
        self,
        store: NotificationStore,
        bus: EventBus | None = None,
        page_size: int | None = None,
        default_title: str | None = None,
    ):
        settings = get_settings()
        self.store = store
        self.bus = bus or get_event_bus()
        self.page_size = page_size or settings.notifications_page_size
        self.default_title = default_title or settings.default_notification_title
        self._background: set[asyncio.Task] = set()

    # ── Reads ──

    async def list_notifications(self, page: int = 1, limit: int | None = None) -> NotificationPage:
        return await self.store.list_notifications(page=page, limit=limit or self.page_size)

    async def refresh_unread_count(self) -> int:
        """Fetch the authoritative unread count and broadcast it."""
        count = await self.store.unread_count()
        self.bus.publish(EventName.COUNT_UPDATED, {"count": count})
        return count

    async def get_settings(self) -> NotificationSettings:
        return await self.store.get_settings()

    # ── Mutations ──

    async def mark_one_read(self, notification_id: str) -> None:
        try:
            await self.store.mark_read(notification_id)
        except (NetworkError, ServerError) as e:
            logger.warning("Failed to mark notification %s as read: %s", notification_id, e)
            raise RemoteMutationFailed("mark_one_read", e) from e

        self.bus.publish(EventName.NOTIFICATION_READ, {"notificationId": notification_id})

    async def mark_all_read(self) -> int | None:
        """Mark everything read.

        Publishes all_notifications_read then notification_count_updated{0},
        so consumers that only track the count still converge to zero.

        Returns:
            The unread count the server reported before the mutation, or None.
        """
        try:
            response = await self.store.mark_all_read()
        except (NetworkError, ServerError) as e:
            logger.warning("Failed to mark all notifications as read: %s", e)
            raise RemoteMutationFailed("mark_all_read", e) from e

        self.bus.publish(EventName.ALL_NOTIFICATIONS_READ, {})
        self.bus.publish(EventName.COUNT_UPDATED, {"count": 0})
        return response.count

    async def update_settings(self, settings: NotificationSettings) -> None:
        try:
            await self.store.update_settings(settings)
        except (NetworkError, ServerError) as e:
            logger.warning("Failed to save notification settings: %s", e)
            raise RemoteMutationFailed("update_settings", e) from e

    async def register_device_token(
        self, token: str, device_type: DeviceType, device_id: str | None = None,
    ) -> bool:
        try:
            response = await self.store.register_device_token(token, device_type, device_id)
        except (NetworkError, ServerError) as e:
            logger.error("Failed to register device token: %s", e)
            return False
        if not response.success:
            logger.error("Device token rejected: %s", response.message)
        return response.success

    # ── Push ──

    async def ingest_push_event(self, raw_payload: Any) -> Notification:
        """Normalize a provider payload, broadcast it, and refresh the count.

        Raises:
            MalformedPayload: payload lacks a usable type or id.
        """
        notification = normalize_push_payload(raw_payload, self.default_title)
        self.bus.publish(EventName.NEW_NOTIFICATION, {"notification": notification})
        self.schedule_count_refresh()
        return notification

    def schedule_count_refresh(self) -> asyncio.Task:
        """Fire-and-forget refresh_unread_count(); failures are only logged."""
        task = asyncio.create_task(self._refresh_quietly())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _refresh_quietly(self) -> None:
        try:
            await self.refresh_unread_count()
        except Exception as e:
            logger.warning("Background unread-count refresh failed: %s", e)

    @property
    def pending_tasks(self) -> int:
        return len(self._background)

    async def drain(self) -> None:
        """Wait until every background refresh has finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


# Data keys consumed into Notification fields; everything else lands in metadata
_ID_KEYS = ("notificationId", "id")
_TIME_KEYS = ("createdAt", "time")
_ACTOR_KEYS = ("actorName", "userName")
_ACTOR_IMAGE_KEYS = ("actorImageRef", "userImage")


def normalize_push_payload(raw: Any, default_title: str = "New Notification") -> Notification:
    """Turn a provider message ``{notification: {title, body}, data: {type, ...}}`` into a Notification."""
    if not isinstance(raw, Mapping):
        raise MalformedPayload("Push payload is not a mapping", raw)

    content = raw.get("notification") or {}
    data = raw.get("data") or {}
    if not isinstance(content, Mapping) or not isinstance(data, Mapping):
        raise MalformedPayload("Push payload has a non-mapping notification/data section", raw)
    data = dict(data)

    raw_type = data.pop("type", None)
    if not raw_type:
        raise MalformedPayload("Push payload is missing data.type", raw)
    try:
        notification_type = NotificationType(raw_type)
    except ValueError:
        raise MalformedPayload(f"Unknown notification type: {raw_type}", raw) from None

    notification_id = _pop_first(data, _ID_KEYS) or raw.get("messageId")
    if not notification_id:
        raise MalformedPayload("Push payload has no notification id", raw)

    title = content.get("title") or data.pop("title", None) or default_title
    message = content.get("body") or data.pop("body", None) or data.pop("message", None) or ""
    data.pop("title", None)
    data.pop("body", None)
    data.pop("message", None)

    try:
        return Notification(
            id=notification_id,
            type=notification_type,
            created_at=_pop_first(data, _TIME_KEYS) or datetime.now(timezone.utc),
            is_read=False,
            title=title,
            message=message,
            blood_type=data.pop("bloodType", None),
            actor_name=_pop_first(data, _ACTOR_KEYS),
            actor_image_ref=_pop_first(data, _ACTOR_IMAGE_KEYS),
            metadata=data,
        )
    except ValidationError as e:
        raise MalformedPayload(f"Push payload failed validation: {e.error_count()} error(s)", raw) from e


def _pop_first(data: dict, keys: tuple[str, ...]):
    """Pop every key in ``keys`` and return the first truthy value."""
    found = None
    for key in keys:
        value = data.pop(key, None)
        if found is None and value:
            found = value
    return found
