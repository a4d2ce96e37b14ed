import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from bloodlink.core.events import EventBus
from bloodlink.integrations.notifications.base import NotificationStore
from bloodlink.schemas.notification import (
    MutationResponse,
    Notification,
    NotificationPage,
    NotificationSettings,
    NotificationType,
    Pagination,
)
from bloodlink.services.notification_sync import NotificationSyncService


@pytest.fixture
def bus():
    """Fresh bus per test; never the process-wide default."""
    return EventBus()


@pytest.fixture
def store():
    """NotificationStore double with happy-path defaults."""
    s = AsyncMock(spec=NotificationStore)
    s.mark_read.return_value = MutationResponse(success=True, message="ok", notification_id="n1")
    s.mark_all_read.return_value = MutationResponse(success=True, message="ok", count=4)
    s.unread_count.return_value = 0
    s.get_settings.return_value = NotificationSettings()
    s.update_settings.return_value = MutationResponse(success=True, message="saved")
    s.register_device_token.return_value = MutationResponse(success=True, message="registered")
    s.list_notifications.return_value = NotificationPage(
        notifications=[], pagination=Pagination(total=0, page=1, limit=10, pages=0),
    )
    return s


@pytest.fixture
def sync(store, bus):
    return NotificationSyncService(store, bus=bus, page_size=10)


@pytest.fixture
def recorder(bus):
    """Records every (event, payload) published on the test bus."""
    events: list[tuple[str, dict]] = []
    for name in (
        "notification_read",
        "all_notifications_read",
        "notification_count_updated",
        "new_notification",
    ):
        bus.subscribe(name, lambda payload, name=name: events.append((name, payload)))
    return events


def _make_notification(notification_id: str = "n1", is_read: bool = False, **kwargs) -> Notification:
    return Notification(
        id=notification_id,
        type=kwargs.pop("type", NotificationType.BLOOD_NEEDED),
        created_at=kwargs.pop("created_at", datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)),
        is_read=is_read,
        **kwargs,
    )


def _make_push(notification_id: str = "n-push", ntype: str = "blood_needed", **data) -> dict:
    return {
        "notification": {"title": "Urgent: A+ Blood Needed", "body": "Someone nearby needs A+"},
        "data": {"type": ntype, "notificationId": notification_id, **data},
    }


async def _settle(rounds: int = 5):
    """Let queued callbacks and background tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def make_notification():
    return _make_notification


@pytest.fixture
def make_push():
    return _make_push


@pytest.fixture
def settle():
    return _settle
