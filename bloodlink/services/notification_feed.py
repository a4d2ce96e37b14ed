"""Per-screen read-through cache of the paginated notification list."""

import logging

from bloodlink.core.events import EventName, SubscriptionHandle
from bloodlink.schemas.notification import Notification, Pagination
from bloodlink.services.notification_sync import NotificationSyncService

logger = logging.getLogger(__name__)


class NotificationFeed:
    """Holds the pages a notification screen has loaded so far.

    The server stays canonical: reads are applied locally only after the
    remote mutation succeeds, and reads made elsewhere arrive via the bus.
    """

    def __init__(self, sync: NotificationSyncService, page_size: int | None = None):
        self.sync = sync
        self.bus = sync.bus
        self.page_size = page_size or sync.page_size
        self.items: list[Notification] = []
        self.pagination = Pagination(page=0, limit=self.page_size, pages=0)
        self.loading = False
        self._subscriptions: list[SubscriptionHandle] = []

    @property
    def has_more(self) -> bool:
        return self.pagination.has_more

    @property
    def unread_ids(self) -> list[str]:
        return [n.id for n in self.items if not n.is_read]

    # ── Lifecycle ──

    def start(self) -> None:
        if self._subscriptions:
            return
        self._subscriptions = [
            self.bus.subscribe(EventName.NOTIFICATION_READ, self._on_notification_read),
            self.bus.subscribe(EventName.ALL_NOTIFICATIONS_READ, self._on_all_read),
            self.bus.subscribe(EventName.NEW_NOTIFICATION, self._on_new_notification),
        ]

    def stop(self) -> None:
        for handle in self._subscriptions:
            handle.unsubscribe()
        self._subscriptions = []

    async def __aenter__(self) -> "NotificationFeed":
        self.start()
        await self.load()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.stop()

    # ── Loading ──

    async def load(self, page: int = 1) -> list[Notification]:
        """Replace the cache with one page. Errors propagate; items are kept."""
        self.loading = True
        try:
            result = await self.sync.list_notifications(page=page, limit=self.page_size)
        finally:
            self.loading = False
        self.items = list(result.notifications)
        self.pagination = result.pagination
        return self.items

    async def refresh(self) -> list[Notification]:
        return await self.load(page=1)

    async def load_more(self) -> list[Notification]:
        """Append the next page. Returns only the newly added items."""
        if self.loading or not self.has_more:
            return []

        self.loading = True
        try:
            result = await self.sync.list_notifications(
                page=self.pagination.page + 1, limit=self.page_size,
            )
        finally:
            self.loading = False

        known = {n.id for n in self.items}
        added = [n for n in result.notifications if n.id not in known]
        self.items.extend(added)
        self.pagination = result.pagination
        return added

    # ── Mutations ──

    async def mark_read(self, notification_id: str) -> None:
        """Raises RemoteMutationFailed; the cached item stays unread on failure."""
        item = self._find(notification_id)
        if item is not None and item.is_read:
            return
        await self.sync.mark_one_read(notification_id)
        self._apply_read(notification_id)

    async def mark_all_read(self) -> int | None:
        previous = await self.sync.mark_all_read()
        self._apply_all_read()
        return previous

    # ── Event handlers ──

    def _on_notification_read(self, payload: dict) -> None:
        self._apply_read(payload.get("notificationId"))

    def _on_all_read(self, payload: dict) -> None:
        self._apply_all_read()

    def _on_new_notification(self, payload: dict) -> None:
        notification = payload.get("notification")
        if not isinstance(notification, Notification):
            return
        if self._find(notification.id) is not None:
            return
        self.items.insert(0, notification)

    # ── Helpers ──

    def _find(self, notification_id: str) -> Notification | None:
        for item in self.items:
            if item.id == notification_id:
                return item
        return None

    def _apply_read(self, notification_id: str | None) -> None:
        for i, item in enumerate(self.items):
            if item.id == notification_id and not item.is_read:
                self.items[i] = item.model_copy(update={"is_read": True})

    def _apply_all_read(self) -> None:
        self.items = [
            item if item.is_read else item.model_copy(update={"is_read": True})
            for item in self.items
        ]
