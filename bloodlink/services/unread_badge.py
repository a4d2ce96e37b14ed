"""Unread-count badge controller.

One instance per place a badge is shown; instances share nothing but the event
bus. Three signal sources feed the displayed count:

1. Authoritative fetches (start, poll tick, notification_read, refresh())
2. notification_count_updated events
3. all_notifications_read (optimistic zero)

Fetches run through NotificationSyncService.refresh_unread_count(), which
publishes notification_count_updated, so every value is applied in the order
it is handled on the loop. Last arrival wins; request issue order is irrelevant.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable

from bloodlink.config import get_settings
from bloodlink.core.events import EventName, SubscriptionHandle
from bloodlink.core.metrics import BADGE_FETCH_FAILURES
from bloodlink.services.notification_sync import NotificationSyncService

logger = logging.getLogger(__name__)


class BadgeState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    DISPOSED = "disposed"


class UnreadBadgeController:
    """Maintains one consumer's view of the unread count.

    Args:
        sync: Service used for authoritative fetches; its bus is subscribed to
        poll_interval: Seconds between background polls
        display_cap: Counts above this render as "<cap>+"
        on_change: Called with the new count whenever the displayed value changes
    """

    def __init__(
        self,
        sync: NotificationSyncService,
        poll_interval: float | None = None,
        display_cap: int | None = None,
        on_change: Callable[[int], None] | None = None,
    ):
        settings = get_settings()
        self.sync = sync
        self.bus = sync.bus
        self.poll_interval = poll_interval if poll_interval is not None else settings.badge_poll_interval_seconds
        self.display_cap = display_cap if display_cap is not None else settings.badge_display_cap
        self.on_change = on_change

        self.state = BadgeState.UNINITIALIZED
        self._count = 0
        self._subscriptions: list[SubscriptionHandle] = []
        self._poll_task: asyncio.Task | None = None
        self._fetch_tasks: set[asyncio.Task] = set()
        self._inflight = 0

    # ── Read-only view ──

    @property
    def count(self) -> int:
        return self._count

    @property
    def display_text(self) -> str:
        if self._count <= 0:
            return ""
        if self._count > self.display_cap:
            return f"{self.display_cap}+"
        return str(self._count)

    @property
    def is_loading(self) -> bool:
        return self.state == BadgeState.LOADING

    # ── Lifecycle ──

    async def start(self) -> None:
        if self.state != BadgeState.UNINITIALIZED:
            return

        self._subscriptions = [
            self.bus.subscribe(EventName.NOTIFICATION_READ, self._on_notification_read),
            self.bus.subscribe(EventName.ALL_NOTIFICATIONS_READ, self._on_all_read),
            self.bus.subscribe(EventName.COUNT_UPDATED, self._on_count_updated),
        ]
        try:
            await self._fetch()
        except BaseException:
            # Cancelled mid-fetch: __aexit__ won't run, so undo the subscriptions here
            self._unsubscribe_all()
            for task in self._fetch_tasks:
                task.cancel()
            if self.state != BadgeState.DISPOSED:
                self.state = BadgeState.UNINITIALIZED
            raise

        if self.state != BadgeState.DISPOSED:
            self._poll_task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        if self.state == BadgeState.DISPOSED:
            return
        self.state = BadgeState.DISPOSED
        self._unsubscribe_all()

        tasks = list(self._fetch_tasks)
        if self._poll_task is not None:
            tasks.append(self._poll_task)
            self._poll_task = None
        current = asyncio.current_task()
        tasks = [t for t in tasks if t is not current]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("Badge controller disposed (last count=%d)", self._count)

    async def refresh(self) -> None:
        """Authoritative fetch on demand (e.g., screen regained focus)."""
        if self.state in (BadgeState.UNINITIALIZED, BadgeState.DISPOSED):
            return
        await self._fetch()

    def _unsubscribe_all(self) -> None:
        for handle in self._subscriptions:
            handle.unsubscribe()
        self._subscriptions = []

    async def __aenter__(self) -> "UnreadBadgeController":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    # ── Fetching ──

    async def _fetch(self) -> None:
        self._inflight += 1
        self.state = BadgeState.LOADING
        try:
            # The value arrives through _on_count_updated
            await self.sync.refresh_unread_count()
        except Exception as e:
            BADGE_FETCH_FAILURES.inc()
            logger.warning("Unread count fetch failed, keeping %d: %s", self._count, e)
        finally:
            self._inflight -= 1
            if self.state == BadgeState.LOADING and self._inflight == 0:
                self.state = BadgeState.READY

    def _spawn_fetch(self) -> None:
        task = asyncio.create_task(self._fetch())
        self._fetch_tasks.add(task)
        task.add_done_callback(self._fetch_tasks.discard)

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self._fetch()

    # ── Event handlers ──

    def _on_notification_read(self, payload: dict) -> None:
        if self.state == BadgeState.DISPOSED:
            return
        # A read elsewhere only says our count is stale, not what it is now
        self._spawn_fetch()

    def _on_all_read(self, payload: dict) -> None:
        self._set_count(0)

    def _on_count_updated(self, payload: dict) -> None:
        self._set_count(payload.get("count"))

    def _set_count(self, value) -> None:
        if self.state == BadgeState.DISPOSED:
            return
        try:
            new_count = max(0, int(value))
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric unread count: %r", value)
            return

        if new_count == self._count:
            return
        self._count = new_count
        if self.on_change is not None:
            self.on_change(new_count)
