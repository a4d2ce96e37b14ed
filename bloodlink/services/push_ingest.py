"""Push provider boundary.

Adapts provider deliveries (foreground message, background tap, cold start)
into NotificationSyncService.ingest_push_event() plus a UI hint. Nothing here
raises back into the provider SDK callback: every failure is logged and turned
into a PushDisposition.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from bloodlink.config import get_settings
from bloodlink.core.exceptions import MalformedPayload
from bloodlink.core.metrics import PUSH_MESSAGES
from bloodlink.schemas.notification import DeviceType, Notification
from bloodlink.services.notification_sync import NotificationSyncService

logger = logging.getLogger(__name__)

NOTIFICATION_LIST_ROUTE = "Notification"

# banner(title, message, type, data, duration_seconds)
BannerPresenter = Callable[[str, str, str | None, dict, float], Any]
Navigator = Callable[[str], Any]


class DeliveryMode(str, Enum):
    FOREGROUND = "foreground"
    BACKGROUND_TAP = "background_tap"
    COLD_START = "cold_start"


@dataclass
class PushDisposition:
    mode: DeliveryMode
    notification: Notification | None = None
    navigate_to: str | None = None
    show_banner: bool = False

    @property
    def ingested(self) -> bool:
        return self.notification is not None


class PushIngestService:
    """Funnels every delivery mode through one ingestion path."""

    def __init__(
        self,
        sync: NotificationSyncService,
        banner: BannerPresenter | None = None,
        navigate: Navigator | None = None,
        banner_seconds: float | None = None,
    ):
        self.sync = sync
        self.banner = banner
        self.navigate = navigate
        self.banner_seconds = (
            banner_seconds if banner_seconds is not None else get_settings().in_app_banner_seconds
        )

    async def handle_foreground(self, raw_payload: Any) -> PushDisposition:
        """App is open: ingest and show an in-app banner instead of a system notification."""
        disposition = PushDisposition(mode=DeliveryMode.FOREGROUND)
        notification = await self._ingest(DeliveryMode.FOREGROUND, raw_payload)
        if notification is None:
            return disposition

        disposition.notification = notification
        disposition.show_banner = True
        if self.banner is not None:
            try:
                self.banner(
                    notification.display_title,
                    notification.message or "",
                    notification.type.value,
                    dict(notification.metadata),
                    self.banner_seconds,
                )
            except Exception:
                logger.exception("In-app banner failed for notification %s", notification.id)
        return disposition

    async def handle_opened(self, raw_payload: Any | None) -> PushDisposition:
        """User tapped a notification while the app was backgrounded."""
        return await self._handle_tap(DeliveryMode.BACKGROUND_TAP, raw_payload)

    async def handle_cold_start(self, raw_payload: Any | None) -> PushDisposition:
        """App was launched from a notification."""
        return await self._handle_tap(DeliveryMode.COLD_START, raw_payload)

    async def handle_token(
        self, token: str, device_type: DeviceType, device_id: str | None = None,
    ) -> bool:
        """Register a newly issued or refreshed provider token with the backend."""
        if not token:
            logger.warning("Ignoring empty push token")
            return False
        try:
            registered = await self.sync.register_device_token(token, device_type, device_id)
        except Exception:
            logger.exception("Device token registration raised")
            return False
        if registered:
            logger.info("Device token registered (%s)", device_type.value)
        return registered

    async def _handle_tap(self, mode: DeliveryMode, raw_payload: Any | None) -> PushDisposition:
        disposition = PushDisposition(mode=mode, navigate_to=NOTIFICATION_LIST_ROUTE)
        # Best effort: the process may have restarted without the raw payload
        if raw_payload is None:
            PUSH_MESSAGES.labels(mode=mode.value, outcome="skipped").inc()
            logger.info("No payload delivered with %s, skipping ingest", mode.value)
        else:
            disposition.notification = await self._ingest(mode, raw_payload)

        if self.navigate is not None:
            try:
                self.navigate(NOTIFICATION_LIST_ROUTE)
            except Exception:
                logger.exception("Navigation to %s failed", NOTIFICATION_LIST_ROUTE)
        return disposition

    async def _ingest(self, mode: DeliveryMode, raw_payload: Any) -> Notification | None:
        try:
            notification = await self.sync.ingest_push_event(raw_payload)
        except MalformedPayload as e:
            PUSH_MESSAGES.labels(mode=mode.value, outcome="malformed").inc()
            logger.warning("Dropping malformed push payload (%s): %s", mode.value, e.message)
            return None
        except Exception:
            PUSH_MESSAGES.labels(mode=mode.value, outcome="error").inc()
            logger.exception("Push ingestion failed (%s)", mode.value)
            return None

        PUSH_MESSAGES.labels(mode=mode.value, outcome="ingested").inc()
        logger.info("Ingested %s notification %s (%s)", notification.type.value, notification.id, mode.value)
        return notification
