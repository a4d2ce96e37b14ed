"""Composition root for hosts embedding the notification layer.

    async with lifespan(token=session.token) as layer:
        badge = UnreadBadgeController(layer.sync)
        ...
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from bloodlink import __version__
from bloodlink.core.events import EventBus
from bloodlink.core.logging import setup_logging
from bloodlink.integrations.api.client import ApiClient
from bloodlink.integrations.notifications.rest_store import RestNotificationStore
from bloodlink.services.notification_sync import NotificationSyncService
from bloodlink.services.push_ingest import BannerPresenter, Navigator, PushIngestService

logger = logging.getLogger(__name__)


@dataclass
class NotificationLayer:
    client: ApiClient
    store: RestNotificationStore
    sync: NotificationSyncService
    pushes: PushIngestService


@asynccontextmanager
async def lifespan(
    token: str | None = None,
    on_session_expired: Callable[[], Any] | None = None,
    banner: BannerPresenter | None = None,
    navigate: Navigator | None = None,
    bus: EventBus | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
):
    setup_logging()
    logger.info("BloodLink notification layer %s starting up", __version__)

    client = ApiClient(token=token, transport=transport, on_session_expired=on_session_expired)
    store = RestNotificationStore(client)
    sync = NotificationSyncService(store, bus=bus)
    pushes = PushIngestService(sync, banner=banner, navigate=navigate)
    try:
        yield NotificationLayer(client=client, store=store, sync=sync, pushes=pushes)
    finally:
        await sync.aclose()
        await client.aclose()
        logger.info("BloodLink notification layer shutting down")
