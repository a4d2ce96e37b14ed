from pydantic import ValidationError

from bloodlink.core.exceptions import ServerError
from bloodlink.integrations.api.client import ApiClient
from bloodlink.integrations.api.constants import (
    NOTIFICATIONS_PATH,
    NOTIFICATION_READ_PATH,
    NOTIFICATIONS_READ_ALL_PATH,
    UNREAD_COUNT_PATH,
    NOTIFICATION_SETTINGS_PATH,
    REGISTER_TOKEN_PATH,
)
from bloodlink.integrations.notifications.base import NotificationStore
from bloodlink.schemas.notification import (
    DeviceType,
    MutationResponse,
    NotificationPage,
    NotificationSettings,
    RegisterTokenRequest,
    UnreadCountResponse,
)


class RestNotificationStore(NotificationStore):
    """NotificationStore backed by the BloodLink REST API."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def list_notifications(self, page: int = 1, limit: int = 10) -> NotificationPage:
        data = await self.client.get(NOTIFICATIONS_PATH, params={"page": page, "limit": limit})
        return _parse(NotificationPage, data)

    async def mark_read(self, notification_id: str) -> MutationResponse:
        data = await self.client.put(
            NOTIFICATION_READ_PATH.format(notification_id=notification_id),
            endpoint=NOTIFICATION_READ_PATH,
        )
        return _parse(MutationResponse, data)

    async def mark_all_read(self) -> MutationResponse:
        data = await self.client.put(NOTIFICATIONS_READ_ALL_PATH)
        return _parse(MutationResponse, data)

    async def unread_count(self) -> int:
        data = await self.client.get(UNREAD_COUNT_PATH)
        return _parse(UnreadCountResponse, data).count

    async def get_settings(self) -> NotificationSettings:
        data = await self.client.get(NOTIFICATION_SETTINGS_PATH)
        return _parse(NotificationSettings, data)

    async def update_settings(self, settings: NotificationSettings) -> MutationResponse:
        data = await self.client.put(NOTIFICATION_SETTINGS_PATH, json=settings.to_wire())
        return _parse(MutationResponse, data)

    async def register_device_token(
        self, token: str, device_type: DeviceType, device_id: str | None = None,
    ) -> MutationResponse:
        request = RegisterTokenRequest(token=token, device_type=device_type, device_id=device_id)
        data = await self.client.post(REGISTER_TOKEN_PATH, json=request.to_wire())
        return _parse(MutationResponse, data)


def _parse(model, data):
    """Validate a 2xx body; a body that doesn't match the schema is a server fault."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ServerError(200, f"Unexpected {model.__name__} payload", data) from e
