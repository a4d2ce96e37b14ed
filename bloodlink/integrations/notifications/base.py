"""Abstract base class for the remote notification store."""

from abc import ABC, abstractmethod

from bloodlink.schemas.notification import (
    DeviceType,
    MutationResponse,
    NotificationPage,
    NotificationSettings,
)


class NotificationStore(ABC):
    """Server-owned notification state, as seen by the client.

    Implementations raise NetworkError when no response arrived and
    ServerError for non-2xx responses. They never publish events.
    """

    @abstractmethod
    async def list_notifications(self, page: int = 1, limit: int = 10) -> NotificationPage:
        """Fetch one page of notifications, newest first."""
        ...

    @abstractmethod
    async def mark_read(self, notification_id: str) -> MutationResponse:
        ...

    @abstractmethod
    async def mark_all_read(self) -> MutationResponse:
        """Mark every notification read.

        Returns:
            MutationResponse whose ``count`` is the number that were unread,
            when the server reports it.
        """
        ...

    @abstractmethod
    async def unread_count(self) -> int:
        ...

    @abstractmethod
    async def get_settings(self) -> NotificationSettings:
        ...

    @abstractmethod
    async def update_settings(self, settings: NotificationSettings) -> MutationResponse:
        ...

    @abstractmethod
    async def register_device_token(
        self, token: str, device_type: DeviceType, device_id: str | None = None,
    ) -> MutationResponse:
        ...
