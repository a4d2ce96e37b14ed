from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator

from bloodlink.config import get_settings


class NotificationType(str, Enum):
    BLOOD_NEEDED = "blood_needed"
    REQUEST_ACCEPTED = "request_accepted"
    DONATION_REMINDER = "donation_reminder"
    SYSTEM_ANNOUNCEMENT = "system_announcement"
    DONOR_CHANGED = "donor_changed"
    REQUEST_CANCELLED = "request_cancelled"
    DONATION_COMPLETED = "donation_completed"


class DeviceType(str, Enum):
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


class Notification(BaseModel):
    id: str
    type: NotificationType
    created_at: datetime = Field(
        validation_alias=AliasChoices("createdAt", "time", "created_at"),
        serialization_alias="createdAt",
    )
    is_read: bool = Field(default=False, alias="isRead")
    title: str | None = None
    message: str | None = None
    blood_type: str | None = Field(default=None, alias="bloodType")
    actor_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("actorName", "userName", "actor_name"),
        serialization_alias="actorName",
    )
    actor_image_ref: str | None = Field(
        default=None,
        validation_alias=AliasChoices("actorImageRef", "userImage", "actor_image_ref"),
        serialization_alias="actorImageRef",
    )
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v):
        return str(v) if v is not None else v

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_default(cls, v):
        return {} if v is None else v

    @property
    def display_title(self) -> str:
        return self.title or get_settings().default_notification_title


class Pagination(BaseModel):
    total: int = 0
    page: int = 1
    limit: int = 10
    pages: int = 0

    @property
    def has_more(self) -> bool:
        return self.page < self.pages


class NotificationPage(BaseModel):
    notifications: list[Notification] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class MutationResponse(BaseModel):
    success: bool = True
    message: str = ""
    notification_id: str | None = Field(default=None, alias="notificationId")
    count: int | None = None  # mark-all-read: how many were unread before

    model_config = {"populate_by_name": True}


class UnreadCountResponse(BaseModel):
    count: int


class NotificationSettings(BaseModel):
    push_notifications_enabled: bool = Field(default=True, alias="pushNotificationsEnabled")
    blood_requests_enabled: bool = Field(default=True, alias="bloodRequestsEnabled")
    request_updates_enabled: bool = Field(default=True, alias="requestUpdatesEnabled")
    donation_reminders_enabled: bool = Field(default=True, alias="donationRemindersEnabled")
    system_announcements_enabled: bool = Field(default=True, alias="systemAnnouncementsEnabled")

    model_config = {"populate_by_name": True}

    def toggled(self, setting: str) -> "NotificationSettings":
        """Return a copy with one flag flipped.

        Switching the master flag off also switches every subtype off.
        Accepts either the snake_case field name or its camelCase wire alias.
        """
        field_name = _resolve_settings_field(setting)
        new_value = not getattr(self, field_name)
        update: dict[str, bool] = {field_name: new_value}
        if field_name == SETTINGS_MASTER_FIELD and new_value is False:
            update.update({name: False for name in SETTINGS_SUBTYPE_FIELDS})
        return self.model_copy(update=update)

    def to_wire(self) -> dict[str, bool]:
        return self.model_dump(by_alias=True)


SETTINGS_MASTER_FIELD = "push_notifications_enabled"
SETTINGS_SUBTYPE_FIELDS = (
    "blood_requests_enabled",
    "request_updates_enabled",
    "donation_reminders_enabled",
    "system_announcements_enabled",
)


def _resolve_settings_field(setting: str) -> str:
    for name, info in NotificationSettings.model_fields.items():
        if setting in (name, info.alias):
            return name
    raise ValueError(f"Unknown notification setting: {setting}")


class RegisterTokenRequest(BaseModel):
    token: str
    device_type: DeviceType = Field(alias="deviceType")
    device_id: str | None = Field(default=None, alias="deviceId")

    model_config = {"populate_by_name": True}

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
