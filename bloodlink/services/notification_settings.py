import logging

from bloodlink.schemas.notification import SETTINGS_MASTER_FIELD, NotificationSettings
from bloodlink.services.notification_sync import NotificationSyncService

logger = logging.getLogger(__name__)


class NotificationSettingsEditor:
    """Local, explicitly-saved copy of the user's notification settings.

    Toggles only touch the local copy; nothing is persisted until save().
    """

    def __init__(self, sync: NotificationSyncService):
        self.sync = sync
        self.settings = NotificationSettings()
        self._saved: NotificationSettings | None = None

    @property
    def dirty(self) -> bool:
        return self.settings != self._saved

    async def load(self) -> NotificationSettings:
        self.settings = await self.sync.get_settings()
        self._saved = self.settings
        return self.settings

    def toggle(self, setting: str) -> NotificationSettings:
        """Flip one flag. Turning push off turns every subtype off too."""
        self.settings = self.settings.toggled(setting)
        return self.settings

    def is_editable(self, setting: str) -> bool:
        """Subtype switches are disabled while the master switch is off."""
        master_alias = NotificationSettings.model_fields[SETTINGS_MASTER_FIELD].alias
        if setting in (SETTINGS_MASTER_FIELD, master_alias):
            return True
        return self.settings.push_notifications_enabled

    async def save(self) -> NotificationSettings:
        """Persist the local copy. Raises RemoteMutationFailed; local edits survive a failure."""
        snapshot = self.settings
        await self.sync.update_settings(snapshot)
        self._saved = snapshot
        logger.info("Notification settings saved")
        return snapshot
