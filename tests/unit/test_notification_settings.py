"""Tests for notification settings: master-switch invariant and explicit save."""

import pytest

from bloodlink.core.exceptions import NetworkError, RemoteMutationFailed
from bloodlink.schemas.notification import NotificationSettings
from bloodlink.services.notification_settings import NotificationSettingsEditor


class TestToggled:
    def test_master_off_forces_subtypes_off(self):
        s = NotificationSettings().toggled("push_notifications_enabled")

        assert s.push_notifications_enabled is False
        assert s.blood_requests_enabled is False
        assert s.request_updates_enabled is False
        assert s.donation_reminders_enabled is False
        assert s.system_announcements_enabled is False

    def test_master_on_leaves_subtypes(self):
        off = NotificationSettings().toggled("pushNotificationsEnabled")
        on = off.toggled("pushNotificationsEnabled")

        assert on.push_notifications_enabled is True
        assert on.blood_requests_enabled is False

    def test_subtype_toggle_is_isolated(self):
        s = NotificationSettings().toggled("donationRemindersEnabled")

        assert s.donation_reminders_enabled is False
        assert s.push_notifications_enabled is True
        assert s.blood_requests_enabled is True

    def test_unknown_setting(self):
        with pytest.raises(ValueError):
            NotificationSettings().toggled("smsEnabled")

    def test_wire_format_is_camel_case(self):
        assert NotificationSettings().to_wire() == {
            "pushNotificationsEnabled": True,
            "bloodRequestsEnabled": True,
            "requestUpdatesEnabled": True,
            "donationRemindersEnabled": True,
            "systemAnnouncementsEnabled": True,
        }


class TestEditor:
    @pytest.mark.asyncio
    async def test_load_then_toggle_marks_dirty(self, sync, store):
        store.get_settings.return_value = NotificationSettings(blood_requests_enabled=False)
        editor = NotificationSettingsEditor(sync)

        await editor.load()
        assert editor.dirty is False

        editor.toggle("bloodRequestsEnabled")
        assert editor.dirty is True
        store.update_settings.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_save_persists_and_clears_dirty(self, sync, store):
        editor = NotificationSettingsEditor(sync)
        await editor.load()
        editor.toggle("push_notifications_enabled")

        await editor.save()

        store.update_settings.assert_awaited_once_with(editor.settings)
        assert editor.dirty is False

    @pytest.mark.asyncio
    async def test_save_failure_keeps_local_edits(self, sync, store):
        editor = NotificationSettingsEditor(sync)
        await editor.load()
        editor.toggle("systemAnnouncementsEnabled")
        store.update_settings.side_effect = NetworkError()

        with pytest.raises(RemoteMutationFailed):
            await editor.save()

        assert editor.settings.system_announcements_enabled is False
        assert editor.dirty is True

    @pytest.mark.asyncio
    async def test_subtypes_not_editable_while_master_off(self, sync):
        editor = NotificationSettingsEditor(sync)
        await editor.load()
        editor.toggle("pushNotificationsEnabled")

        assert editor.is_editable("bloodRequestsEnabled") is False
        assert editor.is_editable("pushNotificationsEnabled") is True
