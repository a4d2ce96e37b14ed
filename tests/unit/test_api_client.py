"""Tests for ApiClient and RestNotificationStore over httpx.MockTransport."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import httpx
import pytest

from bloodlink.core.events import EventBus
from bloodlink.core.exceptions import (
    AuthenticationError,
    NetworkError,
    RemoteMutationFailed,
    ServerError,
)
from bloodlink.integrations.api.client import ApiClient
from bloodlink.integrations.notifications.rest_store import RestNotificationStore
from bloodlink.schemas.notification import DeviceType, NotificationSettings, NotificationType
from bloodlink.services.notification_sync import NotificationSyncService

BASE = "http://api.test/api"


def _client(handler, **kwargs) -> ApiClient:
    return ApiClient(base_url=BASE, transport=httpx.MockTransport(handler), **kwargs)


class TestApiClient:
    @pytest.mark.asyncio
    async def test_get_sends_bearer_token(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["auth"] = request.headers.get("authorization")
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"count": 1})

        async with _client(handler, token="abc") as client:
            data = await client.get("/notifications/unread-count")

        assert data == {"count": 1}
        assert seen["auth"] == "Bearer abc"
        assert seen["url"] == f"{BASE}/notifications/unread-count"

    @pytest.mark.asyncio
    async def test_no_token_no_auth_header(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={})

        async with _client(handler) as client:
            await client.get("/x")

        assert seen["auth"] is None

    @pytest.mark.asyncio
    async def test_transport_error_maps_to_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(NetworkError):
                await client.get("/notifications")

    @pytest.mark.asyncio
    async def test_undecodable_body_maps_to_network_error(self):
        def handler(request):
            return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip")

        async with _client(handler) as client:
            with pytest.raises(NetworkError):
                await client.get("/notifications/unread-count")

    @pytest.mark.asyncio
    async def test_non_2xx_maps_to_server_error_with_message(self):
        def handler(request):
            return httpx.Response(404, json={"message": "Notification not found"})

        async with _client(handler) as client:
            with pytest.raises(ServerError) as exc_info:
                await client.put("/notifications/n1/read")

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Notification not found"

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(502, text="<html>bad gateway</html>")

        async with _client(handler) as client:
            with pytest.raises(ServerError) as exc_info:
                await client.get("/notifications")

        assert exc_info.value.message == "An error occurred"

    @pytest.mark.asyncio
    async def test_invalid_json_success_body(self):
        def handler(request):
            return httpx.Response(200, text="not json")

        async with _client(handler) as client:
            with pytest.raises(ServerError):
                await client.get("/notifications")

    @pytest.mark.asyncio
    async def test_401_clears_token_and_notifies_once(self):
        on_expired = MagicMock()

        def handler(request):
            return httpx.Response(401, json={"message": "Token expired"})

        async with _client(handler, token="abc", on_session_expired=on_expired) as client:
            with pytest.raises(AuthenticationError):
                await client.get("/notifications")
            with pytest.raises(AuthenticationError):
                await client.get("/notifications/unread-count")

            assert client.has_token is False

        on_expired.assert_called_once()

    @pytest.mark.asyncio
    async def test_set_and_clear_token(self):
        client = ApiClient(base_url=BASE)
        client.set_token("t")
        assert client.has_token
        client.clear_token()
        assert not client.has_token
        await client.aclose()


class TestRestNotificationStore:
    @pytest.mark.asyncio
    async def test_undecodable_mutation_response_is_remote_mutation_failure(self):
        def handler(request):
            return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip")

        bus = EventBus()
        published = []
        bus.subscribe("notification_read", published.append)

        async with _client(handler) as client:
            sync = NotificationSyncService(RestNotificationStore(client), bus=bus)
            with pytest.raises(RemoteMutationFailed) as exc_info:
                await sync.mark_one_read("n1")

        assert isinstance(exc_info.value.cause, NetworkError)
        assert published == []

    @pytest.mark.asyncio
    async def test_list_notifications_parses_page(self):
        def handler(request):
            assert request.url.path == "/api/notifications"
            assert request.url.params["page"] == "2"
            assert request.url.params["limit"] == "10"
            return httpx.Response(200, json={
                "notifications": [{
                    "id": "n1",
                    "type": "request_accepted",
                    "time": "2024-05-01T10:00:00Z",
                    "isRead": False,
                    "title": "Accepted",
                    "userName": "John Doe",
                    "userImage": "https://img/john.jpg",
                    "metadata": {"requestId": "request-456"},
                }],
                "pagination": {"total": 11, "page": 2, "limit": 10, "pages": 2},
            })

        async with _client(handler) as client:
            page = await RestNotificationStore(client).list_notifications(page=2, limit=10)

        n = page.notifications[0]
        assert n.type == NotificationType.REQUEST_ACCEPTED
        assert n.created_at == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        assert n.actor_name == "John Doe"
        assert n.actor_image_ref == "https://img/john.jpg"
        assert n.metadata == {"requestId": "request-456"}
        assert page.pagination.has_more is False

    @pytest.mark.asyncio
    async def test_mark_read_path(self):
        def handler(request):
            assert request.method == "PUT"
            assert request.url.path == "/api/notifications/n-42/read"
            return httpx.Response(200, json={"success": True, "message": "ok", "notificationId": "n-42"})

        async with _client(handler) as client:
            resp = await RestNotificationStore(client).mark_read("n-42")

        assert resp.notification_id == "n-42"

    @pytest.mark.asyncio
    async def test_mark_all_read_returns_count(self):
        def handler(request):
            assert request.url.path == "/api/notifications/read-all"
            return httpx.Response(200, json={"success": True, "message": "ok", "count": 5})

        async with _client(handler) as client:
            resp = await RestNotificationStore(client).mark_all_read()

        assert resp.count == 5

    @pytest.mark.asyncio
    async def test_unread_count(self):
        def handler(request):
            return httpx.Response(200, json={"count": 3})

        async with _client(handler) as client:
            assert await RestNotificationStore(client).unread_count() == 3

    @pytest.mark.asyncio
    async def test_unread_count_bad_body(self):
        def handler(request):
            return httpx.Response(200, json={"total": 3})

        async with _client(handler) as client:
            with pytest.raises(ServerError):
                await RestNotificationStore(client).unread_count()

    @pytest.mark.asyncio
    async def test_update_settings_sends_camel_case(self):
        sent = {}

        def handler(request):
            sent.update(json.loads(request.content))
            return httpx.Response(200, json={"success": True, "message": "saved"})

        settings = NotificationSettings().toggled("pushNotificationsEnabled")
        async with _client(handler) as client:
            await RestNotificationStore(client).update_settings(settings)

        assert sent == {
            "pushNotificationsEnabled": False,
            "bloodRequestsEnabled": False,
            "requestUpdatesEnabled": False,
            "donationRemindersEnabled": False,
            "systemAnnouncementsEnabled": False,
        }

    @pytest.mark.asyncio
    async def test_register_token_omits_missing_device_id(self):
        sent = {}

        def handler(request):
            assert request.method == "POST"
            assert request.url.path == "/api/notifications/register-token"
            sent.update(json.loads(request.content))
            return httpx.Response(200, json={"success": True, "message": "registered"})

        async with _client(handler) as client:
            resp = await RestNotificationStore(client).register_device_token("tok", DeviceType.IOS)

        assert resp.success is True
        assert sent == {"token": "tok", "deviceType": "ios"}
