import logging
import time
from typing import Any, Callable

import httpx

from bloodlink.config import get_settings
from bloodlink.core.exceptions import AuthenticationError, NetworkError, ServerError
from bloodlink.core.metrics import API_LATENCY, API_REQUESTS
from bloodlink.integrations.api.constants import DEFAULT_HEADERS, SESSION_EXPIRED_DEBOUNCE

logger = logging.getLogger(__name__)


class ApiClient:
    """BloodLink REST API client.

    Wraps one httpx.AsyncClient. Every failure is mapped onto the package
    error taxonomy: NetworkError when no usable response arrived, ServerError for
    non-2xx (AuthenticationError for 401, after dropping the token).
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        on_session_expired: Callable[[], Any] | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.api_timeout_seconds
        self._token = token
        self._transport = transport
        self._on_session_expired = on_session_expired
        self._last_session_expired = 0.0
        self._client: httpx.AsyncClient | None = None

    # ── Token ──

    def set_token(self, token: str) -> None:
        self._token = token

    def clear_token(self) -> None:
        self._token = None

    @property
    def has_token(self) -> bool:
        return self._token is not None

    # ── Lifecycle ──

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=DEFAULT_HEADERS,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ── Requests ──

    async def get(self, path: str, params: dict | None = None, endpoint: str | None = None) -> Any:
        return await self._request("GET", path, params=params, endpoint=endpoint)

    async def post(self, path: str, json: dict | None = None, endpoint: str | None = None) -> Any:
        return await self._request("POST", path, body=json, endpoint=endpoint)

    async def put(self, path: str, json: dict | None = None, endpoint: str | None = None) -> Any:
        return await self._request("PUT", path, body=json, endpoint=endpoint)

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        body: dict | None = None,
        endpoint: str | None = None,
    ) -> Any:
        endpoint = endpoint or path
        headers = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        start = time.monotonic()
        try:
            resp = await self._get_client().request(
                method, path, params=params, json=body, headers=headers,
            )
        except httpx.RequestError as e:
            # TransportError, or a body that failed to decode (bad Content-Encoding)
            API_REQUESTS.labels(method=method, endpoint=endpoint, status="network_error").inc()
            logger.warning("%s %s failed without a usable response: %s", method, path, e)
            raise NetworkError(str(e) or e.__class__.__name__) from e
        finally:
            API_LATENCY.labels(method=method, endpoint=endpoint).observe(time.monotonic() - start)

        API_REQUESTS.labels(method=method, endpoint=endpoint, status=str(resp.status_code)).inc()

        if resp.status_code == 401:
            self._handle_session_expired()
            raise AuthenticationError(_error_message(resp, "Session expired"), _safe_json(resp))

        if resp.is_error:
            message = _error_message(resp, "An error occurred")
            logger.error("API error %s %s -> %d: %s", method, path, resp.status_code, message)
            raise ServerError(resp.status_code, message, _safe_json(resp))

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise ServerError(resp.status_code, "Invalid JSON response") from e

    def _handle_session_expired(self) -> None:
        self._token = None
        now = time.monotonic()
        if now - self._last_session_expired < SESSION_EXPIRED_DEBOUNCE:
            return
        self._last_session_expired = now
        logger.warning("Session expired, token cleared")
        if self._on_session_expired is None:
            return
        try:
            self._on_session_expired()
        except Exception:
            logger.exception("Session-expired callback failed")


def _safe_json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def _error_message(resp: httpx.Response, default: str) -> str:
    data = _safe_json(resp)
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return default
