"""
REST client for the backlog backend (admin endpoints).

Why:
    Controllers should not care about headers, tokens or content types. This
    adapter performs one request per call with a freshly obtained bearer token
    and turns every failure mode into a typed `AdminApiError`.

Behavior:
    - 2xx + JSON content type -> parsed mapping.
    - 2xx + empty body (e.g. 204 after DELETE) -> {}.
    - 2xx + anything else -> InvalidResponseError.
    - 403 -> PermissionDeniedError; other non-2xx -> HttpStatusError. Both
      carry the body's `message` when the backend sent one.
    - Connection errors and timeouts -> TransportError. No retries.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional
import logging

import httpx

from backlog_admin.identity_access.tokens import TokenProvider

logger = logging.getLogger("backlog_admin.management.api")

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_PROFILE_PATH = "/api/users/profile"


class AdminApiError(Exception):
    """Base error for backend calls; `code` is a short machine-readable reason."""

    def __init__(self, code: str, message: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message or code)
        self.code = code
        self.message = message
        self.status = status


class AuthenticationRequiredError(AdminApiError):
    pass


class TransportError(AdminApiError):
    pass


class InvalidResponseError(AdminApiError):
    pass


class HttpStatusError(AdminApiError):
    pass


class PermissionDeniedError(HttpStatusError):
    pass


def _is_json(response: httpx.Response) -> bool:
    return "application/json" in (response.headers.get("content-type") or "").lower()


def _error_message(response: httpx.Response) -> Optional[str]:
    """Best-effort `message` from an error body; None if absent or unparsable."""
    if not _is_json(response):
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, Mapping):
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


class AdminApi:
    """Async adapter around `httpx.AsyncClient`.

    Parameters:
        base_url: Backend root, e.g. https://api.example.org
        token_provider: Source of bearer tokens (see identity_access.tokens).
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests inject `httpx.MockTransport`).
        profile_path: Path of the current-user profile endpoint.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        profile_path: str = DEFAULT_PROFILE_PATH,
    ) -> None:
        self.token_provider = token_provider
        self.profile_path = profile_path
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    async def __aenter__(self) -> "AdminApi":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _headers(self) -> Dict[str, str]:
        token = await self.token_provider.get_token()
        if not token:
            raise AuthenticationRequiredError("unauthenticated", "Sign in again to continue.")
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        json: Any = None,
    ) -> Dict[str, Any]:
        headers = await self._headers()
        try:
            response = await self._client.request(method, path, params=params or None, json=json, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning("Backend %s %s timed out", method, path)
            raise TransportError("timeout", "The server did not answer in time.") from exc
        except httpx.HTTPError as exc:
            logger.warning("Backend %s %s failed: %s", method, path, exc.__class__.__name__)
            raise TransportError("transport_error", "Could not reach the server.") from exc

        if response.status_code == 403:
            raise PermissionDeniedError("forbidden", _error_message(response), status=403)
        if not response.is_success:
            raise HttpStatusError("http_error", _error_message(response), status=response.status_code)
        if not response.content:
            return {}
        if not _is_json(response):
            raise InvalidResponseError("invalid_response", "Invalid response from server.", status=response.status_code)
        try:
            body = response.json()
        except ValueError as exc:
            raise InvalidResponseError("invalid_json", "Invalid response from server.", status=response.status_code) from exc
        if not isinstance(body, dict):
            raise InvalidResponseError("invalid_shape", "Invalid response from server.", status=response.status_code)
        return body

    # --- Endpoints ---------------------------------------------------------------

    async def get_profile(self) -> Dict[str, Any]:
        return await self.request("GET", self.profile_path)

    async def list_users(self, params: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        return await self.request("GET", "/api/admin/users", params=params)

    async def change_user_role(self, user_id: str, role: str) -> Dict[str, Any]:
        return await self.request("PUT", f"/api/admin/users/{user_id}/role", json={"role": role})

    async def list_products(self, params: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        return await self.request("GET", "/api/productos", params=params)

    async def create_product(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return await self.request("POST", "/api/productos", json=dict(payload))

    async def update_product(self, product_id: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return await self.request("PUT", f"/api/productos/{product_id}", json=dict(payload))

    async def delete_product(self, product_id: str) -> Dict[str, Any]:
        return await self.request("DELETE", f"/api/productos/{product_id}")

    async def users_for_assignment(self) -> Dict[str, Any]:
        return await self.request("GET", "/api/users-for-assignment")


__all__ = [
    "AdminApi",
    "AdminApiError",
    "AuthenticationRequiredError",
    "TransportError",
    "InvalidResponseError",
    "HttpStatusError",
    "PermissionDeniedError",
    "DEFAULT_PROFILE_PATH",
    "DEFAULT_TIMEOUT_SECONDS",
]
