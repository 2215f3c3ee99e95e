"""HTTP client for the RE-CRM API.

Attaches the bearer token to every call. A 401 triggers one token refresh
followed by one replay of the original request. A GET that fails at the
transport level is retried once; writes are never retried.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from core.logging_config import get_logger

LOGGER = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0

# (filename, content, content_type)
PhotoUpload = Tuple[str, bytes, str]

# Calls whose 401 means bad credentials, not an expired access token
_NO_REFRESH = ("/auth/login", "/auth/refresh")


class APIError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, message: str, payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.payload = payload or {}

    @property
    def errors(self) -> List[Dict[str, str]]:
        return self.payload.get("errors", [])


class CRMClient:
    """Synchronous client for the `/api` endpoints."""

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
        on_tokens: Optional[Callable[[Optional[str], Optional[str]], None]] = None,
    ) -> None:
        """
        Args:
            base_url: API root including the prefix, e.g. http://localhost:4000/api.
            access_token: Bearer token from a previous login.
            refresh_token: Refresh token from a previous login.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (tests pass a MockTransport).
            on_tokens: Called with the new (access, refresh) pair whenever the
                tokens change, and with (None, None) when they are cleared.
        """
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.on_tokens = on_tokens
        self._http = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "CRMClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Token handling
    # ------------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def _set_tokens(self, access: Optional[str], refresh: Optional[str]) -> None:
        self.access_token = access
        self.refresh_token = refresh
        if self.on_tokens is not None:
            self.on_tokens(access, refresh)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"} if self.access_token else {}

    def _refresh(self) -> bool:
        """Swap the refresh token for a new pair. Clears both tokens on failure."""
        if not self.refresh_token:
            return False
        try:
            response = self._http.post("/auth/refresh", json={"refreshToken": self.refresh_token})
        except httpx.TransportError as e:
            LOGGER.warning(f"Token refresh failed: {e}")
            self._set_tokens(None, None)
            return False
        if response.status_code != 200:
            LOGGER.info("Refresh token rejected (%d); signing out", response.status_code)
            self._set_tokens(None, None)
            return False
        data = response.json()
        self._set_tokens(data["accessToken"], data["refreshToken"])
        return True

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._http.request(method, path, headers=self._headers(), **kwargs)
        except httpx.TransportError as e:
            if method != "GET":
                raise
            LOGGER.warning(f"{method} {path} failed ({e}); retrying once")
        return self._http.request(method, path, headers=self._headers(), **kwargs)

    def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """
        Send a request and return the decoded JSON body (None for 204).

        Raises:
            APIError: for any non-2xx response left after the refresh-and-replay.
            httpx.TransportError: when the server cannot be reached.
        """
        response = self._send(method, path, **kwargs)
        if response.status_code == 401 and path not in _NO_REFRESH and self._refresh():
            response = self._send(method, path, **kwargs)

        if response.status_code == 204:
            return None
        if response.is_error:
            try:
                payload = response.json()
            except ValueError:
                payload = {"message": response.text}
            raise APIError(response.status_code, payload.get("message", response.reason_phrase), payload)
        return response.json()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        clean = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
        return self.request("GET", path, params=clean or None)

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self.request("POST", "/auth/login", json={"email": email, "password": password})
        self._set_tokens(data["accessToken"], data["refreshToken"])
        return data["user"]

    def logout(self) -> None:
        self._set_tokens(None, None)

    def me(self) -> Dict[str, Any]:
        return self._get("/auth/me")

    def register(self, name: str, email: str, password: str, role: Optional[str] = None) -> Dict[str, Any]:
        body = {"name": name, "email": email, "password": password}
        if role:
            body["role"] = role
        return self.request("POST", "/auth/register", json=body)

    def users(self) -> List[Dict[str, Any]]:
        return self._get("/auth/users")

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def list_clients(self, **filters: Any) -> Dict[str, Any]:
        """Filters: search, status, leadSource, assignedTo, page, limit."""
        return self._get("/clients", filters)

    def get_client(self, client_id: str) -> Dict[str, Any]:
        return self._get(f"/clients/{client_id}")

    def create_client(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("POST", "/clients", json=data)

    def update_client(self, client_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("PUT", f"/clients/{client_id}", json=data)

    def delete_client(self, client_id: str) -> None:
        self.request("DELETE", f"/clients/{client_id}")

    def client_activities(self, client_id: str) -> List[Dict[str, Any]]:
        return self._get(f"/clients/{client_id}/activities")

    def add_client_activity(
        self, client_id: str, activity_type: str, content: str, deal_id: Optional[str] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"type": activity_type, "content": content}
        if deal_id:
            body["dealId"] = deal_id
        return self.request("POST", f"/clients/{client_id}/activities", json=body)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    def list_properties(self, **filters: Any) -> Dict[str, Any]:
        """Filters: search, status, currency, minPrice, maxPrice, minRooms, maxRooms, minSize, maxSize, page, limit."""
        return self._get("/properties", filters)

    def get_property(self, property_id: str) -> Dict[str, Any]:
        return self._get(f"/properties/{property_id}")

    def create_property(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("POST", "/properties", json=data)

    def update_property(self, property_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("PUT", f"/properties/{property_id}", json=data)

    def delete_property(self, property_id: str) -> None:
        self.request("DELETE", f"/properties/{property_id}")

    def upload_photos(self, property_id: str, photos: Sequence[PhotoUpload]) -> List[Dict[str, Any]]:
        files = [("photos", photo) for photo in photos]
        return self.request("POST", f"/properties/{property_id}/photos", files=files)

    def delete_photo(self, property_id: str, photo_id: str) -> None:
        self.request("DELETE", f"/properties/{property_id}/photos/{photo_id}")

    # ------------------------------------------------------------------
    # Deals
    # ------------------------------------------------------------------

    def list_deals(self, **filters: Any) -> Dict[str, Any]:
        """Filters: stage, assignedTo, clientId, page, limit."""
        return self._get("/deals", filters)

    def deals_board(self, **filters: Any) -> Dict[str, List[Dict[str, Any]]]:
        return self._get("/deals", {**filters, "groupBy": "stage"})

    def get_deal(self, deal_id: str) -> Dict[str, Any]:
        return self._get(f"/deals/{deal_id}")

    def create_deal(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("POST", "/deals", json=data)

    def update_deal(self, deal_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("PUT", f"/deals/{deal_id}", json=data)

    def transition_stage(self, deal_id: str, stage: str, lost_reason: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"stage": stage}
        if lost_reason:
            body["lostReason"] = lost_reason
        return self.request("PATCH", f"/deals/{deal_id}/stage", json=body)

    def delete_deal(self, deal_id: str) -> None:
        self.request("DELETE", f"/deals/{deal_id}")

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def list_tasks(self, **filters: Any) -> Dict[str, Any]:
        """Filters: status, priority, assignedTo, due, relatedClientId, relatedDealId, page, limit."""
        return self._get("/tasks", filters)

    def get_task(self, task_id: str) -> Dict[str, Any]:
        return self._get(f"/tasks/{task_id}")

    def create_task(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("POST", "/tasks", json=data)

    def update_task(self, task_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("PUT", f"/tasks/{task_id}", json=data)

    def delete_task(self, task_id: str) -> None:
        self.request("DELETE", f"/tasks/{task_id}")

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def dashboard_metrics(self, period: Optional[int] = None) -> Dict[str, Any]:
        return self._get("/dashboard/metrics", {"period": period})


__all__ = ["CRMClient", "APIError", "PhotoUpload"]
