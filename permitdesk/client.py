"""Small HTTP client for the PermitDesk API, used by scripts and the tracker."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

log = logging.getLogger("uvicorn.error")

HTTP_TIMEOUT = 30


class ApiError(Exception):
    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class PermitDeskClient:
    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = HTTP_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.refresh_token: Optional[str] = None
        self.user: Optional[Dict[str, Any]] = None
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = self.session.request(
            method,
            f"{self.base_url}/api{path}",
            headers=headers,
            timeout=self.timeout,
            **kwargs,
        )
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400:
            detail = body.get("detail") if isinstance(body, dict) else None
            raise ApiError(response.status_code, detail or response.reason or "Request failed")
        return body

    def _store_tokens(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self.token = data["access_token"]
        self.refresh_token = data.get("refresh_token")
        self.user = data.get("user")
        return data

    # Auth
    def register(self, name: str, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/auth/register", json={"name": name, "email": email, "password": password})
        return self._store_tokens(data)

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        return self._store_tokens(data)

    def refresh(self) -> Dict[str, Any]:
        if not self.refresh_token:
            raise ApiError(401, "No refresh token")
        data = self._request("POST", "/auth/refresh", json={"refresh_token": self.refresh_token})
        return self._store_tokens(data)

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/auth/me")

    # Permits
    def create_permit(self, permit: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/permits", json=permit)["permit"]

    def list_permits(self, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        return self._request("GET", "/permits", params={"page": page, "limit": limit})

    def get_permit(self, permit_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/permits/{permit_id}")["permit"]

    def update_permit(
        self,
        permit_id: str,
        *,
        status: Optional[str] = None,
        admin_comments: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if status is not None:
            payload["status"] = status
        if admin_comments is not None:
            payload["adminComments"] = admin_comments
        return self._request("PUT", f"/permits/{permit_id}", json=payload)["permit"]

    def delete_permit(self, permit_id: str) -> None:
        self._request("DELETE", f"/permits/{permit_id}")

    # Location
    def toggle_sharing(self, enabled: Optional[bool] = None) -> bool:
        payload = {} if enabled is None else {"enabled": enabled}
        return self._request("POST", "/location/toggle", json=payload)["isLocationSharingEnabled"]

    def update_location(self, latitude: float, longitude: float, address: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"latitude": latitude, "longitude": longitude}
        if address:
            payload["address"] = address
        return self._request("POST", "/location/update", json=payload)["location"]

    def list_users(self, with_location: bool = False) -> list:
        params = {"withLocation": "true" if with_location else "false"}
        return self._request("GET", "/users", params=params)["users"]

    def close(self) -> None:
        self.session.close()


__all__ = ["ApiError", "HTTP_TIMEOUT", "PermitDeskClient"]
