"""Identity provider port and its GoTrue-compatible HTTP adapter.

The identity provider owns credentials and sessions. This service only ever
learns the provider's user id and email; roles live in ``profiles``.
"""

from __future__ import annotations

import abc
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    """The identity provider rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class IdentityUser:
    id: uuid.UUID
    email: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IdentitySession:
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    user: IdentityUser | None = None


class IdentityService(abc.ABC):
    @abc.abstractmethod
    def get_user(self, access_token: str) -> IdentityUser | None:
        """Return the user behind a session token, or None if it is not valid."""

    @abc.abstractmethod
    def sign_in(self, email: str, password: str) -> IdentitySession: ...

    @abc.abstractmethod
    def sign_out(self, access_token: str) -> None: ...

    @abc.abstractmethod
    def update_password(self, access_token: str, password: str) -> None: ...

    @abc.abstractmethod
    def create_user(
        self, email: str, password: str, metadata: dict[str, Any] | None = None
    ) -> IdentityUser: ...

    @abc.abstractmethod
    def get_user_by_id(self, user_id: uuid.UUID) -> IdentityUser | None: ...

    @abc.abstractmethod
    def update_email(self, user_id: uuid.UUID, email: str) -> IdentityUser: ...

    @abc.abstractmethod
    def delete_user(self, user_id: uuid.UUID) -> None: ...


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:500] or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {resp.status_code}"


def _to_user(data: dict) -> IdentityUser:
    return IdentityUser(
        id=uuid.UUID(str(data["id"])),
        email=data.get("email"),
        metadata=data.get("user_metadata") or {},
    )


class GoTrueIdentityService(IdentityService):
    def __init__(
        self,
        base_url: str | None = None,
        anon_key: str | None = None,
        service_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.identity_url).rstrip("/")
        self.anon_key = anon_key or settings.identity_anon_key
        self.service_key = service_key or settings.identity_service_key
        self.timeout = timeout or settings.identity_timeout
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self.base_url and self.anon_key and self.service_key)

    def _user_headers(self, access_token: str) -> dict[str, str]:
        return {"apikey": self.anon_key, "Authorization": f"Bearer {access_token}"}

    def _admin_headers(self) -> dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
        }

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if not self.base_url:
            raise IdentityError("Identity provider is not configured. Set IDENTITY_URL.")
        url = f"{self.base_url}/auth/v1{path}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                return client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Identity request %s %s failed: %s", method, path, e)
            raise IdentityError(f"Identity provider unreachable: {e}")

    def _checked(self, resp: httpx.Response) -> httpx.Response:
        if resp.status_code >= 400:
            raise IdentityError(_error_message(resp), status_code=resp.status_code)
        return resp

    def get_user(self, access_token: str) -> IdentityUser | None:
        resp = self._request("GET", "/user", headers=self._user_headers(access_token))
        if resp.status_code in (401, 403):
            return None
        return _to_user(self._checked(resp).json())

    def sign_in(self, email: str, password: str) -> IdentitySession:
        resp = self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers={"apikey": self.anon_key},
        )
        data = self._checked(resp).json()
        return IdentitySession(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
            user=_to_user(data["user"]) if data.get("user") else None,
        )

    def sign_out(self, access_token: str) -> None:
        resp = self._request(
            "POST", "/logout", headers=self._user_headers(access_token)
        )
        if resp.status_code in (401, 403):
            return
        self._checked(resp)

    def update_password(self, access_token: str, password: str) -> None:
        resp = self._request(
            "PUT",
            "/user",
            json={"password": password},
            headers=self._user_headers(access_token),
        )
        self._checked(resp)

    def create_user(
        self, email: str, password: str, metadata: dict[str, Any] | None = None
    ) -> IdentityUser:
        resp = self._request(
            "POST",
            "/admin/users",
            json={
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": metadata or {},
            },
            headers=self._admin_headers(),
        )
        return _to_user(self._checked(resp).json())

    def get_user_by_id(self, user_id: uuid.UUID) -> IdentityUser | None:
        resp = self._request(
            "GET", f"/admin/users/{user_id}", headers=self._admin_headers()
        )
        if resp.status_code == 404:
            return None
        return _to_user(self._checked(resp).json())

    def update_email(self, user_id: uuid.UUID, email: str) -> IdentityUser:
        resp = self._request(
            "PUT",
            f"/admin/users/{user_id}",
            json={"email": email, "email_confirm": True},
            headers=self._admin_headers(),
        )
        return _to_user(self._checked(resp).json())

    def delete_user(self, user_id: uuid.UUID) -> None:
        resp = self._request(
            "DELETE", f"/admin/users/{user_id}", headers=self._admin_headers()
        )
        self._checked(resp)


identity = GoTrueIdentityService()
