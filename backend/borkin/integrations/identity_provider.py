"""Minimal Clerk API client used when removing banned accounts."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, cast

import httpx
from pydantic import SecretStr

logger = logging.getLogger(__name__)


class IdentityProviderError(RuntimeError):
    """Raised when the identity provider responds with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class IdentityProviderClient:
    """Thin client for the Clerk backend API."""

    def __init__(
        self,
        *,
        secret_key: str | SecretStr,
        base_url: str = "https://api.clerk.com/v1",
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        secret_value = (
            secret_key.get_secret_value() if isinstance(secret_key, SecretStr) else secret_key
        )
        self._secret_key = secret_value
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._secret_key)

    def find_user_id_by_email(self, email: str) -> Optional[str]:
        """Return the first user id registered with ``email``, if any."""

        users = self.request("GET", "/users", params={"email_address": email})
        if isinstance(users, list) and users:
            return cast(Optional[str], users[0].get("id"))
        return None

    def delete_user(self, user_id: str) -> None:
        if not user_id:
            raise ValueError("user_id must be provided")
        self.request("DELETE", f"/users/{user_id}")

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Dict[str, Any] | None = None,
    ) -> Dict[str, Any] | List[Dict[str, Any]]:
        """Perform a raw API request and return the parsed JSON payload."""

        if not self.configured:
            raise IdentityProviderError("Identity provider secret key is not configured")

        url = f"{self._base_url}{path}"
        with httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._secret_key}",
                "Accept": "application/json",
            },
        ) as client:
            try:
                response = client.request(method, url, params=params)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                logger.error(
                    "Identity provider error %s for %s %s: %s",
                    status,
                    method,
                    path,
                    exc.response.text[:500],
                )
                raise IdentityProviderError(
                    f"Identity provider responded with status {status}", status_code=status
                ) from exc
            except httpx.RequestError as exc:
                logger.error("Identity provider request failure for %s %s: %s", method, path, str(exc))
                raise IdentityProviderError("Failed to reach identity provider") from exc

        if not response.content:
            return {}
        try:
            return cast(Dict[str, Any] | List[Dict[str, Any]], response.json())
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON from identity provider for %s %s", method, path)
            raise IdentityProviderError("Received malformed JSON from identity provider") from exc
