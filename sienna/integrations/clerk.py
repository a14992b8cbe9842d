"""Clerk Backend API client.

Covers the user and invitation endpoints the team screen needs.
Uses stdlib urllib; no extra dependencies required.
"""

from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from sienna.config import IdentityConfig
from sienna.core import stats
from sienna.core.utils import IntegrationError
from sienna.integrations.interface import IdentityProvider

logger = logging.getLogger(__name__)


def error_code(exc: IntegrationError) -> str | None:
    """First Clerk error code in a failed response body, e.g. ``form_identifier_exists``."""
    body = exc.body
    if isinstance(body, dict):
        errors = body.get("errors") or []
        if errors and isinstance(errors[0], dict):
            return errors[0].get("code")
    return None


class ClerkClient(IdentityProvider):
    """Synchronous REST client for the Clerk Backend API.

    Args:
        config: API base URL, secret key and request timeout.
    """

    def __init__(self, config: IdentityConfig):
        if not config.secret_key:
            raise ValueError("SIENNA_CLERK_SECRET_KEY is required for team management")
        self.base_url = config.api_url.rstrip("/")
        self.secret_key = config.secret_key
        self.timeout = config.timeout

    # -- helpers -------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        body: dict | None = None,
        query: dict[str, Any] | None = None,
    ) -> Any:
        """Issue an HTTP request and return parsed JSON (or None for an empty body)."""
        url = f"{self.base_url}{path}"
        if query:
            url += "?" + urllib.parse.urlencode(query)

        data = json.dumps(body).encode() if body is not None else None
        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("Content-Type", "application/json")
        req.add_header("Accept", "application/json")
        req.add_header("Authorization", f"Bearer {self.secret_key}")

        t0 = time.monotonic()
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as exc:
            if stats.identity_stats:
                stats.identity_stats.record_error(f"{method} {path}: {exc.code}")
            err_body = None
            try:
                err_body = json.loads(exc.read())
            except (ValueError, OSError):
                logger.debug("Clerk %s %s error body was not JSON", method, path)
            raise IntegrationError(
                f"Clerk {method} {path} returned {exc.code}",
                status=exc.code,
                body=err_body,
            ) from exc
        except (urllib.error.URLError, TimeoutError, ConnectionError) as exc:
            if stats.identity_stats:
                stats.identity_stats.record_error(str(exc))
            raise IntegrationError(f"Clerk connection failed: {exc}") from exc

        if stats.identity_stats:
            stats.identity_stats.record_call(latency_ms=(time.monotonic() - t0) * 1000)
        return json.loads(raw) if raw else None

    def _get(self, path: str, **kwargs: Any) -> Any:
        return self._request("GET", path, **kwargs)

    def _post(self, path: str, body: dict | None = None, **kwargs: Any) -> Any:
        return self._request("POST", path, body=body, **kwargs)

    def _patch(self, path: str, body: dict | None = None, **kwargs: Any) -> Any:
        return self._request("PATCH", path, body=body, **kwargs)

    def _delete(self, path: str, **kwargs: Any) -> Any:
        return self._request("DELETE", path, **kwargs)

    # -- users ---------------------------------------------------------------

    def list_users(self, limit: int = 100) -> list[dict]:
        """``GET /users``"""
        return self._get("/users", query={"limit": limit, "order_by": "-created_at"}) or []

    def get_user(self, user_id: str) -> dict:
        """``GET /users/{id}``"""
        return self._get(f"/users/{urllib.parse.quote(user_id)}")

    def create_user(
        self,
        email: str,
        first_name: str = "",
        last_name: str = "",
        public_metadata: dict | None = None,
    ) -> dict:
        """``POST /users``"""
        return self._post("/users", body={
            "email_address": [email],
            "first_name": first_name,
            "last_name": last_name,
            "public_metadata": public_metadata or {},
            "skip_password_requirement": True,
        })

    def update_user(self, user_id: str, fields: dict) -> dict:
        """``PATCH /users/{id}``"""
        return self._patch(f"/users/{urllib.parse.quote(user_id)}", body=fields)

    def delete_user(self, user_id: str) -> None:
        """``DELETE /users/{id}``"""
        self._delete(f"/users/{urllib.parse.quote(user_id)}")

    def ban_user(self, user_id: str) -> None:
        """``POST /users/{id}/ban``"""
        self._post(f"/users/{urllib.parse.quote(user_id)}/ban")

    def unban_user(self, user_id: str) -> None:
        """``POST /users/{id}/unban``"""
        self._post(f"/users/{urllib.parse.quote(user_id)}/unban")

    # -- invitations ---------------------------------------------------------

    def create_invitation(self, email: str, public_metadata: dict | None = None) -> dict:
        """``POST /invitations``"""
        return self._post("/invitations", body={
            "email_address": email,
            "public_metadata": public_metadata or {},
        })
