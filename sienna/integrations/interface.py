"""Collaborator interfaces: object storage and the identity provider.

Implementations raise ``IntegrationError`` (from sienna.core.utils) with the
provider's HTTP status when one is available.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ObjectStore(ABC):
    """Binary blob storage for uploaded media. Returns public URLs."""

    @abstractmethod
    def upload(self, data: bytes, filename: str, content_type: str) -> str:
        """Store ``data`` under ``filename`` and return its public URL."""

    @abstractmethod
    def delete(self, url: str) -> None:
        """Delete the object behind a URL previously returned by upload()."""


class IdentityProvider(ABC):
    """Team-member accounts held by an external identity service.

    Users are returned as the provider's raw JSON objects; callers reshape
    them for the dashboard.
    """

    @abstractmethod
    def list_users(self, limit: int = 100) -> list[dict[str, Any]]:
        """Most recently created users first."""

    @abstractmethod
    def get_user(self, user_id: str) -> dict[str, Any]:
        """Fetch one user. Raises IntegrationError(status=404) when absent."""

    @abstractmethod
    def create_user(
        self,
        email: str,
        first_name: str = "",
        last_name: str = "",
        public_metadata: dict | None = None,
    ) -> dict[str, Any]:
        """Create a password-less user who sets credentials on first sign-in."""

    @abstractmethod
    def update_user(self, user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Patch name fields and/or public metadata."""

    @abstractmethod
    def delete_user(self, user_id: str) -> None: ...

    @abstractmethod
    def ban_user(self, user_id: str) -> None: ...

    @abstractmethod
    def unban_user(self, user_id: str) -> None: ...

    @abstractmethod
    def create_invitation(self, email: str, public_metadata: dict | None = None) -> dict[str, Any]:
        """Send a sign-up invitation email."""
