"""Dashboard team members, held by the identity provider.

The provider owns the accounts. This module forwards the requests and
reshapes provider user objects into the dashboard's camelCase form.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sienna.core.utils import ConflictError, IntegrationError, NotFoundError, ValidationError
from sienna.integrations.clerk import error_code
from sienna.integrations.interface import IdentityProvider

logger = logging.getLogger(__name__)

STATUSES = ("active", "inactive", "suspended")


def user_status(user: dict) -> str:
    if user.get("banned"):
        return "suspended"
    if user.get("locked"):
        return "inactive"
    return "active"


def reshape(user: dict) -> dict:
    addresses = user.get("email_addresses") or []
    first = user.get("first_name") or ""
    last = user.get("last_name") or ""
    metadata = user.get("public_metadata") or {}
    return {
        "id": user.get("id"),
        "email": addresses[0].get("email_address") if addresses else "No email",
        "firstName": first,
        "lastName": last,
        "fullName": f"{first} {last}".strip() or user.get("username") or "Unnamed User",
        "imageUrl": user.get("image_url"),
        "role": metadata.get("role") or "user",
        "status": user_status(user),
        "createdAt": user.get("created_at"),
        "lastSignInAt": user.get("last_sign_in_at"),
        "username": user.get("username"),
    }


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TeamMembers:
    def __init__(self, identity: IdentityProvider | None):
        self.identity = identity

    @property
    def provider(self) -> IdentityProvider:
        if self.identity is None:
            raise IntegrationError("Identity provider is not configured")
        return self.identity

    def _user(self, user_id: str) -> dict:
        try:
            return self.provider.get_user(user_id)
        except IntegrationError as e:
            if e.status == 404:
                raise NotFoundError("User not found") from e
            raise

    def list(self) -> list[dict]:
        return [reshape(u) for u in self.provider.list_users(limit=100)]

    def get(self, user_id: str) -> dict:
        return reshape(self._user(user_id))

    def create(
        self,
        email: str | None,
        first_name: str = "",
        last_name: str = "",
        role: str = "user",
        acting_user: str | None = None,
    ) -> dict:
        """Create the account, then send its sign-up invitation."""
        if not email:
            raise ValidationError("Email is required")
        try:
            user = self.provider.create_user(
                email,
                first_name=first_name or "",
                last_name=last_name or "",
                public_metadata={"role": role, "createdBy": acting_user, "invitedAt": _now()},
            )
        except IntegrationError as e:
            if error_code(e) == "form_identifier_exists":
                raise ConflictError("User with this email already exists") from e
            raise
        self.provider.create_invitation(email, {"role": role, "invitedBy": acting_user})
        logger.info("Invited team member %s as %s", email, role)

        member = reshape(user)
        if member["email"] == "No email":
            member["email"] = email
        member["role"] = (user.get("public_metadata") or {}).get("role") or role
        member["status"] = "active"
        return member

    def update(self, user_id: str, fields: dict, acting_user: str | None = None) -> dict:
        """Apply name, role and status changes; returns the refreshed member.

        Status maps onto provider bans: ``suspended`` bans, ``active`` and
        ``inactive`` lift an existing ban. The provider has no lock call, so
        ``inactive`` does not lock an account.
        """
        patch: dict = {}
        if fields.get("firstName") is not None:
            patch["first_name"] = fields["firstName"]
        if fields.get("lastName") is not None:
            patch["last_name"] = fields["lastName"]
        if fields.get("role") is not None:
            current = self._user(user_id)
            patch["public_metadata"] = {
                **(current.get("public_metadata") or {}),
                "role": fields["role"],
                "updatedBy": acting_user,
                "updatedAt": _now(),
            }
        if patch:
            try:
                self.provider.update_user(user_id, patch)
            except IntegrationError as e:
                if e.status == 404:
                    raise NotFoundError("User not found") from e
                raise

        status = fields.get("status")
        if status is not None:
            if status not in STATUSES:
                raise ValidationError(f"Unknown status: {status}")
            current = self._user(user_id)
            if status != user_status(current):
                if status == "suspended":
                    self.provider.ban_user(user_id)
                elif current.get("banned"):
                    self.provider.unban_user(user_id)
                logger.info("Team member %s status -> %s", user_id, status)

        return reshape(self._user(user_id))

    def delete(self, user_id: str, acting_user: str | None = None) -> None:
        if acting_user and user_id == acting_user:
            raise ValidationError("Cannot delete your own account")
        try:
            self.provider.delete_user(user_id)
        except IntegrationError as e:
            if e.status == 404:
                raise NotFoundError("User not found") from e
            raise
        logger.info("Deleted team member %s", user_id)
