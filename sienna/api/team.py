"""Team management endpoints, backed by the identity provider."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from sienna.api.utils import acting_user
from sienna.core.services import Services


class CreateMemberBody(BaseModel):
    email: str | None = None
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    role: str = "user"


class UpdateMemberBody(BaseModel):
    first_name: str | None = Field(None, alias="firstName")
    last_name: str | None = Field(None, alias="lastName")
    role: str | None = None
    status: Literal["active", "inactive", "suspended"] | None = None


def register_routes(router: APIRouter, svc: Services, **kw):
    team = svc.team
    user_header = svc.config.auth.user_header

    @router.get("/team/users")
    def api_list_members():
        return team.list()

    @router.post("/team/users", status_code=201)
    def api_create_member(body: CreateMemberBody, request: Request):
        return team.create(
            body.email,
            first_name=body.first_name,
            last_name=body.last_name,
            role=body.role,
            acting_user=acting_user(request, user_header),
        )

    @router.get("/team/users/{user_id}")
    def api_get_member(user_id: str):
        return team.get(user_id)

    @router.put("/team/users/{user_id}")
    def api_update_member(user_id: str, body: UpdateMemberBody, request: Request):
        fields = {
            "firstName": body.first_name,
            "lastName": body.last_name,
            "role": body.role,
            "status": body.status,
        }
        return team.update(user_id, fields, acting_user=acting_user(request, user_header))

    @router.delete("/team/users/{user_id}")
    def api_delete_member(user_id: str, request: Request):
        team.delete(user_id, acting_user=acting_user(request, user_header))
        return {"message": "User deleted successfully", "userId": user_id}
