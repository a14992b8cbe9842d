"""Conversation, correction, customer and hair-profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from sienna.core.services import Services


class CorrectionBody(BaseModel):
    conversation_id: int
    message_index: int = Field(ge=0)
    correction_note: str = Field(min_length=1)


def register_routes(router: APIRouter, svc: Services, **kw):
    conversations = svc.conversations
    corrections = svc.corrections
    concerns = svc.concerns
    customers = svc.customers
    profiles = svc.profiles

    @router.get("/conversations")
    def api_list_conversations(search: str = Query("")):
        return conversations.list(search)

    @router.get("/conversation-concerns")
    def api_conversation_concerns(conversation_id: int = Query(...)):
        return concerns.for_conversation(conversation_id)

    @router.get("/corrections")
    def api_list_corrections(conversation_id: int | None = Query(None)):
        return {"corrections": corrections.list(conversation_id)}

    @router.post("/corrections")
    def api_create_correction(body: CorrectionBody):
        row = corrections.create(body.conversation_id, body.message_index, body.correction_note)
        return {"message": "Correction created successfully", "correction": row}

    # -- customers -------------------------------------------------------------

    @router.get("/users")
    def api_list_users(type: str | None = Query(None)):
        return customers.list(type)

    @router.get("/all-users")
    def api_search_users(
        search: str = Query(""),
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
    ):
        return customers.search(search=search, page=page, limit=limit)

    @router.get("/users/{user_id}")
    def api_get_user(user_id: str):
        return customers.get(user_id)

    @router.get("/users/{user_id}/stats")
    def api_user_stats(user_id: str):
        return customers.stats(user_id)

    # -- hair profiles ---------------------------------------------------------

    @router.get("/hair-profiles")
    def api_list_profiles(
        search: str = Query(""),
        page: int = Query(1, ge=1),
        limit: int = Query(12, ge=1, le=100),
        hair_type: str = Query("", alias="hairType"),
        hair_texture: str = Query("", alias="hairTexture"),
        sort_by: str = Query("created_at", alias="sortBy"),
        sort_order: str = Query("desc", alias="sortOrder"),
    ):
        return profiles.list(
            search=search, page=page, limit=limit,
            hair_type=hair_type, hair_texture=hair_texture,
            sort_by=sort_by, sort_order=sort_order,
        )

    @router.get("/hair-profiles/{user_id}")
    def api_get_profile(user_id: str):
        return profiles.get(user_id)
