"""Conversation transcripts and the reviewer corrections attached to them."""

from __future__ import annotations

import logging

from sienna.storage.database import Database

logger = logging.getLogger(__name__)


class Conversations:
    def __init__(self, db: Database):
        self.db = db

    def list(self, search: str | None = None) -> list[dict]:
        """All conversations, newest first. ``search`` matches user id or summary."""
        query = "SELECT conversation_id, user_id, created_at, summary FROM conversations"
        params: tuple = ()
        if search:
            query += " WHERE user_id ILIKE %s OR summary ILIKE %s"
            params = (f"%{search}%", f"%{search}%")
        query += " ORDER BY created_at DESC"
        return self.db.execute(query, params or None)


class Corrections:
    """Reviewer notes flagging a specific bot message as wrong."""

    def __init__(self, db: Database):
        self.db = db

    def list(self, conversation_id: int | None = None) -> list[dict]:
        if conversation_id is not None:
            return self.db.execute(
                """SELECT id, conversation_id, message_index, correction_note, created_at
                   FROM corrections
                   WHERE conversation_id = %s
                   ORDER BY created_at DESC""",
                (conversation_id,),
            )
        return self.db.execute(
            """SELECT id, conversation_id, message_index, correction_note, created_at
               FROM corrections
               ORDER BY created_at DESC"""
        )

    def create(self, conversation_id: int, message_index: int, correction_note: str) -> dict:
        row = self.db.execute_one(
            """INSERT INTO corrections (conversation_id, message_index, correction_note)
               VALUES (%s, %s, %s)
               RETURNING *""",
            (conversation_id, message_index, correction_note),
        )
        self.db.commit()
        logger.info(
            "Correction %s recorded for conversation %s message %s",
            row["id"], conversation_id, message_index,
        )
        return row
