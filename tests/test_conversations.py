"""Tests for sienna.core.conversations."""

from sienna.core.conversations import Conversations, Corrections
from helpers import FakeDatabase


class TestConversations:
    def test_list_all(self):
        db = FakeDatabase([("FROM conversations", [{"conversation_id": 1}])])
        assert Conversations(db).list() == [{"conversation_id": 1}]
        q, params = db.calls[0]
        assert "ILIKE" not in q
        assert params is None

    def test_search(self):
        db = FakeDatabase()
        Conversations(db).list("frizz")
        q, params = db.calls[0]
        assert "user_id ILIKE %s OR summary ILIKE %s" in q
        assert params == ("%frizz%", "%frizz%")


class TestCorrections:
    def test_list_all(self):
        db = FakeDatabase([("FROM corrections", [{"id": 1}, {"id": 2}])])
        assert Corrections(db).list() == [{"id": 1}, {"id": 2}]

    def test_list_for_conversation(self):
        db = FakeDatabase()
        Corrections(db).list(conversation_id=7)
        _, params = db.queries("WHERE conversation_id = %s")[0]
        assert params == (7,)

    def test_create_commits(self):
        row = {"id": 4, "conversation_id": 7, "message_index": 2, "correction_note": "Wrong product"}
        db = FakeDatabase([("INSERT INTO corrections", [row])])
        assert Corrections(db).create(7, 2, "Wrong product") == row
        assert db.commits == 1
