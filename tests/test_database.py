"""Tests for sienna.storage.database: per-thread checkout, release and health."""

from unittest.mock import MagicMock

import psycopg
import pytest
from psycopg.pq import TransactionStatus

from sienna.config import DatabaseConfig
from sienna.storage.database import Database


def _conn(status=TransactionStatus.INTRANS, rows=None):
    conn = MagicMock()
    conn.closed = False
    conn.info.transaction_status = status
    cur = conn.cursor.return_value.__enter__.return_value
    cur.description = [("count",)]
    cur.fetchall.return_value = rows or []
    cur.fetchone.return_value = (rows or [None])[0]
    return conn


def _db(conn):
    db = Database(DatabaseConfig())
    db._pool = MagicMock()
    db._pool.getconn.return_value = conn
    return db


class TestCheckout:
    def test_not_connected(self):
        with pytest.raises(RuntimeError, match="connect"):
            Database(DatabaseConfig()).execute("SELECT 1")

    def test_execute_returns_rows(self):
        conn = _conn(rows=[{"count": 3}])
        db = _db(conn)
        assert db.execute("SELECT COUNT(*) AS count FROM users") == [{"count": 3}]
        assert db.execute_one("SELECT COUNT(*) AS count FROM users") == {"count": 3}
        db._pool.getconn.assert_called_once()  # reused on the same thread

    def test_statement_without_result(self):
        conn = _conn()
        conn.cursor.return_value.__enter__.return_value.description = None
        db = _db(conn)
        assert db.execute("UPDATE products SET price = 1") == []
        assert db.execute_one("UPDATE products SET price = 1") is None

    def test_commit_returns_connection(self):
        conn = _conn()
        db = _db(conn)
        db.execute("DELETE FROM testimonials WHERE testimonial_id = %s", (1,))
        db.commit()
        conn.commit.assert_called_once()
        db._pool.putconn.assert_called_once_with(conn)

    def test_failed_transaction_rolled_back_before_reuse(self):
        conn = _conn()
        db = _db(conn)
        db.execute("SELECT 1")
        conn.info.transaction_status = TransactionStatus.INERROR
        db.execute("SELECT 1")
        conn.rollback.assert_called_once()


class TestReleaseIfHeld:
    def test_open_transaction_is_released(self):
        conn = _conn()
        db = _db(conn)
        db.execute("SELECT 1")
        db.release_if_held()
        conn.rollback.assert_called_once()
        db._pool.putconn.assert_called_once_with(conn)

    def test_idle_connection_is_kept(self):
        conn = _conn(status=TransactionStatus.IDLE)
        db = _db(conn)
        db.execute("SELECT 1")
        db.release_if_held()
        db._pool.putconn.assert_not_called()

    def test_nothing_held(self):
        db = _db(_conn())
        db.release_if_held()
        db._pool.putconn.assert_not_called()


class TestHealth:
    def test_healthy(self):
        db = _db(_conn(rows=[{"ok": 1}]))
        health = db.health()
        assert health["healthy"] is True
        assert health["error"] is None
        assert health["response_time_ms"] >= 0

    def test_unreachable(self):
        db = _db(_conn())
        db._pool.getconn.side_effect = psycopg.OperationalError("connection refused")
        health = db.health()
        assert health["healthy"] is False
        assert "connection refused" in health["error"]

    def test_pool_stats(self):
        db = _db(_conn())
        db._pool.get_stats.return_value = {"pool_size": 4, "pool_available": 3}
        assert db.pool_stats() == {"total_connections": 4, "idle_connections": 3, "waiting_requests": 0}

    def test_pool_stats_before_connect(self):
        assert Database(DatabaseConfig()).pool_stats() == {
            "total_connections": 0, "idle_connections": 0, "waiting_requests": 0,
        }
