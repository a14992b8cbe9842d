"""PostgreSQL access for the dashboard: a pool with one connection per thread.

Request handlers run in the uvicorn threadpool and analytics endpoints fan
their sub-queries out to worker threads, so a connection is never shared
between threads. The first query on a thread checks a connection out of the
pool; ``commit()``, ``rollback()`` or ``release_if_held()`` hands it back.
A connection left in a failed transaction is rolled back before reuse.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

import psycopg
from psycopg.pq import TransactionStatus
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from sienna.config import DatabaseConfig

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

_OPEN_TRANSACTION = (TransactionStatus.INTRANS, TransactionStatus.INERROR)

_MIGRATIONS_TABLE = """
    CREATE TABLE IF NOT EXISTS _migrations (
        id SERIAL PRIMARY KEY,
        filename VARCHAR(255) UNIQUE NOT NULL,
        applied_at TIMESTAMPTZ DEFAULT NOW()
    )
"""


class Database:
    """Connection pool plus the per-thread checkout the engines query through."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._pool: ConnectionPool | None = None
        self._local = threading.local()

    # -- lifecycle ------------------------------------------------------------

    def connect(self) -> None:
        self._pool = ConnectionPool(
            self.config.dsn,
            min_size=self.config.pool_min_size,
            max_size=self.config.pool_max_size,
            kwargs={"row_factory": dict_row, "autocommit": False},
        )
        self._pool.wait()
        logger.info(
            "Connected to %s:%s/%s (pool %d..%d)",
            self.config.host, self.config.port, self.config.name,
            self.config.pool_min_size, self.config.pool_max_size,
        )

    def close(self) -> None:
        self._give_back()
        if self._pool is not None:
            self._pool.close()
            self._pool = None
            logger.info("Connection pool closed")

    # -- per-thread checkout --------------------------------------------------

    def _held(self) -> psycopg.Connection | None:
        held = getattr(self._local, "conn", None)
        if held is None or held.closed:
            return None
        return held

    @property
    def conn(self) -> psycopg.Connection:
        """This thread's connection, checked out of the pool on first use."""
        held = self._held()
        if held is not None:
            if held.info.transaction_status == TransactionStatus.INERROR:
                logger.warning("Discarding failed transaction left on this thread's connection")
                held.rollback()
            return held
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        self._local.conn = self._pool.getconn()
        return self._local.conn

    def _give_back(self) -> None:
        held = getattr(self._local, "conn", None)
        self._local.conn = None
        if held is None or self._pool is None:
            return
        try:
            self._pool.putconn(held)
        except (psycopg.Error, ValueError):
            logger.warning("Could not return connection to the pool", exc_info=True)

    def release_if_held(self) -> None:
        """Hand back a connection still sitting in an open transaction.

        Reads never commit, so request boundaries and analytics worker tasks
        call this to stop the connection idling in a transaction. Does nothing
        once commit() or rollback() has already returned it.
        """
        held = self._held()
        if held is None or held.info.transaction_status not in _OPEN_TRANSACTION:
            return
        try:
            held.rollback()
        except psycopg.Error:
            logger.warning("Rollback failed while releasing connection", exc_info=True)
        self._give_back()

    # -- queries --------------------------------------------------------------

    def _run(self, query: str, params, one: bool):
        with self.conn.cursor() as cur:
            cur.execute(query, params)
            if cur.description is None:
                return None if one else []
            return cur.fetchone() if one else cur.fetchall()

    def execute(self, query: str, params: tuple | list | dict | None = None) -> list[dict]:
        """Run a statement; rows as dicts, empty for statements without a result."""
        return self._run(query, params, one=False)

    def execute_one(self, query: str, params: tuple | list | dict | None = None) -> dict | None:
        return self._run(query, params, one=True)

    def commit(self) -> None:
        self.conn.commit()
        self._give_back()

    def rollback(self) -> None:
        self.conn.rollback()
        self._give_back()

    # -- health ---------------------------------------------------------------

    def pool_stats(self) -> dict:
        """Connection counts for the system-health payload."""
        raw = self._pool.get_stats() if self._pool is not None else {}
        return {
            "total_connections": raw.get("pool_size", 0),
            "idle_connections": raw.get("pool_available", 0),
            "waiting_requests": raw.get("requests_waiting", 0),
        }

    def health(self) -> dict:
        """Time a ``SELECT 1``. Failures are reported in the result, not raised."""
        t0 = time.monotonic()
        error = None
        try:
            self.execute_one("SELECT 1 AS ok")
            self.rollback()
        except (psycopg.Error, RuntimeError) as e:
            logger.warning("Database health check failed: %s", e)
            self.release_if_held()
            error = str(e)
        return {
            "healthy": error is None,
            "response_time_ms": round((time.monotonic() - t0) * 1000),
            "error": error,
        }

    # -- migrations -----------------------------------------------------------

    def _pending_migrations(self) -> list[Path]:
        self.execute(_MIGRATIONS_TABLE)
        self.commit()
        done = {row["filename"] for row in self.execute("SELECT filename FROM _migrations")}
        self.release_if_held()
        return [p for p in sorted(MIGRATIONS_DIR.glob("*.sql")) if p.name not in done]

    def run_migrations(self) -> None:
        """Apply each pending ``migrations/*.sql`` file in its own transaction."""
        pending = self._pending_migrations()
        for path in pending:
            logger.info("Applying migration %s", path.name)
            try:
                self.execute(path.read_text())
                self.execute("INSERT INTO _migrations (filename) VALUES (%s)", (path.name,))
                self.commit()
            except psycopg.Error:
                self.rollback()
                logger.exception("Migration failed: %s", path.name)
                raise
        logger.info("Migrations up to date (%d applied now)", len(pending))
