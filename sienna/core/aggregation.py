"""Concurrent read-only sub-queries for one analytics response.

An analytics endpoint is a handful of independent aggregate queries over
the same window. They are submitted together, joined before the response
is assembled, and each one fails on its own: an exception is logged once,
recorded on that sub-query's result, and never retried.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable

from sienna.core.utils import to_int, to_number

logger = logging.getLogger(__name__)

MAX_WORKERS = 6


@dataclass
class SubQueryResult:
    name: str
    value: Any = None
    error: str | None = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class AggregationQuery:
    """Fans named sub-queries out over a small thread pool and joins them.

    Each worker thread checks out its own pooled connection through the
    Database thread-local, and hands it back when its task finishes.
    """

    def __init__(self, db, max_workers: int = MAX_WORKERS):
        self.db = db
        self.max_workers = max_workers

    def _run_one(self, name: str, fn: Callable[[], Any]) -> SubQueryResult:
        t0 = time.monotonic()
        try:
            value = fn()
        except Exception as e:
            logger.warning("Sub-query %s failed: %s", name, e, exc_info=True)
            return SubQueryResult(
                name=name, error=str(e) or type(e).__name__,
                elapsed_ms=(time.monotonic() - t0) * 1000,
            )
        finally:
            self.db.release_if_held()
        return SubQueryResult(name=name, value=value, elapsed_ms=(time.monotonic() - t0) * 1000)

    def run(self, tasks: dict[str, Callable[[], Any]]) -> dict[str, SubQueryResult]:
        """Run every task concurrently; return results keyed by task name."""
        if not tasks:
            return {}
        workers = max(1, min(self.max_workers, len(tasks)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="agg") as pool:
            futures = {name: pool.submit(self._run_one, name, fn) for name, fn in tasks.items()}
            return {name: future.result() for name, future in futures.items()}


# -- query helpers ----------------------------------------------------------


def scalar(db, query: str, params: tuple | list | None = None, key: str = "count") -> float:
    """First column of a single-row aggregate, as a number. NULL -> 0."""
    row = db.execute_one(query, params)
    if not row:
        return 0.0
    return to_number(row.get(key))


def count(db, query: str, params: tuple | list | None = None, key: str = "count") -> int:
    return to_int(scalar(db, query, params, key))


def rows(db, query: str, params: tuple | list | None = None) -> list[dict]:
    return list(db.execute(query, params))
