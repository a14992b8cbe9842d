"""In-process call stats for external collaborators (LLM, identity provider, object store).

Thread-safe, in-memory only; counters reset on restart. Reported by ``GET /api/status``.
"""

import threading
from collections import deque
from datetime import datetime, timezone


class BackendStats:
    """Calls, errors, latency and token estimates for one external backend."""

    def __init__(self, backend: str, model: str = ""):
        self.backend = backend
        self.model = model
        self._lock = threading.RLock()
        self._calls = 0
        self._tokens_est = 0
        self._errors = 0
        self._latency_total_ms = 0.0
        self._last_call: datetime | None = None
        self._last_error: datetime | None = None
        self._last_error_msg: str | None = None
        # Last 5 outcomes, True = success
        self._recent: deque[bool] = deque(maxlen=5)

    def record_call(self, tokens_est: int = 0, latency_ms: float = 0.0) -> None:
        with self._lock:
            self._calls += 1
            self._tokens_est += tokens_est
            self._latency_total_ms += latency_ms
            self._last_call = datetime.now(timezone.utc)
            self._recent.append(True)

    def record_error(self, msg: str = "") -> None:
        with self._lock:
            self._errors += 1
            self._last_error = datetime.now(timezone.utc)
            self._last_error_msg = msg
            self._recent.append(False)

    @property
    def health(self) -> str:
        with self._lock:
            if not self._recent:
                return "unknown"
            recent = list(self._recent)
        if len(recent) >= 3 and not any(recent[-3:]):
            return "unhealthy"
        if not all(recent):
            return "degraded"
        return "healthy"

    @property
    def avg_latency_ms(self) -> float:
        with self._lock:
            return round(self._latency_total_ms / self._calls, 1) if self._calls else 0.0

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "backend": self.backend,
                "model": self.model or None,
                "health": self.health,
                "stats": {
                    "calls": self._calls,
                    "errors": self._errors,
                    "tokens_est": self._tokens_est,
                    "avg_latency_ms": self.avg_latency_ms,
                    "last_call": self._last_call.isoformat() if self._last_call else None,
                    "last_error": self._last_error.isoformat() if self._last_error else None,
                    "last_error_msg": self._last_error_msg,
                },
            }


# Singletons, set by create_services() for each configured backend
llm_stats: BackendStats | None = None
identity_stats: BackendStats | None = None
storage_stats: BackendStats | None = None


def init_llm_stats(backend: str, model: str) -> BackendStats:
    global llm_stats
    llm_stats = BackendStats(backend, model)
    return llm_stats


def init_identity_stats(backend: str) -> BackendStats:
    global identity_stats
    identity_stats = BackendStats(backend)
    return identity_stats


def init_storage_stats(backend: str) -> BackendStats:
    global storage_stats
    storage_stats = BackendStats(backend)
    return storage_stats


def snapshot() -> dict:
    """Stats for every backend; None for those not configured."""
    return {
        "llm": llm_stats.to_dict() if llm_stats else None,
        "identity": identity_stats.to_dict() if identity_stats else None,
        "storage": storage_stats.to_dict() if storage_stats else None,
    }
