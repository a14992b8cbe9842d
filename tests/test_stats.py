"""Tests for sienna.core.stats: BackendStats thread-safe counters."""

import sienna.core.stats as stats_module
from sienna.core.stats import BackendStats, init_identity_stats, init_llm_stats, init_storage_stats


class TestBackendStats:
    def test_initial_state(self):
        s = BackendStats("gemini", "gemini-2.0-flash")
        assert s.backend == "gemini"
        assert s.model == "gemini-2.0-flash"
        assert s.health == "unknown"
        assert s.avg_latency_ms == 0.0

    def test_record_call(self):
        s = BackendStats("gemini", "gemini-2.0-flash")
        s.record_call(tokens_est=100, latency_ms=40.0)
        assert s.health == "healthy"
        d = s.to_dict()
        assert d["stats"]["calls"] == 1
        assert d["stats"]["tokens_est"] == 100
        assert d["stats"]["errors"] == 0
        assert d["stats"]["last_call"] is not None

    def test_record_error(self):
        s = BackendStats("clerk")
        s.record_call()
        s.record_error("429 Too Many Requests")
        assert s.health == "degraded"
        d = s.to_dict()
        assert d["stats"]["errors"] == 1
        assert d["stats"]["last_error_msg"] == "429 Too Many Requests"

    def test_unhealthy_after_3_consecutive_errors(self):
        s = BackendStats("s3")
        for msg in ("e1", "e2", "e3"):
            s.record_error(msg)
        assert s.health == "unhealthy"

    def test_healthy_after_window_clears(self):
        s = BackendStats("s3")
        s.record_error("old")
        for _ in range(5):
            s.record_call()
        assert s.health == "healthy"

    def test_average_latency(self):
        s = BackendStats("gemini")
        s.record_call(latency_ms=100.0)
        s.record_call(latency_ms=50.0)
        assert s.avg_latency_ms == 75.0

    def test_model_omitted(self):
        assert BackendStats("clerk").to_dict()["model"] is None


class TestSingletons:
    def test_init_sets_module_globals(self):
        try:
            llm = init_llm_stats("openai", "gpt-4o-mini")
            identity = init_identity_stats("clerk")
            storage = init_storage_stats("s3")
            assert stats_module.llm_stats is llm
            assert stats_module.identity_stats is identity
            assert stats_module.storage_stats is storage
            snap = stats_module.snapshot()
            assert snap["llm"]["model"] == "gpt-4o-mini"
            assert snap["identity"]["backend"] == "clerk"
            assert snap["storage"]["health"] == "unknown"
        finally:
            stats_module.llm_stats = None
            stats_module.identity_stats = None
            stats_module.storage_stats = None

    def test_snapshot_unconfigured(self, monkeypatch):
        for name in ("llm_stats", "identity_stats", "storage_stats"):
            monkeypatch.setattr(stats_module, name, None)
        assert stats_module.snapshot() == {"llm": None, "identity": None, "storage": None}
