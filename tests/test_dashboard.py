"""Tests for sienna.core.dashboard: headline metrics and their failure defaults."""

import psycopg

from sienna.core.dashboard import KEYS, DashboardMetrics
from helpers import ExplodingDatabase, FakeDatabase, count_row


def _routes(
    conversations=10, active=4, profiles=3, users=8, avg=4.0,
    prev_conversations=5, prev_active=4, interactions=5, prev_interactions=0, successful=9,
):
    # Specific fragments first: several queries share their FROM clause.
    return [
        ("COUNT(DISTINCT c.conversation_id)", count_row(successful)),
        ("FROM recommendations WHERE created_at >= %s AND created_at < %s", count_row(prev_interactions)),
        ("FROM recommendations WHERE created_at >= %s", count_row(interactions)),
        ("COUNT(DISTINCT user_id) AS count FROM conversations WHERE created_at >= %s AND created_at <",
         count_row(prev_active)),
        ("COUNT(DISTINCT user_id)", count_row(active)),
        ("AVG(jsonb_array_length", [{"avg": avg}]),
        ("FROM conversations WHERE created_at >= %s AND created_at < %s", count_row(prev_conversations)),
        ("FROM conversations WHERE created_at >= %s", count_row(conversations)),
        ("FROM user_hair_profiles", count_row(profiles)),
        ("FROM users", count_row(users)),
    ]


class TestDashboardMetrics:
    def test_live_metrics(self):
        result = DashboardMetrics(FakeDatabase(_routes())).compute("7d")
        m = result.payload
        assert list(m) == list(KEYS)
        assert m["totalConversations"] == 10
        assert m["activeUsers"] == 4
        assert m["totalHairProfiles"] == 3
        assert m["conversionRate"] == 50.0
        assert m["avgResponseTime"] == 1000
        assert m["growthRate"] == 100.0
        assert m["productInteractions"] == 5
        assert m["aiModelAccuracy"] == 90.0
        assert m["userSatisfaction"] == 4.0
        assert m["changes"] == {
            "totalConversationsChange": "100.0",
            "activeUsersChange": "0.0",
            "productInteractionsChange": "100",
        }
        assert result.data_source == "live"

    def test_empty_store(self):
        db = FakeDatabase(_routes(
            conversations=0, active=0, profiles=0, users=0, avg=None,
            prev_conversations=0, prev_active=0, interactions=0, prev_interactions=0, successful=0,
        ))
        m = DashboardMetrics(db).compute().payload
        assert m["totalConversations"] == 0
        assert m["conversionRate"] == 0
        assert m["avgResponseTime"] == 850
        assert m["growthRate"] == 0
        assert m["aiModelAccuracy"] == 87.5
        assert m["userSatisfaction"] == 4.2
        assert m["changes"]["totalConversationsChange"] == "0"

    def test_accuracy_has_floor(self):
        db = FakeDatabase(_routes(conversations=10, successful=1))
        assert DashboardMetrics(db).compute().payload["aiModelAccuracy"] == 75.0

    def test_satisfaction_is_capped(self):
        db = FakeDatabase(_routes(conversations=2, interactions=10))
        assert DashboardMetrics(db).compute().payload["userSatisfaction"] == 4.5

    def test_conversion_rate_never_exceeds_100(self):
        db = FakeDatabase(_routes(active=20, users=10))
        assert DashboardMetrics(db).compute().payload["conversionRate"] == 100.0

    def test_window_is_passed_as_parameter(self):
        db = FakeDatabase(_routes())
        DashboardMetrics(db).compute("30d")
        q, params = db.queries("SELECT COUNT(*) AS count FROM conversations WHERE created_at >= %s")[0]
        assert "interval" not in q.lower()
        assert len(params) >= 1

    def test_single_failure_degrades_one_metric(self):
        routes = _routes()
        routes.insert(0, ("AVG(jsonb_array_length", psycopg.OperationalError("timeout")))
        result = DashboardMetrics(FakeDatabase(routes)).compute()
        assert result.payload["avgResponseTime"] == 1250
        assert result.payload["totalConversations"] == 10
        assert result.fallback_sections == ["avgResponseTime"]

    def test_unreachable_store(self):
        result = DashboardMetrics(ExplodingDatabase()).compute()
        m = result.payload
        assert list(m) == list(KEYS)
        assert m["totalConversations"] == 0
        assert m["avgResponseTime"] == 1250
        assert m["aiModelAccuracy"] == 87.5
        assert m["userSatisfaction"] == 4.2
        assert result.degraded
        assert result.data_source.startswith("fallback:")
        assert "totalConversations" in result.fallback_sections


class TestRepeatedReads:
    def test_same_store_same_metrics(self):
        # No jitter on this endpoint, so the whole payload must repeat.
        metrics = DashboardMetrics(FakeDatabase(_routes()))
        first = metrics.compute("30d")
        second = metrics.compute("30d")
        assert first.payload == second.payload
        assert first.data_source == second.data_source == "live"
