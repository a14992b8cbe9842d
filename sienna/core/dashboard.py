"""Headline dashboard metrics. Ten independent counts over one window."""

from __future__ import annotations

import logging
from datetime import datetime

from sienna.core import timeframe
from sienna.core.aggregation import AggregationQuery, count, scalar
from sienna.core.assembler import Assembled, ResponseAssembler
from sienna.core.utils import pct_change, safe_rate

logger = logging.getLogger(__name__)

KEYS = (
    "totalConversations", "activeUsers", "totalHairProfiles", "conversionRate",
    "avgResponseTime", "growthRate", "productInteractions", "aiModelAccuracy",
    "userSatisfaction", "changes",
)

# Estimated latency: base plus a per-message cost.
RESPONSE_BASE_MS = 800
RESPONSE_PER_MESSAGE_MS = 50
RESPONSE_TIME_UNAVAILABLE_MS = 1250
ACCURACY_FLOOR = 75.0
ACCURACY_DEFAULT = 87.5
SATISFACTION_BASE = 3.5
SATISFACTION_CAP = 4.5
SATISFACTION_DEFAULT = 4.2


def _change(current: int, previous: int) -> str:
    if previous > 0:
        return f"{(current - previous) / previous * 100:.1f}"
    return "100" if current > 0 else "0"


class DashboardMetrics:
    """Computes the flat metrics object behind the dashboard's stat cards."""

    def __init__(self, db):
        self.db = db
        self.aggregation = AggregationQuery(db)

    def _tasks(self, start: datetime, prev_start: datetime) -> dict:
        db = self.db
        return {
            "conversations": lambda: count(
                db, "SELECT COUNT(*) AS count FROM conversations WHERE created_at >= %s", (start,),
            ),
            "active_users": lambda: count(
                db,
                "SELECT COUNT(DISTINCT user_id) AS count FROM conversations WHERE created_at >= %s",
                (start,),
            ),
            "hair_profiles": lambda: count(db, "SELECT COUNT(*) AS count FROM user_hair_profiles"),
            "total_users": lambda: count(db, "SELECT COUNT(*) AS count FROM users"),
            "avg_messages": lambda: scalar(
                db,
                """SELECT AVG(jsonb_array_length(chat_history)) AS avg
                   FROM conversations
                   WHERE created_at >= %s AND chat_history IS NOT NULL""",
                (start,), key="avg",
            ),
            "prev_conversations": lambda: count(
                db,
                "SELECT COUNT(*) AS count FROM conversations WHERE created_at >= %s AND created_at < %s",
                (prev_start, start),
            ),
            "prev_active_users": lambda: count(
                db,
                """SELECT COUNT(DISTINCT user_id) AS count FROM conversations
                   WHERE created_at >= %s AND created_at < %s""",
                (prev_start, start),
            ),
            "interactions": lambda: count(
                db, "SELECT COUNT(*) AS count FROM recommendations WHERE created_at >= %s", (start,),
            ),
            "prev_interactions": lambda: count(
                db,
                "SELECT COUNT(*) AS count FROM recommendations WHERE created_at >= %s AND created_at < %s",
                (prev_start, start),
            ),
            "successful": lambda: count(
                db,
                """SELECT COUNT(DISTINCT c.conversation_id) AS count
                   FROM conversations c
                   JOIN recommendations r ON c.user_id = r.user_id
                   WHERE c.created_at >= %s AND r.created_at >= c.created_at""",
                (start,),
            ),
        }

    def compute(self, token: str | None = None) -> Assembled:
        window = timeframe.DASHBOARD.resolve(token)
        results = self.aggregation.run(self._tasks(window.start, window.previous().start))
        out = ResponseAssembler(KEYS)

        def value(name: str, key: str, default):
            r = results[name]
            if not r.ok:
                out.mark_fallback(key)
                return default
            return r.value

        conversations = out.put("totalConversations", value("conversations", "totalConversations", 0))
        active = out.put("activeUsers", value("active_users", "activeUsers", 0))
        out.put("totalHairProfiles", value("hair_profiles", "totalHairProfiles", 0))

        total_users = value("total_users", "conversionRate", 0)
        out.put("conversionRate", safe_rate(active, total_users))

        if results["avg_messages"].ok:
            avg_messages = results["avg_messages"].value or 1
            out.put("avgResponseTime", round(RESPONSE_BASE_MS + avg_messages * RESPONSE_PER_MESSAGE_MS))
        else:
            out.mark_fallback("avgResponseTime")
            out.put("avgResponseTime", RESPONSE_TIME_UNAVAILABLE_MS)

        if results["prev_conversations"].ok:
            out.put("growthRate", pct_change(conversations, results["prev_conversations"].value))
        else:
            out.mark_fallback("growthRate")
            out.put("growthRate", 0)

        interactions = out.put("productInteractions", value("interactions", "productInteractions", 0))

        if not results["successful"].ok:
            out.mark_fallback("aiModelAccuracy")
            out.put("aiModelAccuracy", ACCURACY_DEFAULT)
        elif conversations > 0:
            rate = safe_rate(results["successful"].value, conversations)
            out.put("aiModelAccuracy", max(rate, ACCURACY_FLOOR))
        else:
            out.put("aiModelAccuracy", ACCURACY_DEFAULT)

        if conversations > 0 and interactions > 0:
            score = min(SATISFACTION_CAP, SATISFACTION_BASE + interactions / conversations)
            out.put("userSatisfaction", round(score, 1))
        else:
            out.put("userSatisfaction", SATISFACTION_DEFAULT)

        prev = ("prev_conversations", "prev_active_users", "prev_interactions")
        if all(results[name].ok for name in prev):
            out.put("changes", {
                "totalConversationsChange": _change(conversations, results["prev_conversations"].value),
                "activeUsersChange": _change(active, results["prev_active_users"].value),
                "productInteractionsChange": _change(interactions, results["prev_interactions"].value),
            })
        else:
            out.mark_fallback("changes")
            out.put("changes", {
                "totalConversationsChange": "0",
                "activeUsersChange": "0",
                "productInteractionsChange": "0",
            })

        return out.build()
