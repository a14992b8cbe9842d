"""Engagement statistics: counters, per-day series, and chat leaderboards."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from sienna.core import timeframe
from sienna.core.aggregation import count, rows, scalar
from sienna.core.utils import to_int, to_number

logger = logging.getLogger(__name__)

TOP_N = 5
ACTIVE_DAYS = 30
MESSAGES_SERIES_DAYS = 30
NEW_USERS_SERIES_DAYS = 7


def _today() -> date:
    return datetime.now(timezone.utc).date()


def zero_filled(found: list[dict], days: int, today: date | None = None) -> list[dict]:
    """``{x: date, y: count}`` for each of the ``days`` days ending yesterday."""
    today = today or _today()
    by_day = {str(r["date"])[:10]: to_int(r["count"]) for r in found}
    start = today - timedelta(days=days)
    series = []
    for i in range(days):
        day = (start + timedelta(days=i)).isoformat()
        series.append({"x": day, "y": by_day.get(day, 0)})
    return series


class EngagementStats:
    def __init__(self, db):
        self.db = db

    def statistics(self) -> dict:
        db = self.db
        return {
            "totalConversations": count(db, "SELECT COUNT(*) AS count FROM conversations"),
            "activeUsers": count(
                db,
                "SELECT COUNT(DISTINCT user_id) AS count FROM conversations WHERE created_at >= %s",
                (timeframe.days_ago(ACTIVE_DAYS),),
            ),
            "productInteractions": count(db, "SELECT COUNT(*) AS count FROM product_interactions"),
            "hairProfiles": count(db, "SELECT COUNT(*) AS count FROM user_hair_profiles"),
            "commonConcerns": [
                {"concern": r["concern"], "count": to_int(r["count"])}
                for r in rows(
                    db,
                    """SELECT UNNEST(hair_concerns) AS concern, COUNT(*) AS count
                       FROM user_hair_profiles
                       WHERE hair_concerns IS NOT NULL
                       GROUP BY concern
                       ORDER BY count DESC
                       LIMIT %s""",
                    (TOP_N,),
                )
            ],
            "topProducts": [
                {"product_name": r["product_name"], "clicks": to_int(r["clicks"])}
                for r in rows(
                    db,
                    """SELECT product_name, COUNT(*) AS clicks
                       FROM product_interactions
                       GROUP BY product_name
                       ORDER BY clicks DESC
                       LIMIT %s""",
                    (TOP_N,),
                )
            ],
        }

    def today(self) -> dict:
        db, day = self.db, _today()
        return {
            "totalMessagesToday": count(
                db, "SELECT COUNT(*) AS count FROM messages WHERE DATE(created_at) = %s", (day,),
            ),
            "newUsersToday": count(
                db, "SELECT COUNT(*) AS count FROM users WHERE DATE(created_at) = %s", (day,),
            ),
            "servicesRecommendedToday": count(
                db, "SELECT COUNT(*) AS count FROM recommendations WHERE DATE(created_at) = %s", (day,),
            ),
        }

    def user_messages_today(self) -> list[dict]:
        found = rows(
            self.db,
            """SELECT user_id, COUNT(*) AS message_count
               FROM messages
               WHERE DATE(created_at) = %s
               GROUP BY user_id""",
            (_today(),),
        )
        return [{"user_id": r["user_id"], "message_count": to_int(r["message_count"])} for r in found]

    def messages_per_day(self) -> list[dict]:
        found = rows(
            self.db,
            """SELECT DATE(created_at) AS date, COUNT(*) AS count
               FROM conversations
               WHERE created_at >= %s
               GROUP BY DATE(created_at)
               ORDER BY date""",
            (timeframe.days_ago(MESSAGES_SERIES_DAYS + 1),),
        )
        return zero_filled(found, MESSAGES_SERIES_DAYS)

    def new_users_per_day(self) -> list[dict]:
        found = rows(
            self.db,
            """SELECT DATE(created_at) AS date, COUNT(*) AS count
               FROM users
               WHERE created_at >= %s
               GROUP BY DATE(created_at)
               ORDER BY date""",
            (timeframe.days_ago(NEW_USERS_SERIES_DAYS + 1),),
        )
        return zero_filled(found, NEW_USERS_SERIES_DAYS)

    def messages_on(self, day: date) -> dict:
        return {"count": count(
            self.db, "SELECT COUNT(*) AS count FROM messages WHERE DATE(created_at) = %s", (day,),
        )}

    def new_users_on(self, day: date) -> dict:
        return {"count": count(
            self.db, "SELECT COUNT(*) AS count FROM users WHERE DATE(created_at) = %s", (day,),
        )}

    def top_chatters(self, token: str | None = None) -> list[dict]:
        window = timeframe.WEEKLY_OR_MONTHLY.resolve(token)
        found = rows(
            self.db,
            """SELECT u.user_id, u.name, COUNT(*) AS message_count
               FROM messages m
               JOIN users u ON m.user_id = u.user_id
               WHERE m.created_at >= %s
               GROUP BY u.user_id, u.name
               ORDER BY message_count DESC
               LIMIT %s""",
            (window.start, TOP_N),
        )
        return [{**r, "message_count": to_int(r["message_count"])} for r in found]

    def product_recommendations(self, token: str | None = None) -> list[dict]:
        window = timeframe.WEEKLY_OR_MONTHLY.resolve(token)
        found = rows(
            self.db,
            """SELECT product_name, COUNT(*) AS count
               FROM recommendations
               WHERE created_at >= %s
               GROUP BY product_name
               ORDER BY count DESC
               LIMIT %s""",
            (window.start, TOP_N),
        )
        return [{"product_name": r["product_name"], "count": to_int(r["count"])} for r in found]

    def longest_conversation(self) -> dict | None:
        row = self.db.execute_one(
            """SELECT c.user_id, u.name AS user_name,
                      jsonb_array_length(c.chat_history) AS message_count
               FROM conversations c
               LEFT JOIN users u ON c.user_id = u.user_id
               WHERE c.chat_history IS NOT NULL
               ORDER BY jsonb_array_length(c.chat_history) DESC
               LIMIT 1"""
        )
        if not row:
            return None
        return {**row, "message_count": to_int(row["message_count"])}

    def average_conversation_length(self) -> dict:
        avg = scalar(
            self.db,
            "SELECT AVG(jsonb_array_length(chat_history)) AS avg_length FROM conversations",
            key="avg_length",
        )
        return {"avg_length": to_number(avg)}
