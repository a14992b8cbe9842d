"""Conversation intelligence and the user-journey funnel."""

from __future__ import annotations

import logging
import random
from datetime import datetime

from sienna.core import timeframe
from sienna.core.aggregation import AggregationQuery, count, rows
from sienna.core.assembler import Assembled, ResponseAssembler
from sienna.core.fallback import LITERAL, Fallback
from sienna.core.utils import iso, round_half_up, safe_rate, to_int, to_number

logger = logging.getLogger(__name__)

INTELLIGENCE_KEYS = (
    "timeframe", "topic", "overview", "top_topics",
    "conversation_flow", "sentiment_distribution",
)

TOPIC_RESPONSE_MS = (800, 1300)
ALL_TOPICS = "all"


def _overview_fallback() -> dict:
    return {
        "total_conversations": 156,
        "avg_conversation_length": 8.2,
        "resolution_rate": 87.3,
        "user_satisfaction": 4.2,
        "topic_coverage": 95.0,
        "escalation_rate": 12.7,
    }


def _topics_fallback() -> list[dict]:
    return [
        {"topic": "Hair Dryness", "count": 45, "sentiment": 0.65, "resolution_rate": 89.2,
         "avg_response_time_ms": 1200, "user_satisfaction": 4.1},
        {"topic": "Hair Breakage", "count": 32, "sentiment": 0.58, "resolution_rate": 92.1,
         "avg_response_time_ms": 950, "user_satisfaction": 4.0},
        {"topic": "Scalp Issues", "count": 28, "sentiment": 0.72, "resolution_rate": 85.7,
         "avg_response_time_ms": 1100, "user_satisfaction": 4.3},
        {"topic": "Color Issues", "count": 24, "sentiment": 0.68, "resolution_rate": 88.9,
         "avg_response_time_ms": 1050, "user_satisfaction": 4.2},
        {"topic": "Texture Concerns", "count": 18, "sentiment": 0.75, "resolution_rate": 94.4,
         "avg_response_time_ms": 980, "user_satisfaction": 4.4},
    ]


# (stage, fallback percentage, avg_time_seconds)
FLOW_STAGES = (
    ("Greeting", 100.0, 2),
    ("Problem Identification", 95.2, 15),
    ("Information Gathering", 89.7, 45),
    ("Solution Provided", 87.3, 30),
    ("Confirmation", 82.1, 10),
    ("Completion", 87.3, 5),
)


def _flow_fallback() -> list[dict]:
    return [
        {"stage": name, "percentage": pct, "avg_time_seconds": secs, "order_index": i}
        for i, (name, pct, secs) in enumerate(FLOW_STAGES, start=1)
    ]


def _sentiment_fallback() -> dict:
    return {"positive": 68.2, "neutral": 19.5, "negative": 12.3}


class ConversationIntelligence:
    """Overview, topic mix, flow funnel and sentiment over one window.

    Each of the four sections is its own sub-query; a failed section is
    replaced by a fixed, plausible dataset while the others stay live.
    """

    def __init__(self, db, rng: random.Random | None = None):
        self.db = db
        self.rng = rng or random.Random()
        self.aggregation = AggregationQuery(db)

    def _overview(self, start: datetime) -> dict:
        row = self.db.execute_one(
            """
            WITH conversation_stats AS (
                SELECT COUNT(*) AS total_conversations,
                       AVG(COALESCE(jsonb_array_length(chat_history), 0)) AS avg_length,
                       COUNT(*) FILTER (WHERE summary IS NOT NULL AND summary != '') AS resolved
                FROM conversations
                WHERE created_at >= %(start)s
            ),
            satisfaction AS (
                SELECT AVG(
                    CASE
                        WHEN LENGTH(summary) > 100 THEN 4.5
                        WHEN LENGTH(summary) > 50 THEN 4.0
                        WHEN LENGTH(summary) > 20 THEN 3.5
                        ELSE 3.0
                    END
                ) AS avg_satisfaction
                FROM conversations
                WHERE created_at >= %(start)s AND summary IS NOT NULL
            )
            SELECT cs.total_conversations, cs.avg_length, cs.resolved,
                   COALESCE(s.avg_satisfaction, 3.5) AS user_satisfaction
            FROM conversation_stats cs CROSS JOIN satisfaction s
            """,
            {"start": start},
        ) or {}
        total = to_int(row.get("total_conversations"))
        resolved = to_int(row.get("resolved"))
        return {
            "total_conversations": total,
            "avg_conversation_length": round(to_number(row.get("avg_length")), 1),
            "resolution_rate": safe_rate(resolved, total, digits=1),
            "user_satisfaction": round(to_number(row.get("user_satisfaction"), 3.5), 1),
            "topic_coverage": 95.0,
            "escalation_rate": safe_rate(total - resolved, total, digits=1),
        }

    def _topics(self, start: datetime) -> list[dict]:
        found = rows(
            self.db,
            """
            WITH tagged AS (
                SELECT
                    CASE
                        WHEN LOWER(issue_description) LIKE '%%dry%%'
                          OR LOWER(issue_description) LIKE '%%moisture%%' THEN 'Hair Dryness'
                        WHEN LOWER(issue_description) LIKE '%%break%%'
                          OR LOWER(issue_description) LIKE '%%damage%%' THEN 'Hair Breakage'
                        WHEN LOWER(issue_description) LIKE '%%loss%%'
                          OR LOWER(issue_description) LIKE '%%thin%%' THEN 'Hair Loss'
                        WHEN LOWER(issue_description) LIKE '%%scalp%%'
                          OR LOWER(issue_description) LIKE '%%itch%%' THEN 'Scalp Issues'
                        WHEN LOWER(issue_description) LIKE '%%color%%'
                          OR LOWER(issue_description) LIKE '%%fade%%' THEN 'Color Issues'
                        WHEN LOWER(issue_description) LIKE '%%curl%%'
                          OR LOWER(issue_description) LIKE '%%texture%%' THEN 'Texture Concerns'
                        ELSE 'General Hair Care'
                    END AS topic,
                    resolution_status,
                    CASE
                        WHEN resolution_status = 'resolved' THEN 0.8
                        WHEN resolution_status = 'improved' THEN 0.6
                        WHEN resolution_status = 'ongoing' THEN 0.4
                        ELSE 0.2
                    END AS sentiment_score
                FROM hair_issues
                WHERE reported_at >= %(start)s
            )
            SELECT topic,
                   COUNT(*) AS count,
                   AVG(sentiment_score) AS sentiment,
                   COUNT(*) FILTER (WHERE resolution_status IN ('resolved', 'improved')) AS resolved
            FROM tagged
            GROUP BY topic
            ORDER BY count DESC
            LIMIT 10
            """,
            {"start": start},
        )
        out = []
        for r in found:
            n = to_int(r.get("count"))
            sentiment = to_number(r.get("sentiment"))
            out.append({
                "topic": r["topic"],
                "count": n,
                "sentiment": round(sentiment, 2),
                "resolution_rate": safe_rate(r.get("resolved"), n, digits=1),
                "avg_response_time_ms": round(self.rng.uniform(*TOPIC_RESPONSE_MS)),
                "user_satisfaction": round(3.5 + sentiment * 1.5, 1),
            })
        return out

    def _flow(self, start: datetime) -> list[dict]:
        row = self.db.execute_one(
            """
            SELECT COUNT(*) AS total,
                   COUNT(*) FILTER (WHERE n >= 1) AS identified,
                   COUNT(*) FILTER (WHERE n >= 3) AS gathered,
                   COUNT(*) FILTER (WHERE n >= 5) AS solved,
                   COUNT(*) FILTER (WHERE n >= 7) AS confirmed,
                   COUNT(*) FILTER (WHERE has_summary) AS completed
            FROM (
                SELECT COALESCE(jsonb_array_length(chat_history), 0) AS n,
                       (summary IS NOT NULL AND summary != '') AS has_summary
                FROM conversations
                WHERE created_at >= %(start)s
            ) m
            """,
            {"start": start},
        ) or {}
        total = to_int(row.get("total"))
        reached = [
            100.0,
            safe_rate(row.get("identified"), total, digits=1),
            safe_rate(row.get("gathered"), total, digits=1),
            safe_rate(row.get("solved"), total, digits=1),
            safe_rate(row.get("confirmed"), total, digits=1),
            safe_rate(row.get("completed"), total, digits=1),
        ]
        return [
            {"stage": name, "percentage": pct, "avg_time_seconds": secs, "order_index": i}
            for i, ((name, _, secs), pct) in enumerate(zip(FLOW_STAGES, reached), start=1)
        ]

    def _sentiment(self, start: datetime) -> dict:
        row = self.db.execute_one(
            """
            SELECT COUNT(*) AS total,
                   COUNT(*) FILTER (
                       WHERE LENGTH(COALESCE(summary, '')) > 50
                         AND summary NOT ILIKE '%%problem%%'
                         AND summary NOT ILIKE '%%issue%%'
                         AND summary NOT ILIKE '%%concern%%'
                   ) AS positive,
                   COUNT(*) FILTER (
                       WHERE (LENGTH(COALESCE(summary, '')) BETWEEN 1 AND 50)
                          OR (summary IS NOT NULL AND summary ILIKE '%%okay%%')
                   ) AS neutral,
                   COUNT(*) FILTER (
                       WHERE summary IS NULL
                          OR summary ILIKE '%%problem%%'
                          OR summary ILIKE '%%issue%%'
                          OR summary ILIKE '%%concern%%'
                          OR summary ILIKE '%%frustrated%%'
                   ) AS negative
            FROM conversations
            WHERE created_at >= %(start)s
            """,
            {"start": start},
        ) or {}
        total = to_int(row.get("total"))
        return {
            k: safe_rate(row.get(k), total, digits=1)
            for k in ("positive", "neutral", "negative")
        }

    def compute(self, token: str | None = None, topic: str | None = None) -> Assembled:
        window = timeframe.INTELLIGENCE.resolve(token)
        topic = topic or ALL_TOPICS
        results = self.aggregation.run({
            "overview": lambda: self._overview(window.start),
            "top_topics": lambda: self._topics(window.start),
            "conversation_flow": lambda: self._flow(window.start),
            "sentiment_distribution": lambda: self._sentiment(window.start),
        })

        out = ResponseAssembler(INTELLIGENCE_KEYS)
        out.put("timeframe", window.token)
        out.put("topic", topic)
        out.section("overview", results["overview"],
                    Fallback(_overview_fallback, failure_policy=LITERAL))
        topics = out.section("top_topics", results["top_topics"],
                             Fallback(_topics_fallback, failure_policy=LITERAL))
        if topic != ALL_TOPICS:
            out.put("top_topics", [t for t in topics if t["topic"].lower() == topic.lower()])
        out.section("conversation_flow", results["conversation_flow"],
                    Fallback(_flow_fallback, failure_policy=LITERAL))
        out.section("sentiment_distribution", results["sentiment_distribution"],
                    Fallback(_sentiment_fallback, failure_policy=LITERAL))
        return out.build()


# -- user journey -------------------------------------------------------------

JOURNEY_STAGES = (
    ("Discovery", 1.0),
    ("Hair Analysis", 0.8),
    ("Personalization", 0.65),
    ("Product Discovery", 0.45),
    ("Consultation", 0.25),
    ("Purchase Intent", 0.15),
    ("Checkout", 0.08),
    ("Loyalty", 0.05),
)

# Events per conversation.
EVENT_RATES = {"welcome": 1.2, "query": 2.5, "recommendation": 0.6, "conversion": 0.05}

JOURNEY_KEYS = (
    "totalUsers", "completedJourneys", "conversionRate",
    "stageData", "journeyProgression", "eventCounts",
)


class UserJourney:
    """Eight-stage funnel projected from 30-day unique users.

    Stage sizes follow a fixed retention curve; only the top of the funnel
    and the daily progression come from the store.
    """

    def __init__(self, db):
        self.db = db
        self.aggregation = AggregationQuery(db)

    def compute(self) -> Assembled:
        start = timeframe.days_ago(timeframe.JOURNEY_DAYS)
        progression_start = timeframe.days_ago(timeframe.PROGRESSION_DAYS)
        db = self.db
        results = self.aggregation.run({
            "users": lambda: count(
                db,
                "SELECT COUNT(DISTINCT user_id) AS count FROM conversations WHERE created_at >= %s",
                (start,),
            ),
            "conversations": lambda: count(
                db, "SELECT COUNT(*) AS count FROM conversations WHERE created_at >= %s", (start,),
            ),
            "progression": lambda: rows(
                db,
                """SELECT DATE(created_at) AS date, COUNT(DISTINCT user_id) AS users
                   FROM conversations
                   WHERE created_at >= %s
                   GROUP BY DATE(created_at)
                   ORDER BY date""",
                (progression_start,),
            ),
        })
        out = ResponseAssembler(JOURNEY_KEYS)

        users_result = results["users"]
        if not users_result.ok:
            out.mark_fallback("totalUsers")
        total_users = out.put("totalUsers", users_result.value or 0)

        if total_users > 0:
            stages = [
                {
                    "stage": i,
                    "name": name,
                    "users": round_half_up(total_users * retained),
                    "dropoffRate": 100 if i == 1 else round_half_up(retained * 100),
                }
                for i, (name, retained) in enumerate(JOURNEY_STAGES, start=1)
            ]
        else:
            stages = [
                {"stage": i, "name": name, "users": 0, "dropoffRate": 0}
                for i, (name, _) in enumerate(JOURNEY_STAGES, start=1)
            ]
        out.put("stageData", stages)
        completed = out.put("completedJourneys", stages[-1]["users"])
        out.put("conversionRate", safe_rate(completed, total_users))

        conv_result = results["conversations"]
        if not conv_result.ok:
            out.mark_fallback("eventCounts")
        conversations = conv_result.value or 0
        out.put("eventCounts", {
            name: round_half_up(conversations * rate) for name, rate in EVENT_RATES.items()
        })

        prog_result = results["progression"]
        if not prog_result.ok:
            out.mark_fallback("journeyProgression")
        progression = []
        for r in prog_result.value or []:
            users = to_int(r.get("users"))
            progression.append({
                "date": iso(r.get("date")),
                "users": users,
                "stage1_users": users,
                "stage2_users": round_half_up(users * 0.8),
                "stage3_users": round_half_up(users * 0.65),
                "stage4_users": round_half_up(users * 0.45),
            })
        out.put("journeyProgression", progression)
        return out.build()
