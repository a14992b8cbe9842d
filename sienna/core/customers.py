"""Chatbot customers and their hair profiles."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from sienna.core import timeframe
from sienna.core.aggregation import count
from sienna.core.utils import NotFoundError, iso, to_int, to_number
from sienna.storage.database import Database

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
PROFILE_PAGE_SIZE = 12
CONVERSATION_HISTORY_LIMIT = 10
TIMELINE_LIMIT = 20

# Whitelisted sort keys -> SQL expressions.
PROFILE_SORT_COLUMNS = {
    "created_at": "u.created_at",
    "name": "u.name",
    "hair_health_score": "hair_health_score",
    "total_issues": "total_issues",
    "total_conversations": "total_conversations",
    "last_conversation": "last_conversation",
}

PROFILE_FIELDS = (
    "hair_type", "hair_texture", "hair_color", "scalp_condition",
    "hair_length", "hair_porosity", "hair_density", "styling_preference",
)
PROFILE_SEARCH_FIELDS = ("name", "email", "hair_type", "hair_texture", "hair_color", "scalp_condition")

ISSUE_CATEGORIES = (
    ("Dryness", ("dryness",)),
    ("Damage", ("damage",)),
    ("Hair Loss", ("loss", "thinning")),
    ("Scalp Issues", ("scalp",)),
    ("Color Issues", ("color", "fading")),
)
SETTLED_STATUSES = ("resolved", "improved")


def health_score(issue_count: int) -> int:
    """Coarse hair health from the number of reported issues."""
    if issue_count == 0:
        return 100
    if issue_count <= 2:
        return 85
    if issue_count <= 5:
        return 70
    return 50


def issue_category(description: str | None) -> str:
    text = (description or "").lower()
    for name, keywords in ISSUE_CATEGORIES:
        if any(k in text for k in keywords):
            return name
    return "Other"


class Customers:
    """Read access to chatbot users."""

    def __init__(self, db: Database):
        self.db = db

    def list(self, kind: str | None = None) -> list[dict]:
        if kind == "latest":
            return self.db.execute(
                "SELECT * FROM users WHERE created_at >= %s ORDER BY created_at DESC",
                (timeframe.days_ago(timeframe.LATEST_USERS_DAYS),),
            )
        return self.db.execute("SELECT * FROM users ORDER BY created_at DESC")

    def search(self, search: str = "", page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> dict:
        where, params = "", []
        if search:
            where = " WHERE name ILIKE %s OR email ILIKE %s"
            params = [f"%{search}%", f"%{search}%"]
        offset = (max(page, 1) - 1) * limit
        users = self.db.execute(
            f"SELECT * FROM users{where} ORDER BY created_at DESC LIMIT %s OFFSET %s",
            (*params, limit, offset),
        )
        total = count(self.db, f"SELECT COUNT(*) AS count FROM users{where}", tuple(params) or None)
        return {"users": users, "total": total}

    def get(self, user_id: str) -> dict:
        row = self.db.execute_one("SELECT * FROM users WHERE user_id = %s", (user_id,))
        if not row:
            raise NotFoundError("User not found")
        return row

    def stats(self, user_id: str) -> dict:
        row = self.db.execute_one(
            """
            SELECT
                (SELECT COUNT(*) FROM conversations WHERE user_id = %(uid)s) AS conversations,
                (SELECT COALESCE(SUM(jsonb_array_length(chat_history)), 0)
                   FROM conversations WHERE user_id = %(uid)s) AS messages,
                (SELECT COUNT(*) FROM hair_issues WHERE user_id = %(uid)s) AS issues
            """,
            {"uid": user_id},
        ) or {}
        return {
            "totalConversations": to_int(row.get("conversations")),
            "totalMessages": to_int(row.get("messages")),
            "totalHairIssues": to_int(row.get("issues")),
        }


class HairProfiles:
    """Users who completed the hair questionnaire, with issue and chat rollups."""

    def __init__(self, db: Database):
        self.db = db

    def list(
        self,
        search: str = "",
        page: int = 1,
        limit: int = PROFILE_PAGE_SIZE,
        hair_type: str = "",
        hair_texture: str = "",
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> dict:
        conditions, params = [], []
        if search:
            conditions.append(
                "(" + " OR ".join(f"u.{f} ILIKE %s" for f in PROFILE_SEARCH_FIELDS) + ")"
            )
            params.extend([f"%{search}%"] * len(PROFILE_SEARCH_FIELDS))
        if hair_type:
            conditions.append("u.hair_type = %s")
            params.append(hair_type)
        if hair_texture:
            conditions.append("u.hair_texture = %s")
            params.append(hair_texture)
        where = "WHERE u.hair_type IS NOT NULL"
        if conditions:
            where += " AND " + " AND ".join(conditions)

        sort_column = PROFILE_SORT_COLUMNS.get(sort_by, "u.created_at")
        order = "ASC" if (sort_order or "").lower() == "asc" else "DESC"
        page = max(page, 1)
        offset = (page - 1) * limit

        rows = self.db.execute(
            f"""
            SELECT u.user_id, u.name, u.email, u.created_at,
                   {", ".join(f"u.{f}" for f in PROFILE_FIELDS)},
                   COUNT(DISTINCT hi.issue_id) AS total_issues,
                   ARRAY_AGG(DISTINCT hi.issue_description)
                       FILTER (WHERE hi.issue_description IS NOT NULL) AS common_issues,
                   MAX(hi.reported_at) AS last_issue_reported,
                   COUNT(DISTINCT c.conversation_id) AS total_conversations,
                   MAX(c.created_at) AS last_conversation,
                   COUNT(DISTINCT pr.recommendation_id) AS total_recommendations,
                   ARRAY_AGG(DISTINCT pr.product_name)
                       FILTER (WHERE pr.product_name IS NOT NULL) AS recommended_products,
                   CASE
                       WHEN COUNT(DISTINCT hi.issue_id) = 0 THEN 100
                       WHEN COUNT(DISTINCT hi.issue_id) <= 2 THEN 85
                       WHEN COUNT(DISTINCT hi.issue_id) <= 5 THEN 70
                       ELSE 50
                   END AS hair_health_score
            FROM users u
            LEFT JOIN hair_issues hi ON u.user_id = hi.user_id
            LEFT JOIN conversations c ON u.user_id = c.user_id
            LEFT JOIN product_recommendations pr ON u.user_id = pr.user_id
            {where}
            GROUP BY u.user_id
            ORDER BY {sort_column} {order}
            LIMIT %s OFFSET %s
            """,
            (*params, limit, offset),
        )
        total = count(
            self.db, f"SELECT COUNT(*) AS count FROM users u {where}", tuple(params) or None,
        )
        stats = self.db.execute_one(
            """
            SELECT COUNT(*) AS total_profiles,
                   COUNT(DISTINCT hair_type) AS unique_hair_types,
                   COUNT(DISTINCT hair_texture) AS unique_hair_textures,
                   ROUND(AVG(CASE
                       WHEN issues = 0 THEN 100
                       WHEN issues <= 2 THEN 85
                       WHEN issues <= 5 THEN 70
                       ELSE 50
                   END), 1) AS avg_hair_health_score
            FROM (
                SELECT u.user_id, u.hair_type, u.hair_texture,
                       COUNT(DISTINCT hi.issue_id) AS issues
                FROM users u
                LEFT JOIN hair_issues hi ON u.user_id = hi.user_id
                WHERE u.hair_type IS NOT NULL
                GROUP BY u.user_id, u.hair_type, u.hair_texture
            ) profile_stats
            """
        ) or {}

        profiles = [
            {
                **r,
                "common_issues": [i for i in (r.get("common_issues") or []) if i is not None],
                "recommended_products": [
                    p for p in (r.get("recommended_products") or []) if p is not None
                ],
            }
            for r in rows
        ]
        total_pages = math.ceil(total / limit) if limit else 0
        return {
            "profiles": profiles,
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": total_pages,
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
            "statistics": {
                "total_profiles": to_int(stats.get("total_profiles")),
                "unique_hair_types": to_int(stats.get("unique_hair_types")),
                "unique_hair_textures": to_int(stats.get("unique_hair_textures")),
                "avg_hair_health_score": to_number(stats.get("avg_hair_health_score")),
            },
        }

    def get(self, user_id: str) -> dict:
        """One profile with its issue history, recent chats, recommendations and timeline."""
        profile = self.db.execute_one(
            f"""
            SELECT u.user_id, u.name, u.email, u.created_at, u.updated_at,
                   {", ".join(f"u.{f}" for f in PROFILE_FIELDS)},
                   u.chemical_treatments, u.hair_goals,
                   ({" + ".join(f"(u.{f} IS NOT NULL)::int" for f in PROFILE_FIELDS)}) * 12.5
                       AS profile_completeness_score
            FROM users u
            WHERE u.user_id = %s
            """,
            (user_id,),
        )
        if not profile:
            raise NotFoundError("Hair profile not found")

        issues = self.db.execute(
            """SELECT issue_id, issue_description, severity_level, reported_at,
                      resolution_status, notes
               FROM hair_issues WHERE user_id = %s
               ORDER BY reported_at DESC""",
            (user_id,),
        )
        conversations = self.db.execute(
            """SELECT conversation_id, created_at, summary,
                      COALESCE(jsonb_array_length(chat_history), 0) AS message_count
               FROM conversations WHERE user_id = %s
               ORDER BY created_at DESC
               LIMIT %s""",
            (user_id, CONVERSATION_HISTORY_LIMIT),
        )
        recommendations = self.db.execute(
            """SELECT recommendation_id, product_name, product_category, recommended_at,
                      recommendation_reason, effectiveness_rating
               FROM product_recommendations WHERE user_id = %s
               ORDER BY recommended_at DESC""",
            (user_id,),
        )
        timeline = self.db.execute(
            """
            SELECT 'issue' AS event_type, issue_description AS event_title,
                   severity_level AS event_detail, reported_at AS event_date, notes AS event_notes
            FROM hair_issues WHERE user_id = %(uid)s
            UNION ALL
            SELECT 'recommendation', product_name, product_category,
                   recommended_at, recommendation_reason
            FROM product_recommendations WHERE user_id = %(uid)s
            ORDER BY event_date DESC
            LIMIT %(limit)s
            """,
            {"uid": user_id, "limit": TIMELINE_LIMIT},
        )

        recent_cutoff = timeframe.days_ago(timeframe.RECENT_ISSUE_DAYS)
        active = [i for i in issues if i.get("resolution_status") not in SETTLED_STATUSES]
        recent = [i for i in issues if _aware(i.get("reported_at")) >= recent_cutoff]
        score = health_score(len(issues))

        categories: dict[str, int] = {}
        for issue in issues:
            name = issue_category(issue.get("issue_description"))
            categories[name] = categories.get(name, 0) + 1

        if len(recent) > len(active):
            trend = "improving"
        elif len(recent) < len(active):
            trend = "declining"
        else:
            trend = "stable"

        message_total = sum(to_int(c.get("message_count")) for c in conversations)
        return {
            "profile": {
                **profile,
                "profile_completeness_score": to_number(profile.get("profile_completeness_score")),
                "hair_health_score": score,
                "active_issues_count": len(active),
                "recent_issues_count": len(recent),
                "total_conversations": len(conversations),
                "total_recommendations": len(recommendations),
            },
            "issues": issues,
            "conversations": conversations,
            "recommendations": recommendations,
            "timeline": timeline,
            "analytics": {
                "issue_categories": categories,
                "hair_health_trend": {"current_score": score, "trend": trend},
                "engagement_metrics": {
                    "total_conversations": len(conversations),
                    "avg_messages_per_conversation": message_total / (len(conversations) or 1),
                    "last_activity": iso(conversations[0]["created_at"]) if conversations else None,
                },
            },
        }


def _aware(value) -> datetime:
    """Timestamps from TIMESTAMP columns come back naive; treat them as UTC."""
    if not isinstance(value, datetime):
        return datetime.min.replace(tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
