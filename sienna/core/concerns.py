"""Hair-concern reads over the hair_issues table."""

from __future__ import annotations

import logging

from sienna.core import timeframe
from sienna.core.aggregation import rows
from sienna.core.utils import ValidationError, to_int

logger = logging.getLogger(__name__)

DEFAULT_CONCERNS = ("Dryness", "Breakage", "Frizz", "Dullness", "Other")


def _require(concern: str | None) -> str:
    if not concern:
        raise ValidationError("concern is required")
    return concern


class HairConcerns:
    def __init__(self, db):
        self.db = db

    def overview(self, token: str | None = None) -> list[dict]:
        """Issue counts per concern. No issues yet -> the five headline concerns at 0."""
        window = timeframe.CONCERN_OVERVIEW.resolve(token)
        found = rows(
            self.db,
            """SELECT issue_description AS concern, COUNT(*) AS count
               FROM hair_issues
               WHERE reported_at >= %s
               GROUP BY issue_description
               ORDER BY count DESC""",
            (window.start,),
        )
        if not found:
            return [{"concern": c, "count": 0} for c in DEFAULT_CONCERNS]
        return [{"concern": r["concern"], "count": to_int(r["count"])} for r in found]

    def trend(self, concern: str | None, token: str | None = None) -> dict:
        """Count over the window and over its first half."""
        concern = _require(concern)
        window = timeframe.CONCERN_TREND.resolve(token)
        start, mid, _ = window.halves()
        row = self.db.execute_one(
            """
            SELECT
                COUNT(*) FILTER (WHERE reported_at >= %(start)s) AS current,
                COUNT(*) FILTER (WHERE reported_at >= %(start)s AND reported_at < %(mid)s) AS previous
            FROM hair_issues
            WHERE issue_description = %(concern)s
            """,
            {"start": start, "mid": mid, "concern": concern},
        ) or {}
        return {"current": to_int(row.get("current")), "previous": to_int(row.get("previous"))}

    def fastest_growing(self) -> dict:
        """Concern with the largest growth over the last two weeks vs the two before."""
        days = timeframe.GROWTH_DAYS
        row = self.db.execute_one(
            """
            WITH windows AS (
                SELECT issue_description AS concern,
                       COUNT(*) FILTER (WHERE reported_at >= %(recent)s) AS current_count,
                       COUNT(*) FILTER (WHERE reported_at >= %(earlier)s
                                          AND reported_at < %(recent)s) AS previous_count
                FROM hair_issues
                WHERE reported_at >= %(earlier)s
                GROUP BY issue_description
            )
            SELECT concern, current_count, previous_count
            FROM windows
            WHERE previous_count > 0 AND current_count > 0
            ORDER BY current_count::float / previous_count DESC
            LIMIT 1
            """,
            {"recent": timeframe.days_ago(days), "earlier": timeframe.days_ago(days * 2)},
        )
        if not row:
            return {"concern": "None", "growth": 0}
        current, previous = to_int(row["current_count"]), to_int(row["previous_count"])
        return {"concern": row["concern"], "growth": round((current - previous) / previous * 100, 2)}

    def users_by_concern(self, concern: str | None, token: str | None = None) -> list[dict]:
        concern = _require(concern)
        window = timeframe.WEEKLY_OR_MONTHLY.resolve(token)
        return rows(
            self.db,
            """SELECT DISTINCT u.user_id, u.name
               FROM hair_issues hi
               JOIN users u ON hi.user_id = u.user_id
               WHERE hi.issue_description = %s AND hi.reported_at >= %s""",
            (concern, window.start),
        )

    def for_conversation(self, conversation_id: int) -> dict:
        found = rows(
            self.db,
            """SELECT hi.issue_description AS concern
               FROM hair_issues hi
               JOIN conversations c ON hi.user_id = c.user_id
               WHERE c.conversation_id = %s""",
            (conversation_id,),
        )
        return {"concerns": [r["concern"] for r in found]}

