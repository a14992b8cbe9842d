"""Timeframe token resolution.

Every analytics endpoint accepts a short symbolic ``timeframe`` token and
turns it into a lookback window. Vocabularies and defaults differ per
endpoint and callers depend on those differences, so each endpoint owns a
``TimeframeResolver`` instead of sharing one table.

Resolution is silent and total: a missing token resolves to the endpoint's
default token, an unrecognized token resolves to the endpoint's fallback
day count. Nothing here raises.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


@dataclass(frozen=True)
class TimeWindow:
    token: str
    lookback_days: int
    start: datetime

    @property
    def end(self) -> datetime:
        return self.start + timedelta(days=self.lookback_days)

    def previous(self) -> TimeWindow:
        """The equally long window immediately before this one."""
        return TimeWindow(
            token=self.token,
            lookback_days=self.lookback_days,
            start=self.start - timedelta(days=self.lookback_days),
        )

    def halves(self) -> tuple[datetime, datetime, datetime]:
        """(start, midpoint, end) for comparing the two halves of the window."""
        mid = self.start + timedelta(days=self.lookback_days / 2)
        return self.start, mid, self.end


@dataclass(frozen=True)
class TimeframeResolver:
    """Maps tokens to day counts for one endpoint."""

    vocabulary: dict[str, int]
    default_token: str
    fallback_days: int

    def __post_init__(self):
        if self.default_token not in self.vocabulary:
            raise ValueError(f"default token {self.default_token!r} not in vocabulary")
        if self.fallback_days <= 0 or any(d <= 0 for d in self.vocabulary.values()):
            raise ValueError("lookback days must be positive")

    def days(self, token: str | None) -> int:
        if not token:
            return self.vocabulary[self.default_token]
        return self.vocabulary.get(token, self.fallback_days)

    def resolve(self, token: str | None, now: datetime | None = None) -> TimeWindow:
        now = now or datetime.now(timezone.utc)
        days = self.days(token)
        return TimeWindow(
            token=token or self.default_token,
            lookback_days=days,
            start=now - timedelta(days=days),
        )


# Per-endpoint vocabularies. Month and year are approximated as 30 and 365 days.
DASHBOARD = TimeframeResolver({"24h": 1, "7d": 7, "30d": 30, "90d": 90}, "7d", 7)
MODEL_PERFORMANCE = DASHBOARD
MODEL_USAGE = TimeframeResolver({"24h": 1, "7d": 7, "30d": 30, "90d": 90}, "7d", 7)
COST = TimeframeResolver({"7d": 7, "30d": 30, "90d": 90, "1y": 365}, "30d", 30)
INTELLIGENCE = TimeframeResolver({"1d": 1, "7d": 7, "30d": 30, "90d": 90}, "7d", 7)
CONCERN_OVERVIEW = TimeframeResolver(
    {"Today": 1, "Weekly": 7, "Monthly": 30, "Yearly": 365}, "Today", 1,
)
CONCERN_TREND = TimeframeResolver({"monthly": 30}, "monthly", 365)
WEEKLY_OR_MONTHLY = TimeframeResolver({"weekly": 7}, "weekly", 30)

# Fixed windows used by endpoints without a timeframe parameter.
JOURNEY_DAYS = 30
PROGRESSION_DAYS = 7
GROWTH_DAYS = 14
LATEST_USERS_DAYS = 7
RECENT_ISSUE_DAYS = 30


def days_ago(days: int, now: datetime | None = None) -> datetime:
    return (now or datetime.now(timezone.utc)) - timedelta(days=days)
