"""Hair-concern and engagement read endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query

from sienna.api.utils import parse_day
from sienna.core.services import Services


def register_routes(router: APIRouter, svc: Services, **kw):
    concerns = svc.concerns
    engagement = svc.engagement

    @router.get("/hair-concerns-overview")
    def api_concerns_overview(timeframe: str | None = Query(None)):
        return concerns.overview(timeframe)

    @router.get("/hair-concern-trend")
    def api_concern_trend(
        concern: str | None = Query(None),
        timeframe: str | None = Query(None),
    ):
        return concerns.trend(concern, timeframe)

    @router.get("/fastest-growing-concern")
    def api_fastest_growing():
        return concerns.fastest_growing()

    @router.get("/users-by-concern")
    def api_users_by_concern(
        concern: str | None = Query(None),
        timeframe: str | None = Query(None),
    ):
        return concerns.users_by_concern(concern, timeframe)

    @router.get("/top-chatters")
    def api_top_chatters(timeframe: str | None = Query(None)):
        return engagement.top_chatters(timeframe)

    @router.get("/product-recommendations")
    def api_product_recommendations(timeframe: str | None = Query(None)):
        return engagement.product_recommendations(timeframe)

    @router.get("/statistics")
    def api_statistics():
        return engagement.statistics()

    @router.get("/statistics/today")
    def api_statistics_today():
        return engagement.today()

    @router.get("/statistics/user-messages")
    def api_user_messages_today():
        return engagement.user_messages_today()

    @router.get("/messages-per-day")
    def api_messages_per_day():
        return engagement.messages_per_day()

    @router.get("/new-users-per-day")
    def api_new_users_per_day():
        return engagement.new_users_per_day()

    @router.get("/messages-by-date")
    def api_messages_by_date(date: str | None = Query(None)):
        return engagement.messages_on(parse_day(date))

    @router.get("/new-users-by-date")
    def api_new_users_by_date(date: str | None = Query(None)):
        return engagement.new_users_on(parse_day(date))

    @router.get("/longest-conversation")
    def api_longest_conversation():
        return engagement.longest_conversation()

    @router.get("/average-conversation-length")
    def api_average_conversation_length():
        return engagement.average_conversation_length()
