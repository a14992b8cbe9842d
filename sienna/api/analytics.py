"""Aggregate analytics endpoints: dashboard cards, model usage and cost, conversation intelligence, health."""

from __future__ import annotations

from fastapi import APIRouter, Query

from sienna.api.utils import respond
from sienna.core.services import Services


def register_routes(router: APIRouter, svc: Services, **kw):
    dashboard = svc.dashboard
    models = svc.models
    intelligence = svc.intelligence
    journey = svc.journey
    health = svc.health

    @router.get("/dashboard-metrics")
    def api_dashboard_metrics(timeframe: str | None = Query(None)):
        return respond(dashboard.compute(timeframe))

    @router.get("/ai-model-performance")
    def api_model_performance(timeframe: str | None = Query(None)):
        return respond(models.performance(timeframe))

    @router.get("/ai-model-usage")
    def api_model_usage(timeframe: str | None = Query(None)):
        return models.usage(timeframe)

    @router.get("/cost-analytics")
    def api_cost_analytics(timeframe: str | None = Query(None)):
        return respond(models.costs(timeframe))

    @router.get("/conversation-intelligence")
    def api_conversation_intelligence(
        timeframe: str | None = Query(None),
        topic: str | None = Query(None),
    ):
        return respond(intelligence.compute(timeframe, topic))

    @router.get("/user-journey")
    def api_user_journey():
        return respond(journey.compute())

    @router.get("/system-health")
    def api_system_health(service: str | None = Query(None)):
        return health.snapshot(service)
