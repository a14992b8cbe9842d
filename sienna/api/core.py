"""Core endpoints: service status."""

from __future__ import annotations

from fastapi import APIRouter

from sienna import __version__
from sienna.core import stats
from sienna.core.services import Services


def register_routes(router: APIRouter, svc: Services, **kw):
    db = svc.db

    @router.get("/status")
    def api_status():
        health = db.health()
        return {
            "status": "healthy" if health["healthy"] else "degraded",
            "version": __version__,
            "env": svc.config.env,
            "database": health,
            "pool": db.pool_stats(),
            "backends": stats.snapshot(),
        }
