"""Sienna dashboard API server. Entry point for ``sienna-dash``."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from starlette.applications import Starlette

from sienna.config import Config, load_config
from sienna.core.services import Services, create_services
from sienna.storage.database import Database

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("sienna")


def build_app(svc: Services) -> Starlette:
    """Parent app: owns the DB lifecycle and serves the REST API under /api."""
    from sienna.api import create_api

    @asynccontextmanager
    async def lifespan(app):
        try:
            yield
        finally:
            logger.info("Shutting down, closing connection pool")
            svc.db.close()

    app = Starlette(lifespan=lifespan)
    app.mount("/api", create_api(svc))
    return app


def init_services(config: Config) -> Services:
    """Connect the database, apply migrations and build every service."""
    db = Database(config.db)
    db.connect()
    if config.run_migrations:
        db.run_migrations()
    return create_services(config=config, db=db)


def main():
    """Run the dashboard API over HTTP."""
    import uvicorn

    config = load_config()
    svc = init_services(config)
    app = build_app(svc)

    logger.info(
        "Starting Sienna dashboard API on %s:%d (%s, API at /api)",
        config.http_host, config.http_port, config.env,
    )
    uvicorn.run(app, host=config.http_host, port=config.http_port)


if __name__ == "__main__":
    main()
