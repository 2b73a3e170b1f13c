"""FastAPI application factory for the careersync query API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from careersync.config import load_config
from careersync.db import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize DB and config, and optionally start the sync scheduler."""
    config = load_config()
    engine = init_db(config.effective_database_url)

    app.state.config = config
    app.state.engine = engine

    scheduler = None
    if config.scheduler.enabled:
        from careersync.scheduler.scheduler import start_scheduler

        try:
            scheduler = start_scheduler(config, engine)
            app.state.scheduler = scheduler
        except ValueError as e:
            logger.warning("Scheduler not started: %s", e)

    yield

    if scheduler is not None:
        from careersync.scheduler.scheduler import stop_scheduler

        stop_scheduler(scheduler)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(title="careersync", lifespan=lifespan)

    from careersync.web.routes import router

    app.include_router(router)

    return app
