"""FastAPI dependency injection for the query API."""

from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from careersync.config import CareerSyncConfig
from careersync.db import get_session as db_get_session
from careersync.search.service import SearchService


def get_config(request: Request) -> CareerSyncConfig:
    """Get configuration from app state."""
    return request.app.state.config


def get_db(request: Request) -> Generator[Session, None, None]:
    """Get a database session, auto-closed after request."""
    session = db_get_session(request.app.state.engine)
    try:
        yield session
    finally:
        session.close()


def get_search_service(
    session: Session = Depends(get_db),
    config: CareerSyncConfig = Depends(get_config),
) -> SearchService:
    """Search service bound to the request's session."""
    return SearchService(session, page_size=config.search.page_size)
