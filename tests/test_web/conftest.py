"""Shared fixtures for web tests."""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from careersync.config import CareerSyncConfig, SearchConfig
from careersync.db import add_sync_run, get_session, init_db, reconcile_postings, upsert_posting
from careersync.models import CategoryResult, Posting, SyncReport, SyncStatus
from careersync.web.app import create_app


@pytest.fixture
def web_db(tmp_path):
    """Create a test database and return (engine, db_path)."""
    db_path = str(tmp_path / "test_web.db")
    engine = init_db(db_path)
    return engine, db_path


@pytest.fixture
def web_app(web_db):
    """Create a test FastAPI app with test DB."""
    engine, db_path = web_db

    app = create_app()
    # Override app state with test DB
    app.state.config = CareerSyncConfig(db_path=db_path, search=SearchConfig(page_size=2))
    app.state.engine = engine

    return app


@pytest.fixture
def client(web_app):
    """Create a test client."""
    return TestClient(web_app, raise_server_exceptions=False)


@pytest.fixture
def seeded_client(web_app, web_db):
    """Create a test client with sample postings and one sync run in the database."""
    engine, _ = web_db
    session = get_session(engine)

    postings = [
        Posting(
            req_id=101,
            title="Senior Financial Analyst",
            description="<p>Own the monthly close.</p>",
            post_date=datetime(2026, 9, 1),
            link="https://jobs.example.com/101",
            location="Philadelphia, PA",
            location_city="Philadelphia",
            category="Finance",
            latitude=39.9526,
            longitude=-75.1652,
        ),
        Posting(
            req_id=102,
            title="Corporate Counsel",
            description="<p>Advise on contracts.</p>",
            post_date=datetime(2026, 9, 3),
            link="https://jobs.example.com/102",
            location="Washington, DC",
            category="Legal",
        ),
        Posting(
            req_id=103,
            title="Budget Analyst",
            description="<p>Forecasting.</p>",
            post_date=datetime(2026, 9, 2),
            link="https://jobs.example.com/103",
            location="Philadelphia, PA",
            category="Finance",
        ),
        Posting(
            req_id=104,
            title="Closed Role",
            post_date=datetime(2026, 8, 1),
            location="Miami, FL",
            category="Medicare",
        ),
    ]
    for posting in postings:
        upsert_posting(session, posting, now=datetime(2026, 9, 5))
    reconcile_postings(session, {101, 102, 103}, datetime(2026, 9, 6))

    add_sync_run(session, SyncReport(
        started_at=datetime(2026, 9, 6, 6, 0),
        finished_at=datetime(2026, 9, 6, 6, 2),
        status=SyncStatus.PARTIAL,
        categories=[
            CategoryResult(code="816", name="Finance", fetched=2),
            CategoryResult(code="820", name="Legal", ok=False, error="timed out"),
        ],
        fetched=2,
        updated=2,
        deleted=1,
    ))
    session.commit()
    session.close()

    return TestClient(web_app, raise_server_exceptions=False)
