"""Shared test fixtures for careersync."""

from datetime import datetime

import pytest

from careersync.db import get_session, init_db
from careersync.errors import FeedFetchError, GeocodeError
from careersync.models import Coordinates, Posting, RawPosting


class FakeFetcher:
    """Serves canned RawPostings per category code; codes in ``failing`` raise."""

    def __init__(self, feeds: dict[str, list[RawPosting]] | None = None, failing: set[str] | None = None):
        self.feeds = feeds or {}
        self.failing = failing or set()
        self.calls: list[str] = []

    def fetch(self, category_code: str) -> list[RawPosting]:
        self.calls.append(category_code)
        if category_code in self.failing:
            raise FeedFetchError(category_code, "connection refused")
        return list(self.feeds.get(category_code, []))

    def close(self):
        pass


class FakeGeocoder:
    """Resolves from a fixed table; locations in ``broken`` raise GeocodeError."""

    def __init__(self, points: dict[str, tuple[float, float]] | None = None, broken: set[str] | None = None):
        self.points = points or {}
        self.broken = broken or set()
        self.calls: list[str] = []

    def resolve(self, location_text: str) -> Coordinates | None:
        self.calls.append(location_text)
        if location_text in self.broken:
            raise GeocodeError(f"Timed out geocoding {location_text!r}")
        point = self.points.get(location_text)
        if point is None:
            return None
        return Coordinates(lat=point[0], lng=point[1])

    def close(self):
        pass


@pytest.fixture
def db_engine(tmp_path):
    return init_db(str(tmp_path / "test.db"))


@pytest.fixture
def db_session(db_engine):
    session = get_session(db_engine)
    yield session
    session.close()


@pytest.fixture
def categories():
    return {"816": "Finance", "820": "Legal"}


@pytest.fixture
def raw_finance():
    return RawPosting(
        req_id=101,
        title="Senior Financial Analyst",
        description="<p>Own the monthly close and variance reporting.</p>",
        post_date=datetime(2026, 9, 1, 9, 0),
        link="https://jobs.example.com/101",
        location="Philadelphia, PA",
        location_country="US",
        location_state="PA",
        location_city="Philadelphia",
    )


@pytest.fixture
def raw_legal():
    return RawPosting(
        req_id=102,
        title="Corporate Counsel",
        description="<p>Advise on contracts and regulatory matters.</p>",
        post_date=datetime(2026, 9, 3, 9, 0),
        link="https://jobs.example.com/102",
        location="Washington, DC",
        location_country="US",
        location_state="DC",
        location_city="Washington",
    )


@pytest.fixture
def points():
    return {
        "Philadelphia, PA": (39.9526, -75.1652),
        "Washington, DC": (38.9072, -77.0369),
    }


@pytest.fixture
def make_posting():
    def _make(req_id, **overrides):
        data = {
            "req_id": req_id,
            "title": f"Posting {req_id}",
            "description": "Role description",
            "post_date": datetime(2026, 9, 1),
            "link": f"https://jobs.example.com/{req_id}",
            "location": "Philadelphia, PA",
            "category": "Finance",
        }
        data.update(overrides)
        return Posting(**data)

    return _make


@pytest.fixture
def fetcher(raw_finance, raw_legal):
    return FakeFetcher({"816": [raw_finance], "820": [raw_legal]})


@pytest.fixture
def geocoder(points):
    return FakeGeocoder(points)
