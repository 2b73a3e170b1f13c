"""Pydantic data models for careersync."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


# --- Feed / Posting Models ---

class Coordinates(BaseModel):
    """A geocoded point."""
    lat: float
    lng: float


class RawPosting(BaseModel):
    """One item as parsed from a category feed."""
    req_id: int | None = None
    title: str = ""
    description: str = ""
    post_date: datetime | None = None
    link: str = ""
    location: str = ""
    location_country: str = ""
    location_state: str = ""
    location_city: str = ""


class Posting(BaseModel):
    """A job posting as held by the store."""
    id: int | None = None
    req_id: int | None = None
    title: str = ""
    description: str = ""
    post_date: datetime | None = None
    link: str = ""
    location: str = ""
    location_country: str = ""
    location_state: str = ""
    location_city: str = ""
    category: str = ""
    latitude: float | None = None
    longitude: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    needs_review: bool = False

    @property
    def active(self) -> bool:
        return self.deleted_at is None

    @property
    def coordinates(self) -> Coordinates | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(lat=self.latitude, lng=self.longitude)

    @classmethod
    def from_raw(
        cls,
        raw: RawPosting,
        category: str,
        coordinates: Coordinates | None = None,
    ) -> "Posting":
        """Build a storable posting from a feed item."""
        return cls(
            req_id=raw.req_id,
            title=raw.title,
            description=raw.description,
            post_date=raw.post_date,
            link=raw.link,
            location=raw.location,
            location_country=raw.location_country,
            location_state=raw.location_state,
            location_city=raw.location_city,
            category=category,
            latitude=coordinates.lat if coordinates else None,
            longitude=coordinates.lng if coordinates else None,
            needs_review=raw.req_id is None,
        )


# --- Search Models ---

class SortOrder(str, Enum):
    DATE = "date"
    DATE_DESC = "date_desc"
    TITLE = "title"
    TITLE_DESC = "title_desc"
    LOCATION = "location"
    LOCATION_DESC = "location_desc"
    CATEGORY = "category"
    CATEGORY_DESC = "category_desc"

    @classmethod
    def parse(cls, token: str | None) -> "SortOrder":
        """Map a raw ``o`` token to a sort order, defaulting to post date."""
        try:
            return cls((token or "").strip().lower())
        except ValueError:
            return cls.DATE


class SearchFilter(BaseModel):
    """User-supplied search constraints. Empty fields mean no constraint."""
    keywords: str | None = None
    zip: str | None = None
    category: str | None = None
    location: str | None = None
    sort: SortOrder = SortOrder.DATE
    page: int = Field(default=1, ge=1)


class Page(BaseModel):
    """One page of search results with pagination metadata."""
    items: list[Posting] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 10
    total_pages: int = 0
    next_page: int | None = None
    prev_page: int | None = None


class Facets(BaseModel):
    """Option lists for the search dropdowns."""
    locations: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    selected_location: str | None = None
    selected_category: str | None = None


class SearchResponse(BaseModel):
    postings: Page = Page()
    facets: Facets = Facets()
    error: str | None = None


class LocationAggregate(BaseModel):
    """Posting count and a representative point for one location."""
    location: str
    count: int
    lat: float | None = None
    lng: float | None = None


# --- Sync Models ---

class SyncStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


class CategoryResult(BaseModel):
    """Outcome of one category within a sync run."""
    code: str
    name: str
    fetched: int = 0
    ok: bool = True
    error: str | None = None


class SyncReport(BaseModel):
    """Aggregated counters for one sync run."""
    started_at: datetime
    finished_at: datetime | None = None
    status: SyncStatus = SyncStatus.SUCCESS
    categories: list[CategoryResult] = Field(default_factory=list)
    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    failed_items: int = 0
    missing_req_id: int = 0
    geocode_misses: int = 0
    geocode_failures: int = 0
    deleted: int = 0
    error_message: str | None = None

    @property
    def categories_ok(self) -> int:
        return sum(1 for c in self.categories if c.ok)

    @property
    def categories_failed(self) -> int:
        return sum(1 for c in self.categories if not c.ok)


class BackfillReport(BaseModel):
    """Outcome of a deferred geocoding pass."""
    candidates: int = 0
    updated: int = 0
    geocode_misses: int = 0
    geocode_failures: int = 0
