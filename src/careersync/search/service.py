"""Search query service: filter normalisation, pagination and facets."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from careersync.db import (
    distinct_values,
    get_active_posting,
    latest_for_category,
    location_aggregates,
    query_postings,
)
from careersync.models import (
    Facets,
    LocationAggregate,
    Page,
    Posting,
    SearchFilter,
    SearchResponse,
    SortOrder,
)

logger = logging.getLogger(__name__)

SEARCH_UNAVAILABLE = "Search is temporarily unavailable"

_ZIP_RE = re.compile(r"^\d{5}(?:-\d{4})?$")
_MAX_KEYWORDS = 200


def _clean(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _clean_keywords(value) -> str | None:
    # Location and category are matched exactly, so only keywords are cut.
    text = _clean(value)
    if text is None:
        return None
    return text[:_MAX_KEYWORDS].rstrip()


def _parse_page(value) -> int:
    try:
        page = int(str(value).strip())
    except (TypeError, ValueError):
        return 1
    return page if page >= 1 else 1


def normalize_filter(params: Mapping) -> SearchFilter:
    """Build a SearchFilter from raw request parameters.

    Accepts ``keywords``, ``zip``, ``category``, ``location``, ``spage`` (or
    ``page``) and ``o``. Blank or malformed values mean "no constraint".
    """
    zip_code = _clean(params.get("zip"))
    if zip_code and not _ZIP_RE.match(zip_code):
        logger.debug("Ignoring malformed zip %r", zip_code)
        zip_code = None
    if zip_code:
        zip_code = zip_code[:5]

    return SearchFilter(
        keywords=_clean_keywords(params.get("keywords")),
        zip=zip_code,
        category=_clean(params.get("category")),
        location=_clean(params.get("location")),
        sort=SortOrder.parse(_clean(params.get("o"))),
        page=_parse_page(params.get("spage", params.get("page"))),
    )


def paginate(items: list[Posting], total: int, page: int, page_size: int) -> Page:
    """Wrap one page of results with page numbers for navigation."""
    total_pages = math.ceil(total / page_size) if total else 0
    return Page(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        next_page=page + 1 if page < total_pages else None,
        prev_page=min(page - 1, total_pages) if page > 1 and total_pages else None,
    )


class SearchService:
    """Read-only queries over active postings for the search front end."""

    def __init__(self, session: Session, page_size: int = 10) -> None:
        self.session = session
        self.page_size = page_size

    def search(self, search: SearchFilter | Mapping) -> SearchResponse:
        """Run a filtered, paginated search and attach facet lists.

        Storage errors are logged and reported as an empty response with
        ``error`` set.
        """
        if not isinstance(search, SearchFilter):
            search = normalize_filter(search)

        try:
            items, total = query_postings(self.session, search, page=search.page, page_size=self.page_size)
            facets = self.facets(search.location, search.category)
        except SQLAlchemyError:
            logger.exception("Search query failed")
            self.session.rollback()
            return SearchResponse(
                postings=paginate([], 0, search.page, self.page_size),
                error=SEARCH_UNAVAILABLE,
            )

        return SearchResponse(
            postings=paginate(items, total, search.page, self.page_size),
            facets=facets,
        )

    def facets(self, selected_location: str | None = None, selected_category: str | None = None) -> Facets:
        """Distinct locations and categories of active postings."""
        return Facets(
            locations=distinct_values(self.session, "location"),
            categories=distinct_values(self.session, "category"),
            selected_location=selected_location,
            selected_category=selected_category,
        )

    def map_markers(self) -> list[LocationAggregate]:
        return location_aggregates(self.session)

    def get_posting(self, req_id: int) -> Posting | None:
        return get_active_posting(self.session, req_id)

    def latest_for_category(self, category: str, limit: int = 3) -> list[Posting]:
        return latest_for_category(self.session, category, limit=limit)
