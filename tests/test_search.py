"""Tests for the search query service."""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from careersync.db import reconcile_postings, upsert_posting
from careersync.models import SearchFilter, SortOrder
from careersync.search.service import SEARCH_UNAVAILABLE, SearchService, normalize_filter, paginate


@pytest.fixture
def populated(db_session, make_posting):
    postings = [
        make_posting(1, title="Finance Manager", post_date=datetime(2026, 9, 3), category="Finance",
                     location="Philadelphia, PA 19103", latitude=39.95, longitude=-75.16),
        make_posting(2, title="Corporate Counsel", post_date=datetime(2026, 9, 1), category="Legal",
                     location="Washington, DC", description="Contracts and finance regulation"),
        make_posting(3, title="Actuary", post_date=datetime(2026, 9, 2), category="Finance",
                     location="Philadelphia, PA 19103"),
        make_posting(4, title="Retired Role", category="Legal", location="Miami, FL"),
    ]
    for posting in postings:
        upsert_posting(db_session, posting)
    reconcile_postings(db_session, {1, 2, 3}, datetime(2026, 9, 10))
    db_session.commit()
    return db_session


class TestNormalizeFilter:
    def test_empty_params(self):
        search = normalize_filter({})
        assert search == SearchFilter()

    def test_all_fields(self):
        search = normalize_filter({
            "keywords": "  analyst ",
            "zip": "19103",
            "category": "Finance",
            "location": "Philadelphia, PA",
            "spage": "3",
            "o": "title_desc",
        })
        assert search.keywords == "analyst"
        assert search.zip == "19103"
        assert search.category == "Finance"
        assert search.location == "Philadelphia, PA"
        assert search.page == 3
        assert search.sort == SortOrder.TITLE_DESC

    def test_blank_values_are_no_constraint(self):
        search = normalize_filter({"keywords": "   ", "category": "", "location": None})
        assert search.keywords is None
        assert search.category is None
        assert search.location is None

    @pytest.mark.parametrize("raw,expected", [
        ("19103", "19103"),
        ("19103-1234", "19103"),
        ("1910", None),
        ("abcde", None),
        ("19103 ", "19103"),
    ])
    def test_zip_validation(self, raw, expected):
        assert normalize_filter({"zip": raw}).zip == expected

    @pytest.mark.parametrize("raw", ["0", "-2", "two", "", None])
    def test_bad_page_defaults_to_first(self, raw):
        assert normalize_filter({"spage": raw}).page == 1

    def test_page_alias(self):
        assert normalize_filter({"page": "2"}).page == 2

    def test_unknown_sort_defaults_to_date(self):
        assert normalize_filter({"o": "salary"}).sort == SortOrder.DATE

    def test_long_keywords_truncated(self):
        assert len(normalize_filter({"keywords": "x" * 500}).keywords) == 200

    def test_long_location_and_category_kept_whole(self):
        long_value = "Corporate Headquarters, " * 10
        search = normalize_filter({"location": long_value, "category": long_value})
        assert search.location == long_value.strip()
        assert search.category == long_value.strip()


class TestPaginate:
    def test_middle_page(self):
        page = paginate([], total=25, page=2, page_size=10)
        assert page.total_pages == 3
        assert page.next_page == 3
        assert page.prev_page == 1

    def test_last_page(self):
        page = paginate([], total=25, page=3, page_size=10)
        assert page.next_page is None
        assert page.prev_page == 2

    def test_empty(self):
        page = paginate([], total=0, page=1, page_size=10)
        assert page.total_pages == 0
        assert page.next_page is None
        assert page.prev_page is None

    def test_page_beyond_end_points_back_to_last_page(self):
        page = paginate([], total=5, page=4, page_size=10)
        assert page.total_pages == 1
        assert page.next_page is None
        assert page.prev_page == 1

    def test_far_page_beyond_end(self):
        page = paginate([], total=15, page=10, page_size=10)
        assert page.total_pages == 2
        assert page.prev_page == 2


class TestSearch:
    def test_defaults_to_post_date(self, populated):
        response = SearchService(populated).search({})
        assert response.error is None
        assert [p.req_id for p in response.postings.items] == [2, 3, 1]
        assert response.postings.total == 3

    def test_deleted_postings_never_returned(self, populated):
        response = SearchService(populated).search({"category": "Legal"})
        assert [p.req_id for p in response.postings.items] == [2]
        assert "Miami, FL" not in response.facets.locations

    def test_keywords_match_title_or_description(self, populated):
        response = SearchService(populated).search({"keywords": "FINANCE"})
        assert {p.req_id for p in response.postings.items} == {1, 2}

    def test_zip_matches_location_text(self, populated):
        response = SearchService(populated).search({"zip": "19103-0001"})
        assert {p.req_id for p in response.postings.items} == {1, 3}

    def test_invalid_zip_ignored(self, populated):
        response = SearchService(populated).search({"zip": "191"})
        assert response.postings.total == 3

    def test_sort_by_title(self, populated):
        response = SearchService(populated).search({"o": "title"})
        assert [p.title for p in response.postings.items] == ["Actuary", "Corporate Counsel", "Finance Manager"]

    def test_paging(self, populated):
        service = SearchService(populated, page_size=2)
        first = service.search({"spage": "1"})
        second = service.search({"spage": "2"})

        assert [p.req_id for p in first.postings.items] == [2, 3]
        assert [p.req_id for p in second.postings.items] == [1]
        assert first.postings.next_page == 2
        assert second.postings.prev_page == 1

    def test_facets_carry_selection(self, populated):
        response = SearchService(populated).search({"location": "Washington, DC"})
        assert response.facets.locations == ["Philadelphia, PA 19103", "Washington, DC"]
        assert response.facets.categories == ["Finance", "Legal"]
        assert response.facets.selected_location == "Washington, DC"

    def test_location_longer_than_keyword_limit_matches(self, populated, make_posting):
        long_location = ("Philadelphia Corporate Campus, 1900 Market Street, " * 5).strip()
        upsert_posting(populated, make_posting(5, location=long_location))
        populated.commit()

        response = SearchService(populated).search({"location": long_location})
        assert [p.req_id for p in response.postings.items] == [5]

    def test_accepts_prebuilt_filter(self, populated):
        response = SearchService(populated).search(SearchFilter(category="Finance"))
        assert response.postings.total == 2

    def test_storage_failure_reports_error(self, populated, monkeypatch):
        import careersync.search.service as service_module

        def broken(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(service_module, "query_postings", broken)
        response = SearchService(populated).search({"keywords": "finance"})

        assert response.error == SEARCH_UNAVAILABLE
        assert response.postings.items == []
        assert response.postings.total == 0


class TestLookups:
    def test_get_posting_skips_deleted(self, populated):
        service = SearchService(populated)
        assert service.get_posting(1).title == "Finance Manager"
        assert service.get_posting(4) is None
        assert service.get_posting(999) is None

    def test_latest_for_category(self, populated):
        latest = SearchService(populated).latest_for_category("Finance", limit=1)
        assert [p.req_id for p in latest] == [3]

    def test_map_markers(self, populated):
        markers = SearchService(populated).map_markers()
        assert [(m.location, m.count) for m in markers] == [("Philadelphia, PA 19103", 2), ("Washington, DC", 1)]
        assert markers[0].lat == 39.95
        assert markers[1].lat is None
