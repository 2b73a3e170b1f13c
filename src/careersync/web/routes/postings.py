"""Posting search, facet, map and detail routes."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from careersync.config import CareerSyncConfig
from careersync.models import Facets, LocationAggregate, Posting, SearchResponse
from careersync.search.service import SearchService, normalize_filter
from careersync.web.deps import get_config, get_search_service

router = APIRouter(prefix="/api", tags=["postings"])


@router.get("/postings", response_model=SearchResponse)
async def search_postings(
    request: Request,
    service: SearchService = Depends(get_search_service),
):
    """Search active postings.

    Parameters are read leniently (``keywords``, ``zip``, ``category``,
    ``location``, ``spage``, ``o``) so malformed input narrows nothing
    instead of failing validation.
    """
    search = normalize_filter(request.query_params)
    return service.search(search)


@router.get("/postings/{req_id}", response_model=Posting)
async def posting_detail(
    req_id: str,
    service: SearchService = Depends(get_search_service),
):
    """Look up one active posting by requisition id."""
    posting = None
    if req_id.isdigit():
        posting = service.get_posting(int(req_id))
    if posting is None:
        raise HTTPException(status_code=404, detail="Posting not found")
    return posting


@router.get("/facets", response_model=Facets)
async def facets(
    location: str | None = Query(None),
    category: str | None = Query(None),
    service: SearchService = Depends(get_search_service),
):
    """Option lists for the location and category dropdowns."""
    return service.facets(selected_location=location or None, selected_category=category or None)


@router.get("/map", response_model=list[LocationAggregate])
async def map_markers(service: SearchService = Depends(get_search_service)):
    """Posting counts per location with coordinates for map markers."""
    return service.map_markers()


@router.get("/categories/{category}/latest", response_model=list[Posting])
async def latest_in_category(
    category: str,
    limit: int | None = Query(None, ge=1, le=50),
    service: SearchService = Depends(get_search_service),
    config: CareerSyncConfig = Depends(get_config),
):
    """Oldest-first teaser list of a category's active postings."""
    return service.latest_for_category(category, limit=limit or config.search.teaser_limit)
