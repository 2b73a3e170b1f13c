"""Sync run history routes."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from careersync.db import get_sync_runs
from careersync.web.deps import get_db

router = APIRouter(prefix="/api/sync-runs", tags=["sync"])


class SyncRunOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    started_at: datetime
    finished_at: datetime | None = None
    status: str
    categories_ok: int = 0
    categories_failed: int = 0
    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    failed_items: int = 0
    missing_req_id: int = 0
    geocode_misses: int = 0
    geocode_failures: int = 0
    deleted: int = 0
    error_message: str | None = None


class SyncStatusOut(BaseModel):
    scheduler_active: bool
    next_run: datetime | None = None
    runs: list[SyncRunOut]


@router.get("", response_model=SyncStatusOut)
async def sync_runs(
    request: Request,
    limit: int = Query(20, ge=1, le=200),
    session: Session = Depends(get_db),
):
    """Recent sync runs and the next scheduled run, if any."""
    scheduler = getattr(request.app.state, "scheduler", None)

    next_run = None
    if scheduler:
        from careersync.scheduler.scheduler import get_next_run_time

        next_run = get_next_run_time(scheduler)

    runs = [SyncRunOut.model_validate(r) for r in get_sync_runs(session, limit=limit)]
    return SyncStatusOut(scheduler_active=scheduler is not None, next_run=next_run, runs=runs)
