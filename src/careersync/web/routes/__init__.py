"""Aggregates all web route sub-routers."""

from fastapi import APIRouter

from careersync.web.routes.postings import router as postings_router
from careersync.web.routes.sync_runs import router as sync_runs_router

router = APIRouter()
router.include_router(postings_router)
router.include_router(sync_runs_router)


@router.get("/health")
async def health():
    return {"status": "ok"}
