"""End-to-end sync: fetch category feeds, geocode, upsert, reconcile."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from careersync.db import (
    add_sync_run,
    get_session,
    postings_missing_coordinates,
    reconcile_postings,
    set_coordinates,
    upsert_posting,
)
from careersync.errors import FeedFetchError, GeocodeError, StoreWriteError, SyncError
from careersync.feed.base import BaseFetcher
from careersync.models import (
    BackfillReport,
    CategoryResult,
    Coordinates,
    Posting,
    SyncReport,
    SyncStatus,
)

logger = logging.getLogger(__name__)

GEOCODE_MODES = ("inline", "deferred")
RECONCILE_SCOPES = ("fetched", "all")


@dataclass
class _Lookup:
    coordinates: Coordinates | None
    failed: bool = False


@dataclass
class _CategoryBatch:
    code: str
    name: str
    postings: list[Posting] = field(default_factory=list)
    error: str | None = None
    geocode_misses: int = 0
    geocode_failures: int = 0


class GeocodeCache:
    """Per-run memo of location lookups, shared by category workers."""

    def __init__(self, geocoder) -> None:
        self._geocoder = geocoder
        self._results: dict[str, _Lookup] = {}
        self._lock = threading.Lock()

    def lookup(self, location: str) -> _Lookup:
        key = location.strip()
        if not key:
            return _Lookup(None)
        with self._lock:
            cached = self._results.get(key)
        if cached is not None:
            return cached

        try:
            result = _Lookup(self._geocoder.resolve(key))
            if result.coordinates is None:
                logger.debug("No geocoding result for %r", key)
        except GeocodeError as e:
            logger.warning("Geocoding failed for %r: %s", key, e)
            result = _Lookup(None, failed=True)

        with self._lock:
            self._results.setdefault(key, result)
        return result


class SyncOrchestrator:
    """Drive one full refresh of the posting store from the category feeds."""

    def __init__(
        self,
        categories: dict[str, str],
        fetcher: BaseFetcher,
        geocoder,
        engine,
        *,
        max_workers: int = 1,
        geocode_mode: str = "inline",
        reconcile_scope: str = "fetched",
    ) -> None:
        if not categories:
            raise ValueError("At least one category must be configured")
        if geocode_mode not in GEOCODE_MODES:
            raise ValueError(f"Invalid geocode mode: {geocode_mode}")
        if reconcile_scope not in RECONCILE_SCOPES:
            raise ValueError(f"Invalid reconcile scope: {reconcile_scope}")
        if geocode_mode == "inline" and geocoder is None:
            raise ValueError("Inline geocoding requires a geocoder")

        self.categories = dict(categories)
        self.fetcher = fetcher
        self.geocoder = geocoder
        self.engine = engine
        self.max_workers = max(1, max_workers)
        self.geocode_mode = geocode_mode
        self.reconcile_scope = reconcile_scope

    @classmethod
    def from_config(cls, config, engine, fetcher=None, geocoder=None) -> "SyncOrchestrator":
        """Build an orchestrator wired to the HTTP feed and geocoder."""
        from careersync.feed.fetcher import FeedFetcher
        from careersync.geocoder.client import GeocoderClient

        return cls(
            categories=config.sync.categories,
            fetcher=fetcher or FeedFetcher(config.feed),
            geocoder=geocoder or GeocoderClient(config.geocoder),
            engine=engine,
            max_workers=config.sync.max_workers,
            geocode_mode=config.sync.geocode_mode,
            reconcile_scope=config.sync.reconcile_scope,
        )

    def run(self, as_of: datetime | None = None) -> SyncReport:
        """Run a full sync and record it in the run history.

        Raises SyncError if every category feed failed or reconcile failed.
        """
        as_of = as_of or datetime.now()
        report = SyncReport(started_at=as_of)
        seen_req_ids: set[int] = set()
        fetched_categories: list[str] = []
        cache = GeocodeCache(self.geocoder) if self.geocode_mode == "inline" else None

        logger.info("Sync started for %d categories", len(self.categories))
        session = get_session(self.engine)
        try:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = [
                    pool.submit(self._collect, code, name, cache)
                    for code, name in self.categories.items()
                ]
                # Writes stay on this thread; reconcile waits for every category.
                for future in futures:
                    batch = future.result()
                    if self._store_batch(session, batch, report, seen_req_ids, as_of):
                        fetched_categories.append(batch.name)

            if not fetched_categories:
                raise SyncError(f"All {len(self.categories)} category feeds failed")

            scope = None
            if report.categories_failed and self.reconcile_scope == "fetched":
                scope = fetched_categories
                logger.warning(
                    "Reconcile limited to %d fetched categories; %d failed",
                    len(fetched_categories),
                    report.categories_failed,
                )

            try:
                report.deleted = reconcile_postings(session, seen_req_ids, as_of, categories=scope)
                session.commit()
            except (StoreWriteError, SQLAlchemyError) as e:
                session.rollback()
                raise SyncError(f"Reconcile failed: {e}") from e

            if report.categories_failed or report.failed_items:
                report.status = SyncStatus.PARTIAL
            report.finished_at = datetime.now()
            self._record(session, report)

            logger.info(
                "Sync %s: %d fetched, %d new, %d updated, %d deleted, %d failed items, %d failed categories",
                report.status.value,
                report.fetched,
                report.inserted,
                report.updated,
                report.deleted,
                report.failed_items,
                report.categories_failed,
            )
            return report

        except SyncError as e:
            logger.error("Sync failed: %s", e)
            report.status = SyncStatus.ERROR
            report.error_message = str(e)
            report.finished_at = datetime.now()
            self._record(session, report)
            raise
        except SQLAlchemyError as e:
            logger.error("Sync failed on store access: %s", e)
            session.rollback()
            report.status = SyncStatus.ERROR
            report.error_message = str(e)
            report.finished_at = datetime.now()
            self._record(session, report)
            raise SyncError(f"Store unavailable: {e}") from e
        finally:
            session.close()

    def backfill_coordinates(self, limit: int = 200) -> BackfillReport:
        """Geocode active postings stored without coordinates."""
        if self.geocoder is None:
            raise ValueError("Backfill requires a geocoder")

        report = BackfillReport()
        cache = GeocodeCache(self.geocoder)
        session = get_session(self.engine)
        try:
            pending = postings_missing_coordinates(session, limit=limit)
            report.candidates = len(pending)
            for posting in pending:
                lookup = cache.lookup(posting.location)
                if lookup.failed:
                    report.geocode_failures += 1
                elif lookup.coordinates is None:
                    report.geocode_misses += 1
                else:
                    set_coordinates(session, posting.id, lookup.coordinates)
                    report.updated += 1
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreWriteError(f"Coordinate backfill failed: {e}") from e
        finally:
            session.close()

        logger.info(
            "Backfill: %d candidates, %d located, %d misses, %d failures",
            report.candidates,
            report.updated,
            report.geocode_misses,
            report.geocode_failures,
        )
        return report

    # --- internals ---

    def _collect(self, code: str, name: str, cache: GeocodeCache | None) -> _CategoryBatch:
        """Fetch one category and geocode its items. Runs on a worker thread."""
        batch = _CategoryBatch(code=code, name=name)
        try:
            raw_items = self.fetcher.fetch(code)
        except FeedFetchError as e:
            batch.error = str(e)
            return batch

        for raw in raw_items:
            coordinates = None
            if cache is not None:
                lookup = cache.lookup(raw.location)
                coordinates = lookup.coordinates
                if lookup.failed:
                    batch.geocode_failures += 1
                elif coordinates is None and raw.location.strip():
                    batch.geocode_misses += 1
            batch.postings.append(Posting.from_raw(raw, category=name, coordinates=coordinates))
        return batch

    def _store_batch(
        self,
        session,
        batch: _CategoryBatch,
        report: SyncReport,
        seen_req_ids: set[int],
        as_of: datetime,
    ) -> bool:
        """Upsert one category's postings. Returns True if the category was fetched."""
        result = CategoryResult(code=batch.code, name=batch.name)
        report.categories.append(result)

        if batch.error is not None:
            result.ok = False
            result.error = batch.error
            logger.error("Skipping category %s (%s): %s", batch.code, batch.name, batch.error)
            return False

        result.fetched = len(batch.postings)
        report.fetched += len(batch.postings)
        report.geocode_misses += batch.geocode_misses
        report.geocode_failures += batch.geocode_failures

        for posting in batch.postings:
            try:
                with session.begin_nested():
                    _, created = upsert_posting(session, posting, now=as_of)
            except StoreWriteError as e:
                report.failed_items += 1
                logger.error("Failed to store posting %s in %s: %s", posting.req_id, batch.name, e)
                continue

            if created:
                report.inserted += 1
            else:
                report.updated += 1

            if posting.req_id is None:
                report.missing_req_id += 1
                logger.warning(
                    "Posting %r in %s has no requisition id; stored for review",
                    posting.title,
                    batch.name,
                )
            else:
                seen_req_ids.add(posting.req_id)

        session.commit()
        return True

    def _record(self, session, report: SyncReport) -> None:
        try:
            add_sync_run(session, report)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Could not record sync run")
