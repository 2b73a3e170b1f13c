"""SQLAlchemy posting store: schema, upsert, reconcile and read queries."""

import logging
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    func,
    or_,
    update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from careersync.errors import StoreWriteError
from careersync.models import (
    Coordinates,
    LocationAggregate,
    Posting,
    SearchFilter,
    SortOrder,
    SyncReport,
)

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class PostingRow(Base):
    __tablename__ = "postings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    req_id = Column(Integer, nullable=True)
    title = Column(String, default="")
    description = Column(Text, default="")
    post_date = Column(DateTime, nullable=True)
    link = Column(String, default="")
    location = Column(String, default="", index=True)
    location_country = Column(String, default="")
    location_state = Column(String, default="")
    location_city = Column(String, default="")
    category = Column(String, default="", index=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True, index=True)  # NULL = active
    needs_review = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("req_id", name="uq_postings_req_id"),
    )


class SyncRunRow(Base):
    __tablename__ = "sync_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    started_at = Column(DateTime, default=datetime.now, nullable=False)
    finished_at = Column(DateTime, nullable=True)
    status = Column(String, default="success")  # success, partial, error
    categories_ok = Column(Integer, default=0)
    categories_failed = Column(Integer, default=0)
    fetched = Column(Integer, default=0)
    inserted = Column(Integer, default=0)
    updated = Column(Integer, default=0)
    failed_items = Column(Integer, default=0)
    missing_req_id = Column(Integer, default=0)
    geocode_misses = Column(Integer, default=0)
    geocode_failures = Column(Integer, default=0)
    deleted = Column(Integer, default=0)
    error_message = Column(Text, nullable=True)


def get_engine(db_path: str = "careersync.db"):
    """Create SQLAlchemy engine from a SQLite path or a full database URL."""
    url = db_path if "://" in db_path else f"sqlite:///{db_path}"
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, connect_args=connect_args)


def init_db(db_path: str = "careersync.db"):
    """Initialize database and create tables."""
    engine = get_engine(db_path)
    Base.metadata.create_all(engine)
    return engine


def get_session(engine) -> Session:
    """Create a new database session."""
    session_factory = sessionmaker(bind=engine)
    return session_factory()


def posting_to_row(posting: Posting) -> PostingRow:
    """Convert a Pydantic Posting model to a database row."""
    return PostingRow(
        req_id=posting.req_id,
        title=posting.title,
        description=posting.description,
        post_date=posting.post_date,
        link=posting.link,
        location=posting.location,
        location_country=posting.location_country,
        location_state=posting.location_state,
        location_city=posting.location_city,
        category=posting.category,
        latitude=posting.latitude,
        longitude=posting.longitude,
        created_at=posting.created_at,
        updated_at=posting.updated_at,
        deleted_at=posting.deleted_at,
        needs_review=posting.needs_review,
    )


def row_to_posting(row: PostingRow) -> Posting:
    """Convert a database row to a Pydantic Posting model."""
    return Posting(
        id=row.id,
        req_id=row.req_id,
        title=row.title or "",
        description=row.description or "",
        post_date=row.post_date,
        link=row.link or "",
        location=row.location or "",
        location_country=row.location_country or "",
        location_state=row.location_state or "",
        location_city=row.location_city or "",
        category=row.category or "",
        latitude=row.latitude,
        longitude=row.longitude,
        created_at=row.created_at,
        updated_at=row.updated_at,
        deleted_at=row.deleted_at,
        needs_review=bool(row.needs_review),
    )


# --- Writes ---

def _find_existing(session: Session, posting: Posting) -> PostingRow | None:
    query = session.query(PostingRow)
    if posting.req_id is None:
        # No natural key: match review rows on what the feed gave us.
        query = query.filter(
            PostingRow.req_id.is_(None),
            PostingRow.category == posting.category,
            PostingRow.title == posting.title,
            PostingRow.link == posting.link,
        )
    else:
        query = query.filter(PostingRow.req_id == posting.req_id)
    return query.with_for_update().first()


def _apply_update(row: PostingRow, posting: Posting, now: datetime) -> None:
    location_changed = (row.location or "") != posting.location

    row.title = posting.title
    row.description = posting.description
    row.post_date = posting.post_date
    row.link = posting.link
    row.location = posting.location
    row.location_country = posting.location_country
    row.location_state = posting.location_state
    row.location_city = posting.location_city
    row.category = posting.category
    row.needs_review = posting.needs_review

    if posting.latitude is not None and posting.longitude is not None:
        row.latitude = posting.latitude
        row.longitude = posting.longitude
    elif location_changed:
        row.latitude = None
        row.longitude = None

    row.updated_at = now
    row.deleted_at = None


def upsert_posting(session: Session, posting: Posting, now: datetime | None = None) -> tuple[int, bool]:
    """Insert or update a posting keyed on req_id.

    Returns (posting id, created). The existing row is locked for the rest
    of the caller's transaction; a concurrent insert of the same req_id
    lands in the unique constraint and is retried as an update.
    """
    now = now or datetime.now()
    try:
        existing = _find_existing(session, posting)
        if existing is None:
            row = posting_to_row(posting)
            row.created_at = now
            row.updated_at = None
            row.deleted_at = None
            try:
                with session.begin_nested():
                    session.add(row)
                    session.flush()
                return row.id, True
            except IntegrityError:
                logger.debug("req_id %s inserted concurrently, updating instead", posting.req_id)
                existing = _find_existing(session, posting)
                if existing is None:
                    raise

        _apply_update(existing, posting, now)
        session.flush()
        return existing.id, False
    except SQLAlchemyError as e:
        raise StoreWriteError(f"Upsert failed for req_id {posting.req_id}: {e}") from e


def reconcile_postings(
    session: Session,
    seen_req_ids: set[int],
    as_of: datetime,
    categories: list[str] | None = None,
) -> int:
    """Soft-delete active postings whose req_id was not seen.

    Runs as one bulk UPDATE. Rows without a req_id and rows already deleted
    are never touched. ``categories`` limits the update to those categories.
    Returns the number of rows marked deleted.
    """
    stmt = update(PostingRow).where(
        PostingRow.deleted_at.is_(None),
        PostingRow.req_id.is_not(None),
    )
    if seen_req_ids:
        stmt = stmt.where(PostingRow.req_id.not_in(sorted(seen_req_ids)))
    if categories is not None:
        stmt = stmt.where(PostingRow.category.in_(categories))
    stmt = stmt.values(deleted_at=as_of).execution_options(synchronize_session=False)

    try:
        session.flush()
        result = session.execute(stmt)
    except SQLAlchemyError as e:
        raise StoreWriteError(f"Reconcile failed: {e}") from e
    # Loaded rows may hold a stale deleted_at.
    session.expire_all()
    return result.rowcount or 0


def set_coordinates(session: Session, posting_id: int, coordinates: Coordinates | None) -> bool:
    """Store geocoded coordinates for a posting. Returns True if found."""
    row = session.query(PostingRow).filter_by(id=posting_id).first()
    if row is None:
        return False
    row.latitude = coordinates.lat if coordinates else None
    row.longitude = coordinates.lng if coordinates else None
    return True


# --- Reads ---

_SORT_COLUMNS = {
    SortOrder.DATE: (PostingRow.post_date, "asc"),
    SortOrder.DATE_DESC: (PostingRow.post_date, "desc"),
    SortOrder.TITLE: (PostingRow.title, "asc"),
    SortOrder.TITLE_DESC: (PostingRow.title, "desc"),
    SortOrder.LOCATION: (PostingRow.location, "asc"),
    SortOrder.LOCATION_DESC: (PostingRow.location, "desc"),
    SortOrder.CATEGORY: (PostingRow.category, "asc"),
    SortOrder.CATEGORY_DESC: (PostingRow.category, "desc"),
}

_FACET_COLUMNS = {
    "location": PostingRow.location,
    "category": PostingRow.category,
}


def _active(session: Session, *entities):
    query = session.query(*entities) if entities else session.query(PostingRow)
    return query.filter(PostingRow.deleted_at.is_(None))


def _apply_filter(query, search: SearchFilter):
    if search.keywords:
        needle = search.keywords.lower()
        query = query.filter(
            func.lower(PostingRow.title).contains(needle, autoescape=True)
            | func.lower(PostingRow.description).contains(needle, autoescape=True)
        )
    if search.zip:
        query = query.filter(or_(
            PostingRow.location.contains(search.zip, autoescape=True),
            PostingRow.location_city.contains(search.zip, autoescape=True),
        ))
    if search.location:
        query = query.filter(PostingRow.location == search.location)
    if search.category:
        query = query.filter(PostingRow.category == search.category)
    return query


def query_postings(
    session: Session,
    search: SearchFilter,
    page: int = 1,
    page_size: int = 10,
) -> tuple[list[Posting], int]:
    """Query active postings with filters and pagination. Returns (postings, total_count)."""
    page = max(1, page)
    query = _apply_filter(_active(session), search)
    count_query = _apply_filter(_active(session, func.count(PostingRow.id)), search)

    total = count_query.scalar() or 0

    column, direction = _SORT_COLUMNS[search.sort]
    if direction == "desc":
        query = query.order_by(column.desc().nullslast(), PostingRow.id.desc())
    else:
        query = query.order_by(column.asc().nullslast(), PostingRow.id.asc())

    rows = query.offset((page - 1) * page_size).limit(page_size).all()
    return [row_to_posting(r) for r in rows], total


def distinct_values(session: Session, column: str) -> list[str]:
    """Ordered distinct non-empty values of a facet column over active postings."""
    col = _FACET_COLUMNS.get(column)
    if col is None:
        raise ValueError(f"Unknown facet column: {column}")

    rows = (
        _active(session, col)
        .filter(col.is_not(None), col != "")
        .distinct()
        .order_by(col.asc())
        .all()
    )
    return [r[0] for r in rows]


def location_aggregates(session: Session) -> list[LocationAggregate]:
    """Posting count per active location with the first known coordinate."""
    counts = (
        _active(session, PostingRow.location, func.count(PostingRow.id))
        .filter(PostingRow.location.is_not(None), PostingRow.location != "")
        .group_by(PostingRow.location)
        .order_by(PostingRow.location.asc())
        .all()
    )

    points: dict[str, tuple[float, float]] = {}
    located = (
        _active(session, PostingRow.location, PostingRow.latitude, PostingRow.longitude)
        .filter(PostingRow.latitude.is_not(None), PostingRow.longitude.is_not(None))
        .order_by(PostingRow.id.asc())
        .all()
    )
    for location, lat, lng in located:
        points.setdefault(location, (lat, lng))

    aggregates = []
    for location, count in counts:
        lat, lng = points.get(location, (None, None))
        aggregates.append(LocationAggregate(location=location, count=count, lat=lat, lng=lng))
    return aggregates


def get_active_posting(session: Session, req_id: int) -> Posting | None:
    """Get a single active posting by requisition id."""
    row = _active(session).filter(PostingRow.req_id == req_id).first()
    if row:
        return row_to_posting(row)
    return None


def get_posting_by_req_id(session: Session, req_id: int) -> Posting | None:
    """Get a posting by requisition id whether or not it is deleted."""
    row = session.query(PostingRow).filter_by(req_id=req_id).first()
    if row:
        return row_to_posting(row)
    return None


def latest_for_category(session: Session, category: str, limit: int = 3) -> list[Posting]:
    """Active postings in one category, oldest post date first."""
    rows = (
        _active(session)
        .filter(PostingRow.category == category)
        .order_by(PostingRow.post_date.asc().nullslast(), PostingRow.id.asc())
        .limit(limit)
        .all()
    )
    return [row_to_posting(r) for r in rows]


def postings_needing_review(session: Session) -> list[Posting]:
    """Postings stored without a requisition id."""
    rows = (
        session.query(PostingRow)
        .filter(PostingRow.needs_review.is_(True))
        .order_by(PostingRow.created_at.desc(), PostingRow.id.desc())
        .all()
    )
    return [row_to_posting(r) for r in rows]


def postings_missing_coordinates(session: Session, limit: int = 200) -> list[Posting]:
    """Active postings with a location but no coordinates."""
    rows = (
        _active(session)
        .filter(
            PostingRow.location.is_not(None),
            PostingRow.location != "",
            PostingRow.latitude.is_(None),
        )
        .order_by(PostingRow.id.asc())
        .limit(limit)
        .all()
    )
    return [row_to_posting(r) for r in rows]


def count_postings(session: Session, active_only: bool = False) -> int:
    query = _active(session, func.count(PostingRow.id)) if active_only else session.query(func.count(PostingRow.id))
    return query.scalar() or 0


# --- Sync run history ---

def get_sync_runs(session: Session, limit: int = 20) -> list:
    """Get recent sync runs."""
    rows = (
        session.query(SyncRunRow)
        .order_by(SyncRunRow.started_at.desc(), SyncRunRow.id.desc())
        .limit(limit)
        .all()
    )
    return rows


def add_sync_run(session: Session, report: SyncReport) -> SyncRunRow:
    """Record a sync run."""
    run = SyncRunRow(
        started_at=report.started_at,
        finished_at=report.finished_at,
        status=report.status.value,
        categories_ok=report.categories_ok,
        categories_failed=report.categories_failed,
        fetched=report.fetched,
        inserted=report.inserted,
        updated=report.updated,
        failed_items=report.failed_items,
        missing_req_id=report.missing_req_id,
        geocode_misses=report.geocode_misses,
        geocode_failures=report.geocode_failures,
        deleted=report.deleted,
        error_message=report.error_message,
    )
    session.add(run)
    return run
