"""
SnapPDF Backend — Audit Store (Conversion Log)
===============================================

What:  Optional conversion log: one insert per finished conversion, plus
       history and daily statistics reads.
How:   AuditStore wraps an async SQLAlchemy engine. It is built once by the
       application factory, probed once at startup (SELECT 1), and handed to
       route handlers through the get_audit_store dependency.
Who:   POST /convert (background insert), GET/POST /conversions, GET /health.

Availability:
    ┌────────────────────┬───────────┬──────────────────────────────────┐
    │ DATABASE_URL       │ probe     │ behaviour                        │
    ├────────────────────┼───────────┼──────────────────────────────────┤
    │ empty              │ skipped   │ inserts skipped, reads return [] │
    │ set                │ fails     │ inserts skipped, reads return [] │
    │ set                │ succeeds  │ inserts and reads hit the table  │
    └────────────────────┴───────────┴──────────────────────────────────┘

Failure Model:
    Database errors never propagate out of this module. record() returns an
    AuditResult carrying a PersistenceFailure; the readers return an empty
    list and log the error. Conversions succeed whether or not they are logged.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from fastapi import Request
from sqlalchemy import desc, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from snappdf.config import Settings, settings as default_settings
from snappdf.database import build_engine, build_session_factory
from snappdf.exceptions import PersistenceFailure
from snappdf.models.conversion import Conversion
from snappdf.schemas.conversion import ConversionCreate, ConversionRecord, ConversionStats

logger = logging.getLogger(__name__)

# Driver-level connection errors (refused, DNS, timeouts) are not always
# wrapped by SQLAlchemy, so OSError is handled alongside SQLAlchemyError
STORE_ERRORS = (SQLAlchemyError, OSError)


@dataclass(frozen=True)
class AuditResult:
    """
    Outcome of one conversion log insert.

    Exactly one of these holds:
        record is set            → row stored
        error is set             → insert attempted and failed
        skipped is True          → store not available, nothing attempted
    """
    record: Optional[ConversionRecord] = None
    error: Optional[PersistenceFailure] = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.record is not None


class AuditStore:
    """
    Handle on the conversion log database.

    Attributes:
        engine:     AsyncEngine, or None when no DATABASE_URL is configured
        available:  Result of the startup probe; False until probe() succeeds
    """

    def __init__(self, engine: Optional[AsyncEngine] = None):
        self.engine = engine
        self.available = False
        self._session_factory = build_session_factory(engine) if engine is not None else None

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "AuditStore":
        """Build a store from DATABASE_URL; an empty URL yields a disabled store."""
        config = config or default_settings
        if not config.audit_configured:
            return cls(None)
        return cls(build_engine(config.database_url, config))

    @property
    def configured(self) -> bool:
        return self.engine is not None

    @property
    def status(self) -> str:
        """Human-readable state for the health endpoint."""
        if not self.configured:
            return "not configured"
        return "connected" if self.available else "unavailable"

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def probe(self) -> bool:
        """
        Check connectivity once and remember the outcome.

        Called from the application lifespan. There is no re-probe: a store
        that is down at startup stays disabled until the process restarts.
        """
        if self.engine is None:
            self.available = False
            logger.info("Audit store not configured - running without conversion logging")
            return False

        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except STORE_ERRORS as e:
            self.available = False
            logger.warning(
                "Audit store configured but not reachable - running without conversion logging: %s",
                str(e),
            )
            return False

        self.available = True
        logger.info("Audit store connected")
        return True

    async def dispose(self) -> None:
        """Close all pooled connections (application shutdown)."""
        if self.engine is not None:
            await self.engine.dispose()

    # ── Writes ────────────────────────────────────────────────────────────

    async def record(self, entry: ConversionCreate) -> AuditResult:
        """
        Insert one conversion log row.

        Returns:
            AuditResult with the stored record, a PersistenceFailure, or
            skipped=True when the store is not available.
        """
        if not self.available:
            return AuditResult(skipped=True)

        try:
            async with self._session_factory() as session:
                row = Conversion(
                    filename=entry.filename,
                    file_count=entry.file_count,
                    compression_level=entry.compression_level,
                    user_id=entry.user_id,
                )
                session.add(row)
                await session.commit()
                return AuditResult(record=ConversionRecord.model_validate(row))
        except STORE_ERRORS as e:
            return AuditResult(
                error=PersistenceFailure(
                    message="Conversion could not be logged",
                    context={"error_type": type(e).__name__, "error": str(e), "filename": entry.filename},
                )
            )

    # ── Reads ─────────────────────────────────────────────────────────────

    async def recent(self, limit: int = 50) -> List[ConversionRecord]:
        """
        Most recent conversions, newest first.

        Returns [] when the store is unavailable or the query fails.
        """
        if not self.available:
            return []

        limit = max(1, min(limit, default_settings.history_limit))
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Conversion).order_by(desc(Conversion.created_at)).limit(limit)
                )
                rows = result.scalars().all()
        except STORE_ERRORS as e:
            logger.error("Error fetching conversions: %s", str(e))
            return []

        return [ConversionRecord.model_validate(row) for row in rows]

    async def daily_stats(self, days: int = 30) -> List[ConversionStats]:
        """
        Per-day conversion totals, newest day first.

        Returns [] when the store is unavailable or the query fails.
        """
        if not self.available:
            return []

        day = func.date(Conversion.created_at).label("day")
        query = (
            select(
                day,
                func.count(Conversion.id).label("total_conversions"),
                func.sum(Conversion.file_count).label("total_files"),
                func.avg(Conversion.file_count).label("avg_files"),
            )
            .group_by(day)
            .order_by(desc(day))
            .limit(days)
        )

        try:
            async with self._session_factory() as session:
                rows = (await session.execute(query)).all()
        except STORE_ERRORS as e:
            logger.error("Error computing conversion stats: %s", str(e))
            return []

        return [
            ConversionStats(
                date=row.day,
                total_conversions=row.total_conversions,
                total_files=row.total_files or 0,
                avg_files_per_conversion=round(float(row.avg_files or 0), 2),
            )
            for row in rows
        ]


async def log_conversion(store: AuditStore, entry: ConversionCreate) -> AuditResult:
    """
    Best-effort conversion log call used as a background task.

    The conversion response has already been sent when this runs; the
    outcome is only logged.
    """
    result = await store.record(entry)
    if result.error is not None:
        # Logging is best-effort: drop the entry and keep serving
        logger.warning(
            "Conversion log entry dropped: %s | Context: %s",
            result.error.message,
            result.error.context,
        )
    elif result.ok:
        logger.info("Conversion logged: %s (%d files)", entry.filename, entry.file_count)
    return result


def get_audit_store(request: Request) -> AuditStore:
    """
    FastAPI dependency returning the application's audit store.

    Applications created without a store (never expected outside ad-hoc
    scripts) get a disabled one.
    """
    store = getattr(request.app.state, "audit_store", None)
    if store is None:
        store = AuditStore(None)
        request.app.state.audit_store = store
    return store
