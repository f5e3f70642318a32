"""
SnapPDF Backend — Audit Store Unit Tests
=========================================

What:  Tests for AuditStore and the log_conversion background task.
How:   In-memory SQLite via aiosqlite (same ORM code path as PostgreSQL).

Test Strategy:
    ✅ Probe outcome drives status/available
    ✅ record() stores rows; skipped when unavailable
    ✅ Insert failures come back as PersistenceFailure, never raised
    ✅ recent() is newest-first and bounded
    ✅ daily_stats() groups by calendar day
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from snappdf.database import Base
from snappdf.exceptions import PersistenceFailure
from snappdf.models.conversion import Conversion
from snappdf.schemas.conversion import ConversionCreate
from snappdf.services.audit_service import AuditResult, AuditStore, log_conversion


def entry(filename="scan.pdf", file_count=2, level="compressed", user_id=None) -> ConversionCreate:
    return ConversionCreate(
        filename=filename,
        file_count=file_count,
        compression_level=level,
        user_id=user_id,
    )


async def insert_at(store: AuditStore, filename: str, created_at: datetime, file_count: int = 1):
    async with AsyncSession(store.engine) as session:
        session.add(Conversion(
            filename=filename,
            file_count=file_count,
            compression_level="normal",
            user_id="anonymous",
            created_at=created_at,
        ))
        await session.commit()


class TestAvailability:
    """Tests for probe() and the status reported to /health."""

    @pytest.mark.asyncio
    async def test_not_configured(self):
        store = AuditStore(None)
        assert await store.probe() is False
        assert store.status == "not configured"
        assert store.available is False

    @pytest.mark.asyncio
    async def test_connected(self, audit_store):
        assert audit_store.available is True
        assert audit_store.status == "connected"

    @pytest.mark.asyncio
    async def test_unreachable(self, unreachable_audit_store):
        assert unreachable_audit_store.configured is True
        assert unreachable_audit_store.available is False
        assert unreachable_audit_store.status == "unavailable"


class TestRecord:
    """Tests for record()."""

    @pytest.mark.asyncio
    async def test_stores_entry(self, audit_store):
        result = await audit_store.record(entry(user_id="user-42"))

        assert result.ok
        assert result.error is None
        assert result.record.filename == "scan.pdf"
        assert result.record.file_count == 2
        assert result.record.compression_level == "compressed"
        assert result.record.user_id == "user-42"
        assert result.record.id is not None
        assert result.record.created_at is not None

    @pytest.mark.asyncio
    async def test_missing_user_defaults_to_anonymous(self, audit_store):
        result = await audit_store.record(entry(user_id="  "))
        assert result.record.user_id == "anonymous"

    @pytest.mark.asyncio
    async def test_unknown_level_recorded_as_normal(self, audit_store):
        result = await audit_store.record(entry(level="maximum"))
        assert result.record.compression_level == "normal"

    @pytest.mark.asyncio
    async def test_skipped_when_unavailable(self, unreachable_audit_store):
        result = await unreachable_audit_store.record(entry())
        assert result.skipped is True
        assert not result.ok
        assert result.error is None

    @pytest.mark.asyncio
    async def test_insert_failure_returned_not_raised(self, audit_store):
        async with audit_store.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

        result = await audit_store.record(entry())

        assert not result.ok
        assert result.skipped is False
        assert isinstance(result.error, PersistenceFailure)
        assert result.error.message == "Conversion could not be logged"
        assert result.error.context["filename"] == "scan.pdf"


class TestRecent:
    """Tests for recent()."""

    @pytest.mark.asyncio
    async def test_newest_first(self, audit_store):
        now = datetime.now(timezone.utc)
        await insert_at(audit_store, "old.pdf", now - timedelta(hours=2))
        await insert_at(audit_store, "newest.pdf", now)
        await insert_at(audit_store, "middle.pdf", now - timedelta(hours=1))

        records = await audit_store.recent()

        assert [r.filename for r in records] == ["newest.pdf", "middle.pdf", "old.pdf"]

    @pytest.mark.asyncio
    async def test_limit_applied(self, audit_store):
        now = datetime.now(timezone.utc)
        for i in range(5):
            await insert_at(audit_store, f"{i}.pdf", now - timedelta(minutes=i))

        records = await audit_store.recent(limit=2)

        assert [r.filename for r in records] == ["0.pdf", "1.pdf"]

    @pytest.mark.asyncio
    async def test_never_more_than_fifty(self, audit_store):
        now = datetime.now(timezone.utc)
        for i in range(55):
            await insert_at(audit_store, f"{i}.pdf", now - timedelta(seconds=i))

        assert len(await audit_store.recent(limit=500)) == 50

    @pytest.mark.asyncio
    async def test_empty_when_unavailable(self, unreachable_audit_store):
        assert await unreachable_audit_store.recent() == []

    @pytest.mark.asyncio
    async def test_empty_on_query_error(self, audit_store):
        async with audit_store.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

        assert await audit_store.recent() == []


class TestDailyStats:
    """Tests for daily_stats()."""

    @pytest.mark.asyncio
    async def test_groups_by_day_newest_first(self, audit_store):
        today = datetime.now(timezone.utc).replace(hour=12, minute=0, second=0, microsecond=0)
        yesterday = today - timedelta(days=1)
        await insert_at(audit_store, "a.pdf", today, file_count=2)
        await insert_at(audit_store, "b.pdf", today, file_count=4)
        await insert_at(audit_store, "c.pdf", yesterday, file_count=5)

        stats = await audit_store.daily_stats()

        assert [s.date for s in stats] == [today.date(), yesterday.date()]
        assert stats[0].total_conversions == 2
        assert stats[0].total_files == 6
        assert stats[0].avg_files_per_conversion == 3.0
        assert stats[1].total_conversions == 1
        assert stats[1].total_files == 5

    @pytest.mark.asyncio
    async def test_days_bounds_result(self, audit_store):
        base = datetime.now(timezone.utc).replace(hour=12, minute=0, second=0, microsecond=0)
        for offset in range(4):
            await insert_at(audit_store, f"{offset}.pdf", base - timedelta(days=offset))

        assert len(await audit_store.daily_stats(days=2)) == 2

    @pytest.mark.asyncio
    async def test_empty_when_unavailable(self):
        assert await AuditStore(None).daily_stats() == []


class TestLogConversion:
    """Tests for the background task wrapper."""

    @pytest.mark.asyncio
    async def test_logs_to_store(self, audit_store):
        result = await log_conversion(audit_store, entry())
        assert result.ok
        assert len(await audit_store.recent()) == 1

    @pytest.mark.asyncio
    async def test_failure_is_swallowed_into_result(self):
        store = AsyncMock(spec=AuditStore)
        failure = PersistenceFailure("Conversion could not be logged", context={"error_type": "OperationalError"})
        store.record.return_value = AuditResult(error=failure)

        result = await log_conversion(store, entry())

        assert result.error is failure
        store.record.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_skipped_store_is_noop(self):
        result = await log_conversion(AuditStore(None), entry())
        assert result.skipped is True
