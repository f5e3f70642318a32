"""
SnapPDF Backend — Conversion Log Route Handlers
================================================

What:  GET /conversions (history), POST /conversions (manual log entry),
       GET /conversions/stats (daily totals).
How:   Thin wrappers around the injected AuditStore.

All three degrade instead of failing: without a reachable audit store the
readers return [] and the writer returns a message body with HTTP 200.
"""

import logging
from typing import List, Union

from fastapi import APIRouter, Depends, Query

from snappdf.config import settings
from snappdf.schemas.conversion import (
    ConversionCreate,
    ConversionRecord,
    ConversionStats,
    MessageResponse,
)
from snappdf.services.audit_service import AuditStore, get_audit_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversions", tags=["Conversions"])


@router.get(
    "",
    response_model=List[ConversionRecord],
    summary="Recent conversions",
    description="Up to 50 most recent conversions, newest first. Empty when the log is unavailable.",
)
async def list_conversions(
    limit: int = Query(default=settings.history_limit, ge=1, le=settings.history_limit),
    audit_store: AuditStore = Depends(get_audit_store),
) -> List[ConversionRecord]:
    return await audit_store.recent(limit=limit)


@router.post(
    "",
    response_model=Union[ConversionRecord, MessageResponse],
    summary="Log a conversion",
    description=(
        "Stores one conversion log entry and returns it. When the log is unavailable "
        "or the insert fails, returns a message instead."
    ),
)
async def create_conversion(
    payload: ConversionCreate,
    audit_store: AuditStore = Depends(get_audit_store),
) -> Union[ConversionRecord, MessageResponse]:
    result = await audit_store.record(payload)

    if result.skipped:
        return MessageResponse(message="Database not available")

    if result.error is not None:
        logger.error(
            "Error logging conversion: %s | Context: %s",
            result.error.message,
            result.error.context,
        )
        return MessageResponse(message=result.error.message)

    return result.record


@router.get(
    "/stats",
    response_model=List[ConversionStats],
    summary="Daily conversion statistics",
    description="Conversions, files and average files per conversion for each day, newest first.",
)
async def conversion_stats(
    days: int = Query(default=30, ge=1, le=365),
    audit_store: AuditStore = Depends(get_audit_store),
) -> List[ConversionStats]:
    return await audit_store.daily_stats(days=days)
