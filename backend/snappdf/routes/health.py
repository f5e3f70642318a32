"""
SnapPDF Backend — Health Check and Service Index Routes
========================================================

What:  GET /health for monitoring probes and GET / describing the API.
How:   Reports uptime and the audit store flag captured at startup.
       No database round-trip happens here: connectivity is probed once
       when the application starts.

Status levels:
    - ok: the process is serving requests. The audit store is optional, so
      its state is reported separately and never changes `status`.
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from snappdf import __version__
from snappdf.schemas.conversion import HealthResponse, ServiceIndex
from snappdf.services.audit_service import AuditStore, get_audit_store
from snappdf.services.compression_service import CompressionTier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Process start, for uptime reporting
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(audit_store: AuditStore = Depends(get_audit_store)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=round(time.time() - _start_time, 2),
        version=__version__,
        database=audit_store.status,
        database_connected=audit_store.available,
    )


@router.get("/", response_model=ServiceIndex, summary="Service index")
async def index() -> ServiceIndex:
    return ServiceIndex(
        message="JPEG to PDF Converter API",
        version=__version__,
        endpoints={
            "POST /convert": "Convert images to PDF",
            "GET /health": "Health check",
            "GET /conversions": "Get conversion history",
            "POST /conversions": "Log conversion",
            "GET /conversions/stats": "Daily conversion statistics",
        },
        compression_levels=[tier.value for tier in CompressionTier],
    )
