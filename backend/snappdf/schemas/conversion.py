"""
SnapPDF Backend — Pydantic Request/Response Schemas
====================================================

What:  Pydantic models defining the JSON contract of the API.
How:   FastAPI uses these models to validate request bodies, serialize
       responses, and generate the OpenAPI documentation.

The PDF itself is not described here: POST /convert takes multipart form
fields and answers with raw `application/pdf` bytes.
"""

import uuid
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from snappdf.services.compression_service import CompressionTier


# ══════════════════════════════════════════════════════════════════════════
# Conversion Log
# ══════════════════════════════════════════════════════════════════════════


class ConversionCreate(BaseModel):
    """
    What:  Payload for one conversion log entry.
    Who:   Built by POST /convert after a successful conversion, or sent by
           clients to POST /conversions.

    compression_level follows the tier rule: anything unrecognized is
    recorded as "normal".
    """
    filename: str = Field(min_length=1, description="Attachment filename of the PDF")
    file_count: int = Field(ge=1, description="Number of images converted")
    compression_level: str = Field(
        default=CompressionTier.NORMAL.value,
        description="Compression tier: normal, compressed or ultra",
    )
    user_id: str = Field(default="anonymous", description="Caller-supplied user identifier")

    @field_validator("compression_level", mode="before")
    @classmethod
    def normalize_level(cls, v: Optional[str]) -> str:
        return CompressionTier.parse(v).value

    @field_validator("user_id", mode="before")
    @classmethod
    def default_user(cls, v: Optional[str]) -> str:
        if v is None or not str(v).strip():
            return "anonymous"
        return str(v).strip()


class ConversionRecord(BaseModel):
    """
    What:  A stored conversion log entry.
    Who:   Returned by GET /conversions (newest first) and POST /conversions.
    """
    id: uuid.UUID = Field(description="Generated record identifier")
    filename: str
    file_count: int
    compression_level: str
    user_id: str
    created_at: datetime = Field(description="When the conversion was logged (UTC)")

    model_config = {"from_attributes": True}


class ConversionStats(BaseModel):
    """Per-day totals over the conversion log."""
    date: date
    total_conversions: int
    total_files: int
    avg_files_per_conversion: float


class MessageResponse(BaseModel):
    """Returned by POST /conversions when nothing was stored."""
    message: str


# ══════════════════════════════════════════════════════════════════════════
# Service Responses
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Fields:
        error: Machine-readable error code (e.g., "validation_error")
        message: Human-readable description for display to users
        details: Optional extra context (e.g., which limit was hit)
        request_id: Correlation ID for tracing this error in server logs
    """
    error: str = Field(description="Machine-readable error code")
    message: Optional[str] = Field(default=None, description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    What:  Liveness report plus the audit store connectivity flag.
    Who:   Returned by GET /health.

    The service stays "ok" without a database: conversion does not depend on it.
    """
    status: str = Field(description="Always 'ok' while the process serves requests")
    timestamp: datetime = Field(description="Current server time (UTC)")
    uptime_seconds: float = Field(description="Seconds since the process started")
    version: str = Field(description="Application version")
    database: str = Field(description="Audit store: connected, not configured, unavailable")
    database_connected: bool = Field(description="True when conversions are being logged")


class ServiceIndex(BaseModel):
    """Returned by GET / — a short description of the API."""
    message: str
    version: str
    endpoints: Dict[str, str]
    compression_levels: List[str]
