"""
SnapPDF Backend — Custom Exception Hierarchy
=============================================

What:  Defines application-specific exceptions for the conversion service.
How:   Each exception class carries a message and optional context dict.
       ValidationError is raised and mapped to HTTP 400 by the handlers in
       main.py. CompressionFailure and PersistenceFailure are never raised
       across a service boundary: services return them inside result objects
       and the caller logs them and carries on.
Who:   Raised by services and routes; caught by global handlers.

Exception Hierarchy:
    SnapPDFError (base)
    ├── ValidationError       → 400 Bad Request (client can fix)
    ├── CompressionFailure    → not surfaced; original image bytes are used
    └── PersistenceFailure    → not surfaced; conversion log entry is dropped

    Anything else reaching the handlers is answered with a generic 500.
"""

from typing import Any, Dict, Optional


class SnapPDFError(Exception):
    """
    Base exception for all SnapPDF application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only for validation errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(SnapPDFError):
    """
    Raised when client input fails validation.

    When:    No files, too many files, a file over the size limit, or a file
             whose declared media type is not an image.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "Too many files. Maximum is 20 files.",
            "details": {"field": "images", "max_files": 20, "received": 21}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class CompressionFailure(SnapPDFError):
    """
    An image could not be re-encoded at the requested tier.

    Returned inside a CompressionResult; the page is built from the
    original upload instead.
    """

    def __init__(
        self,
        message: str = "Image compression failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PersistenceFailure(SnapPDFError):
    """
    A conversion record could not be written to or read from the audit store.

    Returned inside an AuditResult. Detailed driver errors go to the log
    only; they may contain connection strings or SQL.
    """

    def __init__(
        self,
        message: str = "Conversion log is unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
