"""
SnapPDF Backend — Convert Route Handler
========================================

What:  Handles POST /convert: images in, one PDF out.
How:   Receives the multipart batch, delegates to ConversionService, streams
       the finished document back and schedules the conversion log insert
       as a background task.
Who:   Called by the browser UI's convert button.

Request Flow:
    1. Client sends multipart/form-data: images[], compressionLevel, filename
    2. ConversionService validates, compresses and assembles the PDF
    3. Response: 200 application/pdf, attachment; filename="<sanitized>.pdf"
    4. After the body is sent: one best-effort insert into the audit store

Error responses (global exception handlers):
    HTTP 400: no images, too many images, oversized or non-image file
    HTTP 500: anything unexpected (e.g. a file that is not an image at all)
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Header, UploadFile
from fastapi.responses import StreamingResponse

from snappdf.schemas.conversion import ConversionCreate, ErrorResponse
from snappdf.services.audit_service import AuditStore, get_audit_store, log_conversion
from snappdf.services.conversion_service import conversion_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Convert"])


@router.post(
    "/convert",
    response_class=StreamingResponse,
    responses={
        200: {"description": "The assembled PDF", "content": {"application/pdf": {}}},
        400: {"description": "Invalid upload batch", "model": ErrorResponse},
        500: {"description": "Conversion failed", "model": ErrorResponse},
    },
    summary="Convert images to a single PDF",
    description=(
        "Upload 1-20 images (image/*, max 10MB each). Each image is re-encoded at the "
        "chosen compression level and placed on its own page, sized to the image. "
        "The PDF is returned as a file download."
    ),
)
async def convert_images(
    background_tasks: BackgroundTasks,
    images: Optional[List[UploadFile]] = File(
        default=None,
        description="Image files, in page order",
    ),
    compression_level: str = Form(
        default="normal",
        alias="compressionLevel",
        description="normal (quality 90), compressed (60) or ultra (30)",
    ),
    filename: str = Form(
        default="converted",
        description="Download name without extension; unsafe characters become '_'",
    ),
    user_id: Optional[str] = Header(default=None, description="Optional caller identifier for the conversion log"),
    audit_store: AuditStore = Depends(get_audit_store),
) -> StreamingResponse:
    """
    Convert an ordered batch of images into one PDF.

    The conversion log entry records the sanitized filename, page count,
    resolved compression tier and the `user-id` header. It is written after
    the response completes, and only when the audit store is available.
    """
    uploads = images or []
    logger.info(
        "Received convert request: %d file(s), compressionLevel=%s",
        len(uploads),
        compression_level,
    )

    output = await conversion_service.convert(
        uploads,
        compression_level=compression_level,
        filename=filename,
    )

    logger.info(
        "Converted %s: %d page(s), tier=%s, %d page(s) left uncompressed",
        output.filename,
        output.page_count,
        output.tier.value,
        output.uncompressed_pages,
    )

    background_tasks.add_task(
        log_conversion,
        audit_store,
        ConversionCreate(
            filename=output.filename,
            file_count=output.page_count,
            compression_level=output.tier.value,
            user_id=user_id,
        ),
    )

    return StreamingResponse(
        conversion_service.iter_chunks(output.document),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{output.filename}"'},
    )
