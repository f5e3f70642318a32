"""
SnapPDF Backend — Conversion Service (Pipeline Orchestrator)
=============================================================

What:  Turns a batch of uploaded images into one PDF, one page per image.
How:   Validates the upload batch, compresses each image through the
       compression adapter, draws it on a reportlab canvas page sized to the
       image's pixel dimensions, and hands back a spooled file to stream.
Who:   Called by the POST /convert route handler.
When:  Once per conversion request.

Orchestration Flow (POST /convert):
    ┌──────────┐    ┌─────────────┐    ┌──────────────┐    ┌──────────┐
    │  Upload  │───▶│  Validate   │───▶│  Compress    │───▶│  Page    │──▶ stream
    │  (Route) │    │  (ingest)   │    │  (per image) │    │  (canvas)│
    └──────────┘    └─────────────┘    └──────────────┘    └──────────┘

    Validation failures raise ValidationError before any image is decoded.
    A compression failure is logged and the page uses the original bytes.
    Anything else (e.g. bytes that are not an image at all) propagates and
    becomes a 500; the document is finished before the first byte is sent,
    so a client never receives a truncated PDF.

Resource Model:
    Images are processed strictly one after another in upload order.
    The reportlab canvas keeps every page and its image stream in memory
    until save(), so peak memory during rendering grows with the document.
    It is bounded by MAX_TOTAL_SIZE, the combined upload size checked in
    ingest(). On save() the document is written into a SpooledTemporaryFile
    that moves to disk past PDF_SPOOL_MAX_SIZE; the canvas is then released,
    and while the client downloads only the spool is held.
"""

import io
import logging
import re
from dataclasses import dataclass
from tempfile import SpooledTemporaryFile
from typing import BinaryIO, Iterator, List, Optional, Sequence, Tuple

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from snappdf import __version__
from snappdf.config import settings
from snappdf.exceptions import ValidationError
from snappdf.services.compression_service import CompressionTier, compress_image

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "converted"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_filename(filename: Optional[str]) -> str:
    """
    Make a client-supplied name safe for a Content-Disposition header.

    Every character outside [A-Za-z0-9_-] becomes "_", whitespace included
    (so " My File!@#.pdf" becomes "_My_File____pdf"). Length is preserved.
    Only a missing or empty name falls back to "converted".
    The ".pdf" suffix is not added here.
    """
    if not filename:
        return DEFAULT_FILENAME
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)


@dataclass(frozen=True)
class UploadedImage:
    """One validated upload held in memory for the duration of a request."""
    data: bytes
    content_type: str
    filename: str


@dataclass
class ConversionOutput:
    """
    A finished conversion ready to be streamed.

    Attributes:
        document:          Spooled PDF positioned at offset 0
        filename:          Attachment filename including ".pdf"
        page_count:        Number of pages (== number of uploaded images)
        tier:              Compression tier that was applied
        uncompressed_pages: Pages that fell back to the original upload bytes
    """
    document: BinaryIO
    filename: str
    page_count: int
    tier: CompressionTier
    uncompressed_pages: int = 0


class ConversionService:
    """
    Business logic for image-to-PDF conversion.

    Responsibilities:
        - ingest():     batch and per-file validation of multipart uploads
        - render_pdf(): compress + assemble pages (blocking, CPU-bound)
        - convert():    the full pipeline, rendering off the event loop
        - iter_chunks(): stream a finished document and close it
    """

    def __init__(
        self,
        max_files: Optional[int] = None,
        max_file_size: Optional[int] = None,
        spool_max_size: Optional[int] = None,
        chunk_size: Optional[int] = None,
        max_total_size: Optional[int] = None,
    ):
        self.max_files = max_files or settings.max_files
        self.max_file_size = max_file_size or settings.max_file_size
        self.max_total_size = max_total_size or settings.max_total_size
        self.spool_max_size = spool_max_size if spool_max_size is not None else settings.pdf_spool_max_size
        self.chunk_size = chunk_size or settings.stream_chunk_size

    # ── Validation ────────────────────────────────────────────────────────

    def validate_count(self, count: int) -> None:
        """Reject empty batches and batches above the file limit."""
        if count == 0:
            raise ValidationError(
                message="No images provided",
                field="images",
                context={"received": 0},
            )
        if count > self.max_files:
            raise ValidationError(
                message=f"Too many files. Maximum is {self.max_files} files.",
                field="images",
                context={"max_files": self.max_files, "received": count},
            )

    def validate_content_type(self, filename: str, content_type: Optional[str]) -> None:
        """
        Accept any declared image/* media type.

        The declared type is trusted; the bytes are not sniffed. A mislabeled
        file fails later at compression (fallback) or page placement.
        """
        if not content_type or not content_type.lower().startswith("image/"):
            raise ValidationError(
                message="Only image files are allowed",
                field="images",
                context={"filename": filename, "content_type": content_type},
            )

    def validate_size(self, filename: str, size: int) -> None:
        """Reject empty files and files over the per-file limit."""
        max_mb = self.max_file_size / (1024 * 1024)
        if size == 0:
            raise ValidationError(
                message=f"File '{filename}' is empty.",
                field="images",
                context={"filename": filename},
            )
        if size > self.max_file_size:
            raise ValidationError(
                message=f"File too large. Maximum size is {max_mb:.0f}MB.",
                field="images",
                context={"filename": filename, "max_size_mb": max_mb},
            )

    def validate_total_size(self, total: int) -> None:
        """Reject a batch whose images together exceed MAX_TOTAL_SIZE."""
        if total > self.max_total_size:
            max_mb = self.max_total_size / (1024 * 1024)
            raise ValidationError(
                message=f"Total upload too large. Maximum is {max_mb:.0f}MB per conversion.",
                field="images",
                context={"max_total_size_mb": max_mb, "received_bytes": total},
            )

    async def ingest(self, uploads: Sequence[UploadFile]) -> List[UploadedImage]:
        """
        Validate and read a multipart batch.

        Validation order:
            1. File count (no bytes read yet)
            2. Declared media type of each file
            3. Size of each file
            4. Running total of the batch, checked after each file

        The multipart parser has already received and spooled every part by
        the time this runs, so the limits do not cut off the upload itself.
        Each part is read with a bound of limit + 1 bytes, which caps what is
        copied into memory from the spool.

        Raises:
            ValidationError on the first failing check
        """
        self.validate_count(len(uploads))

        images: List[UploadedImage] = []
        total = 0
        for upload in uploads:
            name = upload.filename or "upload"
            self.validate_content_type(name, upload.content_type)

            content = await upload.read(self.max_file_size + 1)
            self.validate_size(name, len(content))

            total += len(content)
            self.validate_total_size(total)

            images.append(UploadedImage(data=content, content_type=upload.content_type, filename=name))

        return images

    # ── Page Assembly ─────────────────────────────────────────────────────

    @staticmethod
    def add_page(pdf: canvas.Canvas, data: bytes) -> Tuple[int, int]:
        """
        Append one page holding `data`, sized to the image's pixel dimensions.

        One pixel maps to one PDF point; the image is drawn at the origin and
        fills the page. Returns (width, height).
        """
        image = ImageReader(io.BytesIO(data))
        width, height = image.getSize()
        pdf.setPageSize((width, height))
        pdf.drawImage(image, 0, 0, width=width, height=height)
        pdf.showPage()
        return width, height

    def render_pdf(
        self,
        images: Sequence[UploadedImage],
        tier: CompressionTier,
        title: str = DEFAULT_FILENAME,
    ) -> Tuple[BinaryIO, int]:
        """
        Compress every image in order and assemble the PDF.

        Blocking: run it in a worker thread from async code.

        Returns:
            (document, uncompressed_pages); document is rewound to offset 0
        """
        document = SpooledTemporaryFile(max_size=self.spool_max_size)
        uncompressed_pages = 0

        try:
            pdf = canvas.Canvas(document)
            pdf.setTitle(title)
            pdf.setCreator(f"SnapPDF {__version__}")

            for page_number, image in enumerate(images, start=1):
                result = compress_image(image.data, tier)
                if not result.ok:
                    # Compression is optional: keep the original bytes for this page
                    uncompressed_pages += 1
                    logger.warning(
                        "Page %d (%s): %s | Context: %s",
                        page_number,
                        image.filename,
                        result.error.message,
                        result.error.context,
                    )

                width, height = self.add_page(pdf, result.data)
                logger.debug(
                    "Page %d: %dx%d, %d bytes (tier=%s)",
                    page_number, width, height, len(result.data), tier.value,
                )

            pdf.save()
        except Exception:
            document.close()
            raise

        document.seek(0)
        return document, uncompressed_pages

    # ── Pipeline ──────────────────────────────────────────────────────────

    async def convert(
        self,
        uploads: Sequence[UploadFile],
        compression_level: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> ConversionOutput:
        """
        Complete workflow: validate → compress each image → assemble PDF.

        Args:
            uploads:           Multipart files in the order the client sent them
            compression_level: Tier name; unknown or missing means "normal"
            filename:          Requested output name (sanitized here)

        Returns:
            ConversionOutput with the finished document

        Raises:
            ValidationError: Bad batch or file (→ 400)
        """
        images = await self.ingest(uploads)
        tier = CompressionTier.parse(compression_level)
        safe_name = sanitize_filename(filename)

        logger.info(
            "Converting %d image(s) (tier=%s, %d bytes total)",
            len(images),
            tier.value,
            sum(len(image.data) for image in images),
        )

        document, uncompressed_pages = await run_in_threadpool(
            self.render_pdf, images, tier, safe_name
        )

        return ConversionOutput(
            document=document,
            filename=f"{safe_name}.pdf",
            page_count=len(images),
            tier=tier,
            uncompressed_pages=uncompressed_pages,
        )

    def iter_chunks(self, document: BinaryIO) -> Iterator[bytes]:
        """Yield the document in chunk_size pieces, closing it when done."""
        try:
            while True:
                chunk = document.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            document.close()


# ── Singleton Instance ────────────────────────────────────────────────────
conversion_service = ConversionService()
