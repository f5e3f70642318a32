"""
SnapPDF Backend — Image Compression Adapter
============================================

What:  Re-encodes one uploaded image as a progressive JPEG at a tier-specific quality.
How:   Pillow decodes the buffer, converts modes JPEG cannot store to RGB,
       and saves with quality 90 / 60 / 30 for normal / compressed / ultra.
Who:   Called by ConversionService once per uploaded image, in upload order.
When:  After upload validation, before the image is placed on a PDF page.

Failure Model:
    compress_image() never raises for bad image data. A buffer Pillow cannot
    decode or encode comes back unchanged inside a CompressionResult whose
    `error` is set; the caller decides to use the original bytes.

Tier Table:
    ┌────────────┬─────────┐
    │ tier       │ quality │
    ├────────────┼─────────┤
    │ normal     │   90    │
    │ compressed │   60    │
    │ ultra      │   30    │
    └────────────┴─────────┘
    Any other selector (missing, misspelled, different case) means "normal".
"""

import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from PIL import Image

from snappdf.exceptions import CompressionFailure

logger = logging.getLogger(__name__)

# Modes the JPEG encoder accepts as-is; everything else goes through RGB
JPEG_MODES = {"RGB", "L", "CMYK"}


class CompressionTier(str, Enum):
    """Named compression presets selectable by the client."""

    NORMAL = "normal"
    COMPRESSED = "compressed"
    ULTRA = "ultra"

    @property
    def quality(self) -> int:
        """JPEG quality parameter for this tier."""
        return TIER_QUALITY[self]

    @classmethod
    def parse(cls, value: Union["CompressionTier", str, None]) -> "CompressionTier":
        """
        Resolve a client-supplied selector to a tier.

        Returns NORMAL for None and for any string that is not exactly one of
        the tier names.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.NORMAL


TIER_QUALITY = {
    CompressionTier.NORMAL: 90,
    CompressionTier.COMPRESSED: 60,
    CompressionTier.ULTRA: 30,
}


@dataclass(frozen=True)
class CompressionResult:
    """
    Outcome of compressing one image.

    Attributes:
        data:    Bytes to place on the page (original bytes when error is set)
        tier:    Tier that was applied
        quality: JPEG quality used for the attempt
        error:   CompressionFailure when re-encoding failed, else None
    """
    data: bytes
    tier: CompressionTier
    quality: int
    error: Optional[CompressionFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def compress_image(
    data: bytes,
    tier: Union[CompressionTier, str, None] = CompressionTier.NORMAL,
) -> CompressionResult:
    """
    Re-encode `data` as a progressive JPEG at the tier's quality.

    Args:
        data: Raw bytes of one uploaded image (any format Pillow can decode)
        tier: CompressionTier or its string name; unknown values mean NORMAL

    Returns:
        CompressionResult. On failure `data` is the input buffer, unchanged.
    """
    resolved = CompressionTier.parse(tier)
    quality = resolved.quality

    try:
        with Image.open(io.BytesIO(data)) as image:
            if image.mode not in JPEG_MODES:
                image = image.convert("RGB")
            output = io.BytesIO()
            image.save(output, format="JPEG", quality=quality, progressive=True)
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        # UnidentifiedImageError is an OSError; truncated data raises OSError
        # or SyntaxError depending on the decoder
        return CompressionResult(
            data=data,
            tier=resolved,
            quality=quality,
            error=CompressionFailure(
                message="Image could not be re-encoded; using original bytes",
                context={"error_type": type(e).__name__, "error": str(e), "input_size": len(data)},
            ),
        )

    compressed = output.getvalue()
    logger.debug(
        "Compressed image: %d → %d bytes (tier=%s, quality=%d)",
        len(data),
        len(compressed),
        resolved.value,
        quality,
    )
    return CompressionResult(data=compressed, tier=resolved, quality=quality)
