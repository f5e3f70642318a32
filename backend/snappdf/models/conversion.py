"""
SnapPDF Backend — Conversion SQLAlchemy Model
==============================================

What:  ORM model representing the `conversions` audit table.
How:   Inherits from the shared DeclarativeBase; Alembic reads this for migrations.
Who:   Used by AuditStore for inserts and history queries.

Table Design:
    - id:                UUID primary key (generated client-side; the Postgres
                         migration also defaults it to gen_random_uuid())
    - filename:          sanitized attachment name, e.g. "holiday_scans.pdf"
    - file_count:        number of pages in the produced PDF
    - compression_level: one of normal / compressed / ultra (CHECK constraint)
    - user_id:           value of the `user-id` request header, else "anonymous"
    - created_at:        UTC timestamp with timezone

    Rows are insert-only. There is no update or delete path anywhere in the
    service.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from snappdf.database import Base

COMPRESSION_LEVELS = ("normal", "compressed", "ultra")


class Conversion(Base):
    """One completed image-to-PDF conversion."""

    __tablename__ = "conversions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    filename: Mapped[str] = mapped_column(Text, nullable=False)

    file_count: Mapped[int] = mapped_column(Integer, nullable=False)

    compression_level: Mapped[str] = mapped_column(Text, nullable=False)

    user_id: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="anonymous",
        server_default="anonymous",
    )

    # Server default covers inserts made outside the ORM
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            "compression_level IN ({})".format(
                ", ".join(f"'{level}'" for level in COMPRESSION_LEVELS)
            ),
            name="ck_conversions_compression_level",
        ),
        Index("idx_conversions_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Conversion(id={self.id}, filename='{self.filename}', "
            f"file_count={self.file_count}, level='{self.compression_level}')>"
        )


# History reads are ORDER BY created_at DESC LIMIT n
Index("idx_conversions_created_at", Conversion.created_at.desc())
