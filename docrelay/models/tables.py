"""
SQLAlchemy ORM models.
The submissions table is the single source of truth for job correlation and delivery state.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from docrelay.models.database import Base
from docrelay.models.enums import SubmissionStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ────────────────────────────────────────────────────────────
# SUBMISSIONS
# ────────────────────────────────────────────────────────────
class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # Assigned by the scanner; NULL until the submit call returns
    job_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user_ref: Mapped[str] = mapped_column(Text, nullable=False)
    input_ref: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    output_ref: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False,
        default=SubmissionStatus.SUBMITTED.value,
        server_default=SubmissionStatus.SUBMITTED.value,
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("uq_submissions_job_id", "job_id", unique=True),
        Index("idx_submissions_status", "status"),
        Index("idx_submissions_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Submission id={self.id} job_id={self.job_id} status={self.status}>"
