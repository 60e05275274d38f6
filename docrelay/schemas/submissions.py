"""
Pydantic response schemas for the /api/v1/submissions operator endpoints.
"""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class SubmissionSummary(BaseModel):
    """One ledger record as shown to operators."""
    handle: str
    job_id: Optional[str] = None
    user_ref: str
    input_ref: str
    file_name: Optional[str] = None
    output_ref: Optional[str] = None
    status: str
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "SubmissionSummary":
        return cls(
            handle=str(row.id),
            job_id=row.job_id,
            user_ref=row.user_ref,
            input_ref=row.input_ref,
            file_name=row.file_name,
            output_ref=row.output_ref,
            status=row.status,
            error_message=row.error_message,
            created_at=row.created_at,
            updated_at=row.updated_at,
            completed_at=row.completed_at,
            delivered_at=row.delivered_at,
        )


class SubmissionListResponse(BaseModel):
    """Paginated submission list response."""
    submissions: list[SubmissionSummary]
    total: int
    limit: int
    offset: int


class SubmissionStats(BaseModel):
    """Ledger counts per status."""
    counts: dict[str, int]
    total: int
    # Claimed for delivery but never marked delivered
    awaiting_reconciliation: int


class CorrelationIndexResponse(BaseModel):
    """job_id -> user_ref mapping rebuilt from the ledger."""
    correlations: dict[str, str]
    count: int


class SweepResponse(BaseModel):
    abandoned: int
    purged: int
    enqueued: bool = False
    job_id: Optional[str] = None
