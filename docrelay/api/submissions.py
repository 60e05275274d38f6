"""
/api/v1/submissions endpoints.
Operator views over the ledger and the retention sweep.
"""

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from docrelay.config import settings
from docrelay.dependencies import get_ledger, verify_api_key
from docrelay.ledger.submission_ledger import SubmissionLedger
from docrelay.models.enums import SubmissionStatus
from docrelay.observability.metrics import submissions_by_status
from docrelay.schemas.submissions import (
    CorrelationIndexResponse,
    SubmissionListResponse,
    SubmissionStats,
    SubmissionSummary,
    SweepResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/submissions", tags=["submissions"], dependencies=[Depends(verify_api_key)])


@router.get("", response_model=SubmissionListResponse)
async def list_submissions(
    status_filter: Optional[SubmissionStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    ledger: SubmissionLedger = Depends(get_ledger),
):
    """List submissions with optional status filter and pagination."""
    rows, total = await ledger.list_submissions(status=status_filter, limit=limit, offset=offset)
    return SubmissionListResponse(
        submissions=[SubmissionSummary.from_row(r) for r in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=SubmissionStats)
async def submission_stats(ledger: SubmissionLedger = Depends(get_ledger)):
    """Counts per status. COMPLETED rows are claimed but not yet delivered."""
    counts = await ledger.status_counts()
    for status_name, count in counts.items():
        submissions_by_status.labels(status=status_name).set(count)
    return SubmissionStats(
        counts=counts,
        total=sum(counts.values()),
        awaiting_reconciliation=counts[SubmissionStatus.COMPLETED.value],
    )


@router.get("/correlations", response_model=CorrelationIndexResponse)
async def correlation_index(
    include_delivered: bool = Query(False),
    ledger: SubmissionLedger = Depends(get_ledger),
):
    """The job_id -> user_ref index, rebuilt from the ledger."""
    index = await ledger.correlation_index(include_delivered=include_delivered)
    return CorrelationIndexResponse(correlations=index, count=len(index))


@router.post("/sweep", response_model=SweepResponse, status_code=status.HTTP_202_ACCEPTED)
async def sweep(
    inline: bool = Query(False),
    ledger: SubmissionLedger = Depends(get_ledger),
):
    """
    Abandon stale submissions and purge old delivered ones.
    Runs on the worker queue unless inline=true or the queue is unavailable.
    """
    from docrelay.worker.jobs import run_retention_sweep

    if settings.USE_WORKER_QUEUE and not inline:
        try:
            from docrelay.worker.jobs import enqueue_retention_sweep
            rq_job_id = enqueue_retention_sweep()
            return SweepResponse(abandoned=0, purged=0, enqueued=True, job_id=rq_job_id)
        except Exception as enqueue_err:
            logger.warning("sweep_enqueue_failed", error=str(enqueue_err))

    result = await run_retention_sweep(ledger)
    return SweepResponse(**result)


@router.get("/{handle}", response_model=SubmissionSummary)
async def get_submission(handle: str, ledger: SubmissionLedger = Depends(get_ledger)):
    """Get one submission by its internal handle."""
    try:
        parsed = uuid.UUID(handle)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid submission handle")

    submission = await ledger.get(parsed)
    if submission is None:
        raise HTTPException(status_code=404, detail=f"Submission {handle} not found")
    return SubmissionSummary.from_row(submission)
