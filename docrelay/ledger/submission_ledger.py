"""
Persistent submission ledger.

One row per accepted document. The ledger owns every piece of job state;
job_id -> user_ref correlation is read through the unique job_id index and is
never stored anywhere else.

All job-keyed state changes go through try_transition(), a single conditional
UPDATE whose rowcount decides the winner. Concurrent callers racing on the same
job_id and expected status get exactly one TRANSITIONED between them, across
sessions, processes and restarts. Every method commits before returning.
"""

import uuid
from datetime import datetime, timedelta
from typing import Iterable, Optional, Union

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docrelay.errors import (
    DuplicateJobId,
    JobIdAlreadyAttached,
    SubmissionClosed,
    SubmissionNotFound,
)
from docrelay.models.enums import (
    ALLOWED_TRANSITIONS,
    OUTPUT_STATUSES,
    PENDING_STATUSES,
    SubmissionStatus,
    TransitionResult,
)
from docrelay.models.tables import Submission, utcnow
from docrelay.observability.metrics import submissions_abandoned_total, submissions_created_total

logger = structlog.get_logger(__name__)

StatusSpec = Union[SubmissionStatus, str, Iterable[SubmissionStatus]]


def _as_status_set(spec: StatusSpec) -> frozenset[SubmissionStatus]:
    if isinstance(spec, str):
        return frozenset({SubmissionStatus(spec)})
    statuses = frozenset(SubmissionStatus(s) for s in spec)
    if not statuses:
        raise ValueError("expected_status must name at least one status")
    return statuses


def _as_handle(handle: Union[str, uuid.UUID]) -> uuid.UUID:
    return handle if isinstance(handle, uuid.UUID) else uuid.UUID(str(handle))


def validate_transition(expected: frozenset[SubmissionStatus], new_status: SubmissionStatus) -> None:
    """Reject any edge that would move a record backwards or sideways."""
    for status in expected:
        if new_status not in ALLOWED_TRANSITIONS[status]:
            raise ValueError(f"Illegal transition {status.value} -> {new_status.value}")


class SubmissionLedger:
    """Durable store of submissions with an atomic conditional-update primitive."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # ── Intake ───────────────────────────────────────────────

    async def create(
        self,
        user_ref: str,
        input_ref: str,
        file_name: Optional[str] = None,
    ) -> uuid.UUID:
        """Insert a SUBMITTED record with no job_id. Returns the internal handle."""
        submission = Submission(
            id=uuid.uuid4(),
            user_ref=user_ref,
            input_ref=input_ref,
            file_name=file_name,
            status=SubmissionStatus.SUBMITTED.value,
        )
        async with self._session_factory() as session:
            session.add(submission)
            await session.commit()

        submissions_created_total.inc()
        logger.info(
            "submission_created",
            handle=str(submission.id),
            user_ref=user_ref,
            input_ref=input_ref,
        )
        return submission.id

    async def attach_job_id(self, handle: Union[str, uuid.UUID], job_id: str) -> None:
        """
        Bind the scanner's job_id to a submission.

        Idempotent for the same (handle, job_id). Raises DuplicateJobId if the
        job_id belongs to another submission; the ledger is left unchanged.
        Raises SubmissionClosed if the submission was abandoned before the
        scanner answered.
        """
        handle = _as_handle(handle)
        async with self._session_factory() as session:
            existing = (await session.execute(
                select(Submission.id).where(Submission.job_id == job_id)
            )).scalar_one_or_none()
            if existing is not None:
                if existing == handle:
                    return
                raise DuplicateJobId(job_id, existing_handle=str(existing))

            try:
                result = await session.execute(
                    update(Submission)
                    .where(
                        Submission.id == handle,
                        Submission.job_id.is_(None),
                        Submission.status.in_([s.value for s in PENDING_STATUSES]),
                    )
                    .values(job_id=job_id, updated_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
            except IntegrityError:
                # Lost a race for the same job_id against another handle
                await session.rollback()
                winner = await self._handle_for_job_id(job_id)
                if winner == handle:
                    return
                raise DuplicateJobId(job_id, existing_handle=str(winner) if winner else None)

            if result.rowcount == 1:
                logger.info("job_id_attached", handle=str(handle), job_id=job_id)
                return

        current = await self.get(handle)
        if current is None:
            raise SubmissionNotFound(f"No submission with handle {handle}")
        if current.job_id == job_id:
            return
        if current.job_id is None:
            raise SubmissionClosed(
                f"Submission {handle} is {current.status}; job_id {job_id!r} not attached"
            )
        raise JobIdAlreadyAttached(
            f"Submission {handle} already bound to job_id {current.job_id!r}"
        )

    # ── Reads ────────────────────────────────────────────────

    async def get(self, handle: Union[str, uuid.UUID]) -> Optional[Submission]:
        async with self._session_factory() as session:
            return await session.get(Submission, _as_handle(handle))

    async def find_by_job_id(self, job_id: str) -> Optional[Submission]:
        """Read-only lookup through the unique job_id index."""
        async with self._session_factory() as session:
            return (await session.execute(
                select(Submission).where(Submission.job_id == job_id)
            )).scalar_one_or_none()

    async def _handle_for_job_id(self, job_id: str) -> Optional[uuid.UUID]:
        async with self._session_factory() as session:
            return (await session.execute(
                select(Submission.id).where(Submission.job_id == job_id)
            )).scalar_one_or_none()

    async def list_submissions(
        self,
        status: Optional[SubmissionStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Submission], int]:
        """Page through submissions, newest first. Returns (rows, total)."""
        query = select(Submission)
        if status is not None:
            query = query.where(Submission.status == SubmissionStatus(status).value)

        async with self._session_factory() as session:
            total = (await session.execute(
                select(func.count()).select_from(query.subquery())
            )).scalar() or 0
            rows = (await session.execute(
                query.order_by(Submission.created_at.desc()).offset(offset).limit(limit)
            )).scalars().all()
        return list(rows), total

    async def status_counts(self) -> dict[str, int]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Submission.status, func.count(Submission.id)).group_by(Submission.status)
            )
            counts = {row[0]: row[1] for row in result.all()}
        return {s.value: counts.get(s.value, 0) for s in SubmissionStatus}

    async def correlation_index(self, include_delivered: bool = False) -> dict[str, str]:
        """
        Rebuild the job_id -> user_ref mapping from the ledger alone.
        By default only jobs still awaiting delivery are included.
        """
        query = select(Submission.job_id, Submission.user_ref).where(Submission.job_id.is_not(None))
        if not include_delivered:
            query = query.where(Submission.status.in_([
                SubmissionStatus.SUBMITTED.value,
                SubmissionStatus.QUEUED.value,
                SubmissionStatus.COMPLETED.value,
            ]))
        async with self._session_factory() as session:
            result = await session.execute(query)
            return {job_id: user_ref for job_id, user_ref in result.all()}

    # ── Mutations ────────────────────────────────────────────

    async def try_transition(
        self,
        job_id: str,
        expected_status: StatusSpec,
        new_status: SubmissionStatus,
        output_ref: Optional[str] = None,
    ) -> TransitionResult:
        """
        Atomically move job_id from one of expected_status to new_status.

        Exactly one concurrent caller with the same expectation receives
        TRANSITIONED; the rest receive ALREADY_TRANSITIONED and must not act.
        Raises SubmissionNotFound if no record carries job_id.
        """
        expected = _as_status_set(expected_status)
        new_status = SubmissionStatus(new_status)
        validate_transition(expected, new_status)

        now = utcnow()
        values: dict = {"status": new_status.value, "updated_at": now}
        if new_status == SubmissionStatus.COMPLETED:
            if not output_ref:
                raise ValueError("output_ref is required when completing a submission")
            values["output_ref"] = output_ref
            values["completed_at"] = now
        elif new_status == SubmissionStatus.DELIVERED:
            values["delivered_at"] = now
        elif output_ref is not None:
            raise ValueError(f"output_ref is only set on {sorted(s.value for s in OUTPUT_STATUSES)}")

        async with self._session_factory() as session:
            result = await session.execute(
                update(Submission)
                .where(
                    Submission.job_id == job_id,
                    Submission.status.in_([s.value for s in expected]),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            transitioned = result.rowcount == 1

        if transitioned:
            logger.info(
                "submission_transitioned",
                job_id=job_id,
                new_status=new_status.value,
            )
            return TransitionResult.TRANSITIONED

        if await self._handle_for_job_id(job_id) is None:
            raise SubmissionNotFound(f"No submission with job_id {job_id!r}")

        logger.debug("submission_already_transitioned", job_id=job_id, new_status=new_status.value)
        return TransitionResult.ALREADY_TRANSITIONED

    async def abandon(self, handle: Union[str, uuid.UUID], reason: str) -> bool:
        """
        Mark a still-pending submission ABANDONED.
        Returns False if the record had already moved on (or never existed).
        """
        handle = _as_handle(handle)
        async with self._session_factory() as session:
            result = await session.execute(
                update(Submission)
                .where(
                    Submission.id == handle,
                    Submission.status.in_([s.value for s in PENDING_STATUSES]),
                )
                .values(
                    status=SubmissionStatus.ABANDONED.value,
                    error_message=reason[:2000],
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        abandoned = result.rowcount == 1
        if abandoned:
            submissions_abandoned_total.labels(reason="intake").inc()
            logger.warning("submission_abandoned", handle=str(handle), reason=reason)
        return abandoned

    # ── Retention ────────────────────────────────────────────

    async def sweep_stale(self, ttl: timedelta, now: Optional[datetime] = None) -> int:
        """Abandon SUBMITTED records that never received a job_id within ttl."""
        cutoff = (now or utcnow()) - ttl
        async with self._session_factory() as session:
            result = await session.execute(
                update(Submission)
                .where(
                    Submission.status == SubmissionStatus.SUBMITTED.value,
                    Submission.job_id.is_(None),
                    Submission.created_at < cutoff,
                )
                .values(
                    status=SubmissionStatus.ABANDONED.value,
                    error_message="No job_id assigned before TTL expired",
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        count = result.rowcount or 0
        if count:
            submissions_abandoned_total.labels(reason="ttl").inc(count)
            logger.warning("stale_submissions_abandoned", count=count, cutoff=cutoff.isoformat())
        return count

    async def purge_delivered(self, older_than: timedelta, now: Optional[datetime] = None) -> int:
        """Delete DELIVERED records last touched before the retention window."""
        cutoff = (now or utcnow()) - older_than
        async with self._session_factory() as session:
            result = await session.execute(
                delete(Submission)
                .where(
                    Submission.status == SubmissionStatus.DELIVERED.value,
                    Submission.updated_at < cutoff,
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        count = result.rowcount or 0
        if count:
            logger.info("delivered_submissions_purged", count=count, cutoff=cutoff.isoformat())
        return count
