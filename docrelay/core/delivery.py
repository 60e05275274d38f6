"""
Delivery guard: admits exactly one "deliver the report" action per job.

Two phases, kept distinct so a crash between them is visible in the ledger:
COMPLETED means a caller claimed the right to notify; DELIVERED means the
notification was sent. A record stuck at COMPLETED is a reconciliation
candidate and is never retried from the callback path.
"""

from typing import Optional

import structlog

from docrelay.clients.base import NotificationDispatcher
from docrelay.config import settings
from docrelay.errors import DispatchFailure
from docrelay.ledger.submission_ledger import SubmissionLedger
from docrelay.models.enums import (
    PENDING_STATUSES,
    DeliveryOutcome,
    GuardDecision,
    SubmissionStatus,
    TransitionResult,
)
from docrelay.observability.metrics import delivery_attempts_total

logger = structlog.get_logger(__name__)


class DeliveryGuard:
    def __init__(
        self,
        ledger: SubmissionLedger,
        dispatcher: NotificationDispatcher,
        report_filename: Optional[str] = None,
    ):
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.report_filename = report_filename or settings.REPORT_FILENAME

    async def guard_delivery(self, job_id: str, output_ref: str) -> GuardDecision:
        """
        Claim the job for delivery. Raises SubmissionNotFound for unknown jobs.
        """
        result = await self.ledger.try_transition(
            job_id,
            PENDING_STATUSES,
            SubmissionStatus.COMPLETED,
            output_ref=output_ref,
        )
        if result == TransitionResult.TRANSITIONED:
            return GuardDecision.ADMITTED
        return GuardDecision.REJECTED

    async def deliver(self, job_id: str, output_ref: str) -> DeliveryOutcome:
        """Run the guard and, if admitted, dispatch the report and mark DELIVERED."""
        log = logger.bind(job_id=job_id)

        if await self.guard_delivery(job_id, output_ref) == GuardDecision.REJECTED:
            delivery_attempts_total.labels(outcome=DeliveryOutcome.REJECTED.value).inc()
            log.info("delivery_rejected_already_claimed")
            return DeliveryOutcome.REJECTED

        submission = await self.ledger.find_by_job_id(job_id)
        if submission is None:
            # Purged between claim and read; nothing left to notify
            delivery_attempts_total.labels(outcome=DeliveryOutcome.DISPATCH_FAILED.value).inc()
            log.error("delivery_record_vanished")
            return DeliveryOutcome.DISPATCH_FAILED

        try:
            await self.dispatcher.notify_document(submission.user_ref, output_ref, self.report_filename)
        except DispatchFailure as e:
            delivery_attempts_total.labels(outcome=DeliveryOutcome.DISPATCH_FAILED.value).inc()
            log.error(
                "delivery_dispatch_failed",
                user_ref=submission.user_ref,
                error_code=e.error_code,
                error=e.message,
            )
            return DeliveryOutcome.DISPATCH_FAILED

        marked = await self.ledger.try_transition(
            job_id, SubmissionStatus.COMPLETED, SubmissionStatus.DELIVERED
        )
        if marked != TransitionResult.TRANSITIONED:
            delivery_attempts_total.labels(outcome=DeliveryOutcome.MARK_FAILED.value).inc()
            log.error("delivery_mark_failed", user_ref=submission.user_ref)
            return DeliveryOutcome.MARK_FAILED

        delivery_attempts_total.labels(outcome=DeliveryOutcome.DELIVERED.value).inc()
        log.info("report_delivered", user_ref=submission.user_ref, output_ref=output_ref)
        return DeliveryOutcome.DELIVERED
