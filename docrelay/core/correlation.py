"""
Correlation engine: maps one scanner callback event to a ledger action.

Callbacks are at-least-once and unordered, even for a single job. Duplicates of
"completed" are absorbed by the delivery guard; a "queued" that arrives after
completion is dropped by an explicit status check. Unknown job_ids are
acknowledged and ignored so the scanner stops retrying.
"""

import structlog

from docrelay.clients.base import NotificationDispatcher
from docrelay.core.delivery import DeliveryGuard
from docrelay.errors import DispatchFailure, SubmissionNotFound
from docrelay.models.enums import (
    PENDING_STATUSES,
    CallbackOutcome,
    CallbackStatus,
    DeliveryOutcome,
    SubmissionStatus,
)
from docrelay.ledger.submission_ledger import SubmissionLedger
from docrelay.observability.metrics import callback_outcomes_total, callbacks_uncorrelated_total
from docrelay.schemas.callbacks import CallbackEvent

logger = structlog.get_logger(__name__)

QUEUED_NOTICE = "Your document is in the queue. The plagiarism report will follow shortly."

_DELIVERY_TO_CALLBACK = {
    DeliveryOutcome.DELIVERED: CallbackOutcome.DELIVERED,
    DeliveryOutcome.REJECTED: CallbackOutcome.DUPLICATE,
    DeliveryOutcome.DISPATCH_FAILED: CallbackOutcome.DISPATCH_FAILED,
    DeliveryOutcome.MARK_FAILED: CallbackOutcome.DISPATCH_FAILED,
}


class CorrelationEngine:
    def __init__(
        self,
        ledger: SubmissionLedger,
        dispatcher: NotificationDispatcher,
        guard: DeliveryGuard,
    ):
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.guard = guard

    async def handle_event(self, event: CallbackEvent) -> CallbackOutcome:
        """Handle one callback. Never raises for unknown, stale or duplicate events."""
        status = event.normalized_status
        if status == CallbackStatus.QUEUED.value:
            outcome = await self._on_queued(event)
        elif status == CallbackStatus.COMPLETED.value and event.report_ref:
            outcome = await self._on_completed(event)
        else:
            logger.info(
                "callback_ignored",
                job_id=event.job_id,
                status=event.status,
                has_report=bool(event.report_ref),
            )
            outcome = CallbackOutcome.IGNORED

        callback_outcomes_total.labels(outcome=outcome.value).inc()
        return outcome

    def _unknown_job(self, event: CallbackEvent) -> CallbackOutcome:
        callbacks_uncorrelated_total.labels(status=event.normalized_status).inc()
        logger.warning(
            "callback_uncorrelated",
            job_id=event.job_id,
            status=event.status,
            detail="No submission for this job_id; it may have been purged or never created here",
        )
        return CallbackOutcome.UNKNOWN_JOB

    async def _on_queued(self, event: CallbackEvent) -> CallbackOutcome:
        submission = await self.ledger.find_by_job_id(event.job_id)
        if submission is None:
            return self._unknown_job(event)

        if SubmissionStatus(submission.status) not in PENDING_STATUSES:
            logger.info("queued_notice_stale", job_id=event.job_id, current_status=submission.status)
            return CallbackOutcome.STALE_DROPPED

        try:
            await self.dispatcher.notify_text(submission.user_ref, QUEUED_NOTICE)
        except DispatchFailure as e:
            logger.warning("queued_notice_failed", job_id=event.job_id, error=e.message)
            return CallbackOutcome.QUEUED_NOTICE_FAILED

        logger.info("queued_notice_sent", job_id=event.job_id, user_ref=submission.user_ref)
        return CallbackOutcome.QUEUED_NOTICE_SENT

    async def _on_completed(self, event: CallbackEvent) -> CallbackOutcome:
        try:
            delivery = await self.guard.deliver(event.job_id, event.report_ref)
        except SubmissionNotFound:
            return self._unknown_job(event)
        return _DELIVERY_TO_CALLBACK[delivery]
