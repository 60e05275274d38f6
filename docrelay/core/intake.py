"""
Submission intake: records a document in the ledger, then hands it to the scanner.
"""

from typing import Awaitable, Callable, Optional

import structlog

from docrelay.errors import DuplicateJobId, ExternalSubmitFailure, RelayError, SubmissionClosed
from docrelay.ledger.submission_ledger import SubmissionLedger

logger = structlog.get_logger(__name__)

ExternalSubmitFn = Callable[[], Awaitable[str]]


class SubmissionIntake:
    def __init__(self, ledger: SubmissionLedger):
        self.ledger = ledger

    async def submit(
        self,
        user_ref: str,
        input_ref: str,
        external_submit_fn: ExternalSubmitFn,
        file_name: Optional[str] = None,
    ) -> str:
        """
        Create the ledger record, run the external submission, bind the job_id.

        The record exists before the external call, so a failure part-way is
        visible and gets marked ABANDONED. Returns the scanner's job_id;
        raises a SubmissionError subclass on failure.
        """
        handle = await self.ledger.create(user_ref, input_ref, file_name=file_name)
        log = logger.bind(handle=str(handle), user_ref=user_ref)

        try:
            job_id = await external_submit_fn()
        except RelayError as e:
            await self.ledger.abandon(handle, f"{e.error_code}: {e.message}")
            log.warning("external_submit_failed", error_code=e.error_code, error=e.message)
            raise ExternalSubmitFailure(e.message) from e
        except Exception as e:
            await self.ledger.abandon(handle, f"unexpected: {e}")
            log.error("external_submit_crashed", error=str(e), exc_info=True)
            raise ExternalSubmitFailure(str(e)) from e

        if not job_id:
            await self.ledger.abandon(handle, "scanner returned an empty job_id")
            raise ExternalSubmitFailure("Scanner returned an empty job_id")

        try:
            await self.ledger.attach_job_id(handle, job_id)
        except DuplicateJobId as e:
            log.critical(
                "duplicate_job_id",
                job_id=job_id,
                existing_handle=e.existing_handle,
                detail="Scanner reused a job_id; correlation for this document is abandoned",
            )
            await self.ledger.abandon(handle, e.message)
            raise
        except SubmissionClosed as e:
            log.warning("job_id_arrived_after_abandon", job_id=job_id, error=e.message)
            raise

        log.info("submission_accepted", job_id=job_id)
        return job_id
