"""
Error taxonomy for the relay core and its collaborators.
Every error carries an error_code used as a log field and metric label.
"""

from typing import Optional


class RelayError(Exception):
    """Base class for all relay errors."""

    error_code = "ERR_RELAY"

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        super().__init__(f"{self.error_code}: {message}")


class SubmissionNotFound(RelayError):
    """No ledger record for the given handle or job_id (unknown or purged)."""

    error_code = "ERR_NOT_FOUND"


class SubmissionError(RelayError):
    """Intake could not bind a document to a scanner job."""

    error_code = "ERR_SUBMISSION"


class DuplicateJobId(SubmissionError):
    """The scanner returned a job_id already bound to another submission."""

    error_code = "ERR_DUPLICATE_JOB_ID"

    def __init__(self, job_id: str, existing_handle: Optional[str] = None):
        self.job_id = job_id
        self.existing_handle = existing_handle
        super().__init__(f"job_id {job_id!r} already bound to submission {existing_handle}")


class JobIdAlreadyAttached(SubmissionError):
    """The submission already carries a different job_id."""

    error_code = "ERR_JOB_ID_ATTACHED"


class SubmissionClosed(SubmissionError):
    """The submission left the pending states before its job_id arrived."""

    error_code = "ERR_SUBMISSION_CLOSED"


class ExternalSubmitFailure(SubmissionError):
    """The scanner rejected the document, or could not be reached."""

    error_code = "ERR_EXTERNAL_SUBMIT"


class DispatchFailure(RelayError):
    """A notification could not be sent to the user."""

    error_code = "ERR_DISPATCH"


class ScannerError(RelayError):
    """Raised by the scanner client on a failed or rejected submission."""

    error_code = "ERR_SCANNER"


class WhatsAppError(RelayError):
    """Raised by the WhatsApp client on a failed Cloud API call."""

    error_code = "ERR_WHATSAPP"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
