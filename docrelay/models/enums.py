"""
Python enums for ledger state and handler outcomes.
Status names and values MUST match the values stored in the submissions table.
"""

from enum import Enum


class SubmissionStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    QUEUED = "QUEUED"
    COMPLETED = "COMPLETED"
    DELIVERED = "DELIVERED"
    ABANDONED = "ABANDONED"


# Forward-only edges. ABANDONED is terminal and only reachable before completion.
ALLOWED_TRANSITIONS: dict[SubmissionStatus, frozenset[SubmissionStatus]] = {
    SubmissionStatus.SUBMITTED: frozenset({
        SubmissionStatus.QUEUED,
        SubmissionStatus.COMPLETED,
        SubmissionStatus.ABANDONED,
    }),
    SubmissionStatus.QUEUED: frozenset({
        SubmissionStatus.COMPLETED,
        SubmissionStatus.ABANDONED,
    }),
    SubmissionStatus.COMPLETED: frozenset({SubmissionStatus.DELIVERED}),
    SubmissionStatus.DELIVERED: frozenset(),
    SubmissionStatus.ABANDONED: frozenset(),
}

# Statuses that carry an output_ref
OUTPUT_STATUSES = frozenset({SubmissionStatus.COMPLETED, SubmissionStatus.DELIVERED})

# Statuses a job can still be waiting in
PENDING_STATUSES = frozenset({SubmissionStatus.SUBMITTED, SubmissionStatus.QUEUED})


class TransitionResult(str, Enum):
    TRANSITIONED = "TRANSITIONED"
    ALREADY_TRANSITIONED = "ALREADY_TRANSITIONED"


class GuardDecision(str, Enum):
    ADMITTED = "ADMITTED"
    REJECTED = "REJECTED"


class DeliveryOutcome(str, Enum):
    DELIVERED = "DELIVERED"
    REJECTED = "REJECTED"
    DISPATCH_FAILED = "DISPATCH_FAILED"
    # Won the COMPLETED claim but lost the DELIVERED mark (should not happen)
    MARK_FAILED = "MARK_FAILED"


class CallbackOutcome(str, Enum):
    """What the correlation engine did with one callback event."""
    QUEUED_NOTICE_SENT = "QUEUED_NOTICE_SENT"
    QUEUED_NOTICE_FAILED = "QUEUED_NOTICE_FAILED"
    STALE_DROPPED = "STALE_DROPPED"
    UNKNOWN_JOB = "UNKNOWN_JOB"
    DELIVERED = "DELIVERED"
    DUPLICATE = "DUPLICATE"
    DISPATCH_FAILED = "DISPATCH_FAILED"
    IGNORED = "IGNORED"


class CallbackStatus(str, Enum):
    """Statuses reported by the scanner callback that the relay acts on."""
    QUEUED = "queued"
    COMPLETED = "completed"
