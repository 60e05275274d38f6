"""
Scanner callback endpoint.

The event is fully handled, and its ledger writes committed, before the 200 is
returned. Unknown, stale and duplicate events are still answered with 200 so
the scanner stops retrying.
"""

import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from docrelay.core.correlation import CorrelationEngine
from docrelay.dependencies import get_correlation_engine
from docrelay.models.enums import CallbackOutcome, CallbackStatus
from docrelay.observability.metrics import callbacks_received_total
from docrelay.schemas.callbacks import CallbackAck, CallbackEvent

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["scanner"])


@router.post("/turnitin-webhook", response_model=CallbackAck)
async def scanner_callback(
    request: Request,
    engine: CorrelationEngine = Depends(get_correlation_engine),
):
    try:
        body = await request.json()
        event = CallbackEvent.model_validate(body)
    except (ValueError, ValidationError) as e:
        callbacks_received_total.labels(status="invalid").inc()
        logger.warning("callback_payload_invalid", error=str(e)[:200])
        return CallbackAck(outcome=CallbackOutcome.IGNORED.value)

    known = {s.value for s in CallbackStatus}
    callbacks_received_total.labels(
        status=event.normalized_status if event.normalized_status in known else "other"
    ).inc()
    logger.info("callback_received", job_id=event.job_id, status=event.status)

    outcome = await engine.handle_event(event)
    return CallbackAck(outcome=outcome.value)
