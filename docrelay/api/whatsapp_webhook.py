"""
/webhook endpoints for the WhatsApp Cloud API.
GET answers Meta's subscription handshake; POST receives user messages.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from fastapi.responses import PlainTextResponse, Response
from pydantic import ValidationError

from docrelay.config import settings
from docrelay.core.inbound import InboundMessageHandler
from docrelay.dependencies import get_inbound_handler, verify_whatsapp_signature
from docrelay.schemas.whatsapp import WebhookPayload

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["whatsapp"])


@router.get("/webhook")
async def verify_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
):
    """Echo the challenge when Meta subscribes with the configured token."""
    if not mode or not token:
        return Response(status_code=status.HTTP_400_BAD_REQUEST)

    if mode == "subscribe" and settings.WEBHOOK_VERIFICATION_TOKEN and token == settings.WEBHOOK_VERIFICATION_TOKEN:
        logger.info("webhook_verified")
        return PlainTextResponse(challenge or "", status_code=status.HTTP_200_OK)

    logger.warning("webhook_verification_rejected", mode=mode)
    return Response(status_code=status.HTTP_403_FORBIDDEN)


@router.post("/webhook", dependencies=[Depends(verify_whatsapp_signature)])
async def receive_message(
    request: Request,
    background_tasks: BackgroundTasks,
    handler: InboundMessageHandler = Depends(get_inbound_handler),
):
    """
    Acknowledge immediately; the message is processed on the worker queue,
    or after the response when the queue is disabled or unreachable.
    """
    try:
        payload = WebhookPayload.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.warning("webhook_payload_invalid", error=str(e)[:200])
        return {"received": True}

    message = payload.first_message()
    if message is None:
        # Delivery receipts and other status updates carry no messages
        return {"received": True}

    if settings.USE_WORKER_QUEUE:
        try:
            from docrelay.worker.jobs import enqueue_inbound_message
            enqueue_inbound_message(message.model_dump(by_alias=True))
            return {"received": True}
        except Exception as enqueue_err:
            # Redis unavailable, handle in-process
            logger.warning("enqueue_failed", user_ref=message.from_, error=str(enqueue_err))

    background_tasks.add_task(handler.handle, message)
    return {"received": True}
