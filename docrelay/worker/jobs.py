"""
RQ job functions for the relay.
These are the entry points that the worker calls.
"""

from datetime import timedelta

import structlog
from redis import Redis
from rq import Queue

from docrelay.config import settings
from docrelay.ledger.submission_ledger import SubmissionLedger

logger = structlog.get_logger(__name__)


def get_queue() -> Queue:
    """Get the relay job queue."""
    conn = Redis.from_url(settings.REDIS_URL)
    return Queue(settings.QUEUE_NAME, connection=conn)


def enqueue_inbound_message(message: dict) -> str:
    """
    Enqueue an inbound WhatsApp message for processing.
    Returns the RQ job ID.
    """
    q = get_queue()
    job = q.enqueue(
        process_inbound_message_job,
        message,
        job_timeout=settings.JOB_TIMEOUT_SECONDS,
        result_ttl=86400,  # Keep results for 24 hours
        failure_ttl=604800,  # Keep failures for 7 days
    )
    logger.info("inbound_message_enqueued", user_ref=message.get("from"), rq_job_id=job.id)
    return job.id


def enqueue_retention_sweep() -> str:
    """Enqueue a retention sweep. Returns the RQ job ID."""
    q = get_queue()
    job = q.enqueue(retention_sweep_job, job_timeout=settings.JOB_TIMEOUT_SECONDS)
    logger.info("retention_sweep_enqueued", rq_job_id=job.id)
    return job.id


async def run_retention_sweep(ledger: SubmissionLedger) -> dict:
    """Abandon stale job-less submissions and purge old delivered ones."""
    abandoned = await ledger.sweep_stale(timedelta(hours=settings.SUBMISSION_TTL_HOURS))
    purged = 0
    if settings.DELIVERED_RETENTION_DAYS > 0:
        purged = await ledger.purge_delivered(timedelta(days=settings.DELIVERED_RETENTION_DAYS))
    logger.info("retention_sweep_finished", abandoned=abandoned, purged=purged)
    return {"abandoned": abandoned, "purged": purged}


def process_inbound_message_job(message: dict) -> str:
    """
    Main job function: run one inbound message through intake.
    This runs inside the RQ worker process.
    """
    import asyncio

    logger.info("job_started", user_ref=message.get("from"))

    try:
        job_id = asyncio.run(_process_inbound_async(message))
        logger.info("job_completed", user_ref=message.get("from"), job_id=job_id or None)
        return job_id
    except Exception as e:
        logger.error("job_failed", user_ref=message.get("from"), error=str(e))
        raise


def retention_sweep_job() -> dict:
    import asyncio

    return asyncio.run(_retention_sweep_async())


async def _process_inbound_async(message: dict) -> str:
    """
    Builds its own engine and clients: each asyncio.run() gets a fresh event loop.
    """
    from docrelay.clients.turnitin_client import TurnitinClient
    from docrelay.clients.whatsapp_client import WhatsAppClient
    from docrelay.core.inbound import InboundMessageHandler
    from docrelay.core.intake import SubmissionIntake
    from docrelay.models.database import create_engine_for_url, create_session_factory
    from docrelay.schemas.whatsapp import InboundMessage

    engine = create_engine_for_url(settings.DATABASE_URL)
    whatsapp = WhatsAppClient()
    scanner = TurnitinClient()
    try:
        ledger = SubmissionLedger(create_session_factory(engine))
        handler = InboundMessageHandler(SubmissionIntake(ledger), whatsapp, whatsapp, scanner)
        return await handler.handle(InboundMessage.model_validate(message))
    finally:
        await whatsapp.aclose()
        await scanner.aclose()
        await engine.dispose()


async def _retention_sweep_async() -> dict:
    from docrelay.models.database import create_engine_for_url, create_session_factory

    engine = create_engine_for_url(settings.DATABASE_URL)
    try:
        return await run_retention_sweep(SubmissionLedger(create_session_factory(engine)))
    finally:
        await engine.dispose()
