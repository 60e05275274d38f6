"""
Worker entry point for inbound-message and retention jobs.
Run with: python -m docrelay.worker.runner
"""

import structlog
from redis import Redis
from redis.exceptions import RedisError
from rq import Worker

from docrelay.config import settings
from docrelay.observability.logging import setup_logging

logger = structlog.get_logger(__name__)


def build_worker(conn: Redis) -> Worker:
    return Worker(
        queues=[settings.QUEUE_NAME],
        connection=conn,
        name=f"relay-worker-{settings.APP_VERSION}",
    )


def main():
    """Start the RQ worker."""
    setup_logging(role="worker")

    if settings.SENTRY_DSN:
        import sentry_sdk
        from sentry_sdk.integrations.rq import RqIntegration
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            integrations=[RqIntegration()],
            traces_sample_rate=0.1,
        )

    conn = Redis.from_url(settings.REDIS_URL)
    try:
        conn.ping()
    except RedisError as e:
        logger.error("worker_redis_unreachable", redis_url=settings.REDIS_URL, error=str(e))
        raise SystemExit(1) from e

    worker = build_worker(conn)
    logger.info(
        "worker_starting",
        queue=settings.QUEUE_NAME,
        worker_name=worker.name,
        job_timeout=settings.JOB_TIMEOUT_SECONDS,
    )
    worker.work(with_scheduler=False)
    logger.info("worker_stopped", worker_name=worker.name)


if __name__ == "__main__":
    main()
