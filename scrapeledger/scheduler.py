import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from scrapeledger.checkpoint import Checkpointer
from scrapeledger.config import Settings
from scrapeledger.retry import RetryExhaustedError, run_with_retries


logger = logging.getLogger(__name__)

PERSIST_JOB_ID = "persist_state"


async def run_persist_job(checkpointer: Checkpointer, settings: Settings) -> bool:
    """One periodic checkpoint. On failure the previous snapshot stays authoritative."""

    def log_attempt(attempt: int, exc: Exception) -> None:
        logger.warning("checkpoint attempt failed", extra={"attempt": attempt, "error": str(exc)})

    try:
        await run_with_retries(
            checkpointer.persist_state,
            max_retries=settings.max_persist_retries,
            backoff_seconds=settings.retry_backoff_seconds,
            on_attempt_failure=log_attempt,
        )
        await run_with_retries(
            checkpointer.persist_accumulator,
            max_retries=settings.max_persist_retries,
            backoff_seconds=settings.retry_backoff_seconds,
            on_attempt_failure=log_attempt,
        )
    except RetryExhaustedError:
        logger.exception("periodic checkpoint failed")
        return False
    return True


def build_persist_scheduler(checkpointer: Checkpointer, settings: Settings) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        run_persist_job,
        "interval",
        args=[checkpointer, settings],
        seconds=settings.persist_interval_seconds,
        id=PERSIST_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    logger.info("checkpoint scheduler configured", extra={"interval_seconds": settings.persist_interval_seconds})
    return scheduler
