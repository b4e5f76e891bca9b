"""Detached execution of generation jobs (in-process or Redis/RQ)."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from fastapi import BackgroundTasks
from redis import Redis
from rq import Queue
from rq.job import Job
from sqlalchemy import exists, update
from sqlalchemy.orm import aliased
from sqlalchemy.future import select

from config import settings
from database import async_session_maker, engine
from models.credit_ledger import CreditLedger
from models.project import GENERATION_IN_PROGRESS_STATUSES, WebsiteProject
from services import generation

logger = logging.getLogger(__name__)

GENERATION_QUEUE_NAME = "generation_jobs"


def get_redis_connection() -> Redis:
    """Build Redis connection used by RQ."""
    return Redis.from_url(settings.REDIS_URL)


def get_generation_queue() -> Queue:
    """Return the configured generation queue."""
    return Queue(
        name=GENERATION_QUEUE_NAME,
        connection=get_redis_connection(),
        default_timeout=settings.GENERATION_JOB_TIMEOUT_SECONDS,
    )


def enqueue_generation_job(project_id: str) -> Job:
    """Enqueue a generation job. No retries: a debited attempt runs at most once."""
    queue = get_generation_queue()
    return queue.enqueue(
        "services.generation_queue.run_generation_job",
        project_id,
        job_id=f"generation:{project_id}",
        job_timeout=settings.GENERATION_JOB_TIMEOUT_SECONDS,
        result_ttl=86400,
        failure_ttl=86400,
    )


def run_generation_job(project_id: str):
    """RQ entrypoint: run the async pipeline on a fresh event loop."""

    async def _run():
        try:
            return await generation.process_generation_job(project_id)
        finally:
            await engine.dispose()

    return asyncio.run(_run())


def dispatch_generation(project_id: str, background_tasks: BackgroundTasks) -> str:
    """Hand a generation job to the configured executor without awaiting it."""
    if settings.GENERATION_EXECUTOR == "rq":
        try:
            enqueue_generation_job(project_id)
            return "rq"
        except Exception as exc:
            # Queue unavailable: keep the debit obligation by running in-process.
            logger.warning(f"Generation queue unavailable for {project_id}, running in-process: {exc}")

    background_tasks.add_task(generation.process_generation_job, project_id)
    return "inline"


async def recover_stalled_generations(max_age_minutes: int = 60) -> int:
    """Fail and refund generations left in progress by a crashed or restarted worker."""
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=max(max_age_minutes, 1))
    recovered = 0
    async with async_session_maker() as db:
        result = await db.execute(
            select(WebsiteProject.id, WebsiteProject.user_id).where(
                WebsiteProject.generation_status.in_(GENERATION_IN_PROGRESS_STATUSES),
                WebsiteProject.updated_at < cutoff,
            )
        )
        stalled = result.all()
        for project_id, user_id in stalled:
            claimed = await db.execute(
                update(WebsiteProject)
                .where(
                    WebsiteProject.id == project_id,
                    WebsiteProject.generation_status.in_(GENERATION_IN_PROGRESS_STATUSES),
                    WebsiteProject.updated_at < cutoff,
                )
                .values(generation_status=generation.STATUS_RECOVERING)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            if claimed.rowcount != 1:
                continue
            settled = await generation.fail_generation(
                db,
                user_id,
                project_id,
                "Generation interrupted",
                from_statuses=(generation.STATUS_RECOVERING,),
            )
            if settled:
                recovered += 1
    return recovered


async def settle_unrefunded_generations() -> int:
    """Issue refunds owed to settled generations whose in-job refund failed.

    A generation is owed a refund when it ended ``failed`` or ``empty_output``
    without a Version and the ledger holds its debit but no refund.
    """
    debit = aliased(CreditLedger)
    refund = aliased(CreditLedger)
    settled = 0
    async with async_session_maker() as db:
        result = await db.execute(
            select(WebsiteProject.id, WebsiteProject.user_id).where(
                WebsiteProject.generation_status.in_((generation.STATUS_FAILED, generation.STATUS_EMPTY_OUTPUT)),
                WebsiteProject.current_version_index.is_(None),
                exists().where(
                    debit.entry_type == "debit",
                    debit.reference_type == generation.GENERATION_REFERENCE_TYPE,
                    debit.reference_id == WebsiteProject.id,
                ),
                ~exists().where(
                    refund.entry_type == "refund",
                    refund.reference_type == generation.GENERATION_REFERENCE_TYPE,
                    refund.reference_id == WebsiteProject.id,
                ),
            )
        )
        for project_id, user_id in result.all():
            if await generation.refund_generation(db, user_id, project_id, "Refund reconciled"):
                settled += 1
    return settled
