"""
Credit-metered website generation pipeline.

The synchronous phase validates the request, debits credits and creates the
project shell in a single commit. The background phase runs the two AI stages
and either persists a version or refunds the debit.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple
import uuid

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import async_session_maker
from models.project import WebsiteProject
from models.user import User
from services.artifacts import append_entry, create_project, create_version, set_current
from services.credits import debit_credits, refund_credits
from services.site_ai import enhance_prompt, generate_site_code

logger = logging.getLogger(__name__)

GENERATION_REFERENCE_TYPE = "generation"
INITIAL_VERSION_DESCRIPTION = "Initial Version"

STATUS_PENDING = "pending"
STATUS_ENHANCING = "enhancing"
STATUS_GENERATING = "generating"
STATUS_SUCCEEDED = "succeeded"
STATUS_EMPTY_OUTPUT = "empty_output"
STATUS_FAILED = "failed"
STATUS_RECOVERING = "recovering"

GENERATING_MESSAGE = "now generating your website..."
SUCCESS_MESSAGE = "I've created your website! You can now preview it and request changes."
EMPTY_OUTPUT_MESSAGE = "Unable to create the code. Please try again."
FAILURE_MESSAGE = "Something went wrong while generating your website. Please try again."


def enhanced_prompt_message(enhanced_prompt: str) -> str:
    return f'I\'ve enhanced your prompt to: "{enhanced_prompt}"'


async def start_generation(user_id: Optional[str], initial_prompt: Optional[str], db: AsyncSession) -> str:
    """Validate, debit and create the project shell. Returns the new project id."""
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized user")
    prompt = (initial_prompt or "").strip()
    if not prompt:
        raise HTTPException(status_code=400, detail="initial_prompt is required")

    result = await db.execute(select(User.credits).where(User.id == user_id))
    credits = result.scalar_one_or_none()
    if credits is None:
        raise HTTPException(status_code=401, detail="User not found")

    cost = int(settings.GENERATION_CREDIT_COST)
    if credits < cost:
        raise HTTPException(status_code=402, detail="Add credits to create more projects")

    project_id = str(uuid.uuid4())
    try:
        await create_project(user_id, prompt, db, project_id=project_id)
        await append_entry(project_id, "user", prompt, db, commit=False)
        await debit_credits(
            user_id,
            db,
            amount=cost,
            reason="Website generation",
            reference_type=GENERATION_REFERENCE_TYPE,
            reference_id=project_id,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Generation {project_id} accepted for user {user_id}; {cost} credits debited")
    return project_id


class GenerationSuperseded(Exception):
    """The project left the status this job expected; another run settled it."""


async def _advance_status(
    db: AsyncSession,
    project_id: str,
    from_statuses: Tuple[str, ...],
    to_status: str,
) -> bool:
    """Conditionally move a project between statuses. Does not commit."""
    result = await db.execute(
        update(WebsiteProject)
        .where(
            WebsiteProject.id == project_id,
            WebsiteProject.generation_status.in_(from_statuses),
        )
        .values(generation_status=to_status)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _commit_transition(db: AsyncSession, project_id: str, from_status: str, to_status: str) -> None:
    """Commit pending writes together with a status move, or discard them all."""
    if not await _advance_status(db, project_id, (from_status,), to_status):
        await db.rollback()
        raise GenerationSuperseded(f"expected {from_status}, could not move to {to_status}")
    await db.commit()


async def _claim_job(db: AsyncSession, project_id: str) -> bool:
    """Move a pending project to enhancing; False when another run already owns it."""
    claimed = await _advance_status(db, project_id, (STATUS_PENDING,), STATUS_ENHANCING)
    await db.commit()
    return claimed


async def refund_generation(db: AsyncSession, user_id: str, project_id: str, reason: str) -> bool:
    """Best-effort compensating refund; failures are logged, never raised."""
    try:
        return await refund_credits(
            user_id,
            db,
            amount=int(settings.GENERATION_CREDIT_COST),
            reason=reason,
            reference_type=GENERATION_REFERENCE_TYPE,
            reference_id=project_id,
        )
    except Exception:
        logger.exception(f"Refund for generation {project_id} (user {user_id}) failed")
        return False


async def fail_generation(
    db: AsyncSession,
    user_id: str,
    project_id: str,
    reason: str,
    from_statuses: Tuple[str, ...] = (STATUS_ENHANCING, STATUS_GENERATING),
) -> bool:
    """
    Mark a generation failed, log it in the conversation and refund the debit.

    The failed status is only taken from ``from_statuses``; when the project has
    already settled elsewhere nothing is written and no refund is issued.
    """
    await db.rollback()
    try:
        if not await _advance_status(db, project_id, from_statuses, STATUS_FAILED):
            await db.rollback()
            logger.warning(f"Generation {project_id} already settled; no failure recorded")
            return False
        await append_entry(project_id, "assistant", FAILURE_MESSAGE, db, commit=False)
        await db.commit()
    except Exception:
        logger.exception(f"Could not record failure for generation {project_id}")
        await db.rollback()
    await refund_generation(db, user_id, project_id, reason)
    return True


async def _run_stages(db: AsyncSession, project: WebsiteProject) -> str:
    project_id = project.id
    user_id = project.user_id

    enhanced = await enhance_prompt(project.initial_prompt)
    await append_entry(project_id, "assistant", enhanced_prompt_message(enhanced), db, commit=False)
    await append_entry(project_id, "assistant", GENERATING_MESSAGE, db, commit=False)
    await _commit_transition(db, project_id, STATUS_ENHANCING, STATUS_GENERATING)

    code = await generate_site_code(enhanced)
    if code is None:
        await append_entry(project_id, "assistant", EMPTY_OUTPUT_MESSAGE, db, commit=False)
        await _commit_transition(db, project_id, STATUS_GENERATING, STATUS_EMPTY_OUTPUT)
        await refund_generation(db, user_id, project_id, "Generation produced no code")
        logger.warning(f"Generation {project_id} produced no code; credits refunded")
        return STATUS_EMPTY_OUTPUT

    version = await create_version(project_id, code, INITIAL_VERSION_DESCRIPTION, db)
    await set_current(project_id, version.id, code, db)
    await append_entry(project_id, "assistant", SUCCESS_MESSAGE, db, commit=False)
    await _commit_transition(db, project_id, STATUS_GENERATING, STATUS_SUCCEEDED)
    logger.info(f"Generation {project_id} completed with version {version.id}")
    return STATUS_SUCCEEDED


async def process_generation_job(project_id: str) -> Optional[str]:
    """
    Background task running the transform stages for one project.

    Owns its own session and error handling; never raises. Returns the final
    generation status, or None when this run did not settle the project.
    """
    async with async_session_maker() as db:
        try:
            result = await db.execute(select(WebsiteProject).where(WebsiteProject.id == project_id))
            project = result.scalar_one_or_none()
        except Exception:
            # Left pending; the stalled-generation sweep settles it.
            logger.exception(f"Could not load project {project_id}; generation not started")
            return None
        if not project:
            logger.error(f"Project {project_id} not found; aborting generation task")
            return None

        user_id = project.user_id
        try:
            if not await _claim_job(db, project_id):
                logger.warning(f"Generation {project_id} already handled; skipping duplicate run")
                return None
            logger.info(f"Starting generation {project_id} for user {user_id}")
            return await _run_stages(db, project)
        except GenerationSuperseded as e:
            logger.warning(f"Generation {project_id} was settled by another run ({e}); result discarded")
            return None
        except Exception as e:
            logger.error(f"Generation {project_id} failed: {e}")
            await fail_generation(db, user_id, project_id, "Generation failed")
            return STATUS_FAILED
