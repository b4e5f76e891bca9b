"""
Project router: start generations, read projects, toggle publishing.
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from routers.rate_limit import rate_limit
from services.artifacts import get_project, list_projects, toggle_publish
from services.generation import STATUS_PENDING, start_generation
from services.generation_queue import dispatch_generation

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateProjectRequest(BaseModel):
    initial_prompt: Optional[str] = None


class CreateProjectResponse(BaseModel):
    project_id: str
    generation_status: str


class TogglePublishResponse(BaseModel):
    project_id: str
    is_published: bool
    message: str


@router.post("/project", response_model=CreateProjectResponse)
async def create_user_project(
    request: CreateProjectRequest,
    background_tasks: BackgroundTasks,
    _rate_limit: None = Depends(rate_limit("project_create", limit=30, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Debit credits, create the project and generate it in the background."""
    project_id = await start_generation(auth.user_id, request.initial_prompt, db)
    executor = dispatch_generation(project_id, background_tasks)
    logger.info("Generation %s dispatched via %s executor", project_id, executor)
    return CreateProjectResponse(project_id=project_id, generation_status=STATUS_PENDING)


@router.get("/project/{project_id}")
async def get_user_project(
    project_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Get a project with its conversation and version history."""
    return {"project": await get_project(project_id, auth.user_id, db)}


@router.get("/projects")
async def get_user_projects(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's projects, most recently updated first."""
    return {"projects": await list_projects(auth.user_id, db)}


@router.post("/publish-toggle/{project_id}", response_model=TogglePublishResponse)
async def toggle_project_publish(
    project_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    is_published = await toggle_publish(project_id, auth.user_id, db)
    return TogglePublishResponse(
        project_id=project_id,
        is_published=is_published,
        message="Project Published Successfully" if is_published else "Project Unpublished",
    )
