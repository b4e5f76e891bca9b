"""Project, conversation and version persistence scoped to the owning user."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

from fastapi import HTTPException
from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from models.conversation import ConversationEntry
from models.project import WebsiteProject
from models.user import User
from models.version import Version


PROJECT_NAME_MAX_CHARS = 50
CONVERSATION_ROLES = ("user", "assistant")


def derive_project_name(initial_prompt: str) -> str:
    if len(initial_prompt) > PROJECT_NAME_MAX_CHARS:
        return initial_prompt[: PROJECT_NAME_MAX_CHARS - 3] + "..."
    return initial_prompt


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _project_not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Project not found")


async def create_project(
    user_id: str,
    initial_prompt: str,
    db: AsyncSession,
    *,
    project_id: Optional[str] = None,
) -> WebsiteProject:
    """Create the project shell and bump the owner's creation counter. Does not commit."""
    project = WebsiteProject(
        id=project_id or str(uuid.uuid4()),
        user_id=user_id,
        name=derive_project_name(initial_prompt),
        initial_prompt=initial_prompt,
        generation_status="pending",
    )
    db.add(project)
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(total_creation=User.total_creation + 1)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return project


async def append_entry(
    project_id: str,
    role: str,
    content: str,
    db: AsyncSession,
    *,
    commit: bool = True,
) -> ConversationEntry:
    """Append the next entry to a project's conversation."""
    if role not in CONVERSATION_ROLES:
        raise ValueError(f"Unsupported conversation role: {role}")

    result = await db.execute(
        select(func.coalesce(func.max(ConversationEntry.sequence), 0)).where(
            ConversationEntry.project_id == project_id
        )
    )
    entry = ConversationEntry(
        id=str(uuid.uuid4()),
        project_id=project_id,
        role=role,
        content=content,
        sequence=int(result.scalar() or 0) + 1,
    )
    db.add(entry)
    if commit:
        await db.commit()
    else:
        await db.flush()
    return entry


async def create_version(project_id: str, code: str, description: str, db: AsyncSession) -> Version:
    """Persist an immutable code snapshot. Does not commit."""
    version = Version(
        id=str(uuid.uuid4()),
        project_id=project_id,
        code=code,
        description=description,
    )
    db.add(version)
    await db.flush()
    return version


async def set_current(project_id: str, version_id: str, code: str, db: AsyncSession) -> None:
    """Point the project at one of its own versions. Does not commit."""
    result = await db.execute(select(Version.project_id).where(Version.id == version_id))
    owner_project_id = result.scalar_one_or_none()
    if owner_project_id != project_id:
        raise ValueError(f"Version {version_id} does not belong to project {project_id}")

    await db.execute(
        update(WebsiteProject)
        .where(WebsiteProject.id == project_id)
        .values(current_code=code, current_version_index=version_id, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    await db.flush()


def serialize_entry(entry: ConversationEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "role": entry.role,
        "content": entry.content,
        "sequence": entry.sequence,
        "timestamp": _iso(entry.timestamp),
    }


def serialize_version(version: Version) -> Dict[str, Any]:
    return {
        "id": version.id,
        "code": version.code,
        "description": version.description,
        "timestamp": _iso(version.timestamp),
    }


def serialize_project(project: WebsiteProject) -> Dict[str, Any]:
    return {
        "id": project.id,
        "user_id": project.user_id,
        "name": project.name,
        "initial_prompt": project.initial_prompt,
        "current_code": project.current_code,
        "current_version_index": project.current_version_index,
        "is_published": bool(project.is_published),
        "generation_status": project.generation_status,
        "created_at": _iso(project.created_at),
        "updated_at": _iso(project.updated_at),
    }


async def get_project(project_id: str, user_id: str, db: AsyncSession) -> Dict[str, Any]:
    """Load an owned project with its ordered conversation and versions."""
    result = await db.execute(
        select(WebsiteProject)
        .where(
            WebsiteProject.id == project_id,
            WebsiteProject.user_id == user_id,
        )
        .options(
            selectinload(WebsiteProject.conversation),
            selectinload(WebsiteProject.versions),
        )
        .execution_options(populate_existing=True)
    )
    project = result.scalar_one_or_none()
    if not project:
        raise _project_not_found()

    payload = serialize_project(project)
    payload["conversation"] = [serialize_entry(entry) for entry in project.conversation]
    payload["versions"] = [serialize_version(version) for version in project.versions]
    return payload


async def list_projects(user_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(WebsiteProject)
        .where(WebsiteProject.user_id == user_id)
        .order_by(WebsiteProject.updated_at.desc(), WebsiteProject.created_at.desc())
    )
    return [serialize_project(project) for project in result.scalars().all()]


async def toggle_publish(project_id: str, user_id: str, db: AsyncSession) -> bool:
    """Flip the published flag of an owned project and return the new state."""
    result = await db.execute(
        select(WebsiteProject).where(
            WebsiteProject.id == project_id,
            WebsiteProject.user_id == user_id,
        )
    )
    project = result.scalar_one_or_none()
    if not project:
        raise _project_not_found()

    project.is_published = not bool(project.is_published)
    await db.commit()
    return bool(project.is_published)
