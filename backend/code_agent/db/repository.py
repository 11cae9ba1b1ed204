import re
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from code_agent.db.models import Fragment, Message, MessageRole, MessageType, Project
from code_agent.errors import ProjectNotFoundError


def make_project_name(value: str, max_words: int = 3) -> str:
    """Kebab-case slug from the first words of a prompt, plus a short random suffix."""
    words = re.findall(r"[a-z0-9]+", (value or "").lower())[:max_words]
    suffix = uuid.uuid4().hex[:6]
    return "-".join(words + [suffix])


async def create_message(
    session: AsyncSession,
    project_id: str,
    content: str,
    role: MessageRole,
    type: MessageType,
    fragment: dict[str, Any] | None = None,
) -> Message:
    """Insert one message, with its fragment when given, and commit."""
    message = Message(project_id=project_id, content=content, role=role, type=type)
    if fragment is not None:
        message.fragment = Fragment(
            sandbox_url=fragment["sandbox_url"],
            title=fragment["title"],
            files=dict(fragment.get("files") or {}),
        )
    session.add(message)
    await session.commit()
    await session.refresh(message, attribute_names=["fragment"])
    return message


async def get_messages(session: AsyncSession, project_id: str) -> list[Message]:
    result = await session.execute(
        select(Message)
        .where(Message.project_id == project_id)
        .options(selectinload(Message.fragment))
        .order_by(Message.created_at.asc())
    )
    return list(result.scalars().all())


async def get_project(session: AsyncSession, project_id: str) -> Project:
    project = await session.get(Project, project_id)
    if project is None:
        raise ProjectNotFoundError(project_id)
    return project


async def get_projects(session: AsyncSession) -> list[Project]:
    result = await session.execute(select(Project).order_by(Project.updated_at.desc()))
    return list(result.scalars().all())


async def create_project(session: AsyncSession, value: str) -> Project:
    """Create a project along with the user's first message."""
    project = Project(name=make_project_name(value))
    project.messages.append(
        Message(content=value, role=MessageRole.USER, type=MessageType.RESULT)
    )
    session.add(project)
    await session.commit()
    await session.refresh(project)
    return project
