import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from code_agent.api.deps import get_event_client
from code_agent.api.schemas import MessageOut, ProjectOut, ValueRequest
from code_agent.db import repository
from code_agent.db.models import MessageRole, MessageType
from code_agent.db.session import get_session
from code_agent.errors import ProjectNotFoundError
from code_agent.events import EventClient
from code_agent.functions import CODE_AGENT_EVENT


logger = logging.getLogger("code_agent.api.projects")


router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.post("", response_model=ProjectOut)
async def create_project(
    request: ValueRequest,
    session: AsyncSession = Depends(get_session),
    events: EventClient = Depends(get_event_client),
) -> ProjectOut:
    """Create a project from a first prompt and start the agent on it."""
    project = await repository.create_project(session, request.value)
    run_id = await events.send(
        CODE_AGENT_EVENT,
        {"value": request.value, "projectId": project.id, "model": request.model},
    )
    logger.info("create_project[%s] name=%s run=%s", project.id, project.name, run_id)
    return ProjectOut.model_validate(project)


@router.get("", response_model=list[ProjectOut])
async def list_projects(session: AsyncSession = Depends(get_session)) -> list[ProjectOut]:
    projects = await repository.get_projects(session)
    return [ProjectOut.model_validate(p) for p in projects]


@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(
    project_id: str, session: AsyncSession = Depends(get_session)
) -> ProjectOut:
    try:
        project = await repository.get_project(session, project_id)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ProjectOut.model_validate(project)


@router.get("/{project_id}/messages", response_model=list[MessageOut])
async def list_messages(
    project_id: str, session: AsyncSession = Depends(get_session)
) -> list[MessageOut]:
    try:
        await repository.get_project(session, project_id)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    messages = await repository.get_messages(session, project_id)
    return [MessageOut.model_validate(m) for m in messages]


@router.post("/{project_id}/messages", response_model=MessageOut)
async def create_message(
    project_id: str,
    request: ValueRequest,
    session: AsyncSession = Depends(get_session),
    events: EventClient = Depends(get_event_client),
) -> MessageOut:
    """Store the user's message and start the agent on it."""
    try:
        await repository.get_project(session, project_id)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    message = await repository.create_message(
        session,
        project_id=project_id,
        content=request.value,
        role=MessageRole.USER,
        type=MessageType.RESULT,
    )
    run_id = await events.send(
        CODE_AGENT_EVENT,
        {"value": request.value, "projectId": project_id, "model": request.model},
    )
    logger.info("create_message[%s] project=%s run=%s", message.id, project_id, run_id)
    return MessageOut.model_validate(message)
