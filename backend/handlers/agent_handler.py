import logging
from typing import Callable, Iterator
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from starlette.responses import StreamingResponse
from sqlalchemy.orm import Session, sessionmaker

from agent.director import (
    AgentConfig,
    AgentRequest,
    ChatHistoryStore,
    CompletionClient,
    ToolExecutor,
    run_agent,
)
from database.base import get_db, get_session_factory
from database.models import Project
from dependencies.auth import get_user_id
from dependencies.project import require_project
from models.api_models import (
    AgentChatRequest,
    ChatHistoryClearResponse,
    ChatHistoryResponse,
)


router = APIRouter(prefix="/projects/{project_id}/agent", tags=["agent"])
logger = logging.getLogger(__name__)

ExecutorFactory = Callable[[Session, AgentConfig], ToolExecutor]


# =============================================================================
# DEPENDENCIES
# =============================================================================


def get_agent_config() -> AgentConfig:
    return AgentConfig.from_env()


def get_completion_client(
    config: AgentConfig = Depends(get_agent_config),
) -> CompletionClient:
    return CompletionClient(config)


def get_executor_factory() -> ExecutorFactory:
    return lambda db, config: ToolExecutor(db, config)


# =============================================================================
# ROUTES
# =============================================================================


@router.post("/chat")
async def agent_chat(
    request: AgentChatRequest,
    project: Project = Depends(require_project),
    user_id: UUID = Depends(get_user_id),
    session_factory: sessionmaker = Depends(get_session_factory),
    config: AgentConfig = Depends(get_agent_config),
    completion_client: CompletionClient = Depends(get_completion_client),
    executor_factory: ExecutorFactory = Depends(get_executor_factory),
):
    agent_request = AgentRequest(
        project_id=project.project_id,
        user_id=user_id,
        message=request.message,
        model=request.model,
    )

    def event_stream() -> Iterator[str]:
        # The request-scoped session is closed before the body streams
        db = session_factory()
        try:
            events = run_agent(
                db,
                agent_request,
                config=config,
                completion_client=completion_client,
                tool_executor=executor_factory(db, config),
            )
            for event in events:
                yield event.to_json_line()
        finally:
            db.close()

    return StreamingResponse(event_stream(), media_type="application/x-ndjson")


@router.get("/history", response_model=ChatHistoryResponse)
async def agent_history_get(
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
):
    try:
        messages = ChatHistoryStore(db).list_visible(project.project_id)
    except Exception:
        db.rollback()
        logger.exception("Failed to load chat history for project %s", project.project_id)
        raise HTTPException(status_code=500, detail="Failed to load chat history")

    return ChatHistoryResponse(ok=True, messages=messages)


@router.delete("/history", response_model=ChatHistoryClearResponse)
async def agent_history_clear(
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
):
    try:
        deleted = ChatHistoryStore(db).clear(project.project_id)
    except Exception:
        db.rollback()
        logger.exception("Failed to clear chat history for project %s", project.project_id)
        raise HTTPException(status_code=500, detail="Failed to clear chat history")

    return ChatHistoryClearResponse(ok=True, deleted=deleted)
