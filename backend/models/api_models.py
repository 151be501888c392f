from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class SessionCreateResponse(BaseModel):
    ok: bool
    session_id: str
    user_id: str
    expires_at: datetime
    session_token: str


class SessionValidateResponse(BaseModel):
    valid: bool
    user_id: str | None = None
    scopes: list[str] = Field(default_factory=list)


class ProjectCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    width: int = Field(default=1080, gt=0)
    height: int = Field(default=1920, gt=0)
    fps: int = Field(default=30, gt=0)


class ProjectSummary(BaseModel):
    project_id: str
    project_name: str
    width: int
    height: int
    fps: int
    duration: int
    status: str
    updated_at: datetime


class ProjectCreateResponse(BaseModel):
    ok: bool
    project: ProjectSummary


class ProjectListResponse(BaseModel):
    ok: bool
    projects: list[ProjectSummary]


class ProjectGetResponse(BaseModel):
    ok: bool
    project: ProjectSummary


class ProjectDeleteResponse(BaseModel):
    ok: bool


class ProjectManifestResponse(BaseModel):
    ok: bool
    project_id: str
    duration: int
    manifest: dict[str, Any]


class AgentChatRequest(BaseModel):
    message: str = Field(min_length=1)
    model: str | None = None


class ChatHistoryMessage(BaseModel):
    id: str
    role: str
    content: str
    tool_calls: list[dict[str, Any]] | None = Field(default=None, alias="toolCalls")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True}


class ChatHistoryResponse(BaseModel):
    ok: bool
    messages: list[ChatHistoryMessage]


class ChatHistoryClearResponse(BaseModel):
    ok: bool
    deleted: int


class HealthResponse(BaseModel):
    status: str
    database: bool
