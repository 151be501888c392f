from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from database.base import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Session(Base):
    __tablename__ = "sessions"

    id = Column(Uuid, primary_key=True, default=uuid4)
    secret_hash = Column(String(64), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.user_id"), nullable=True)
    scopes = Column(JSONType, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    expires_at = Column(DateTime, nullable=False)

    __table_args__ = (Index("ix_sessions_expires_at", expires_at),)


class User(Base):
    __tablename__ = "users"

    user_id = Column(
        Uuid, unique=True, index=True, nullable=False, primary_key=True, default=uuid4
    )
    last_activity = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False)

    # Per-user generation preferences; None falls back to AgentConfig defaults
    preferred_llm_model = Column(String, nullable=True)
    preferred_image_model = Column(String, nullable=True)
    preferred_video_model = Column(String, nullable=True)
    preferred_voice_id = Column(String, nullable=True)

    def __repr__(self):
        return f"<User user_id={self.user_id} last_activity={self.last_activity} created_at={self.created_at}>"


class Project(Base):
    __tablename__ = "projects"

    project_id = Column(
        Uuid, unique=True, index=True, nullable=False, primary_key=True, default=uuid4
    )
    project_name = Column(String, nullable=False)
    owner_id = Column(Uuid, ForeignKey("users.user_id"), nullable=False)

    width = Column(Integer, nullable=False, default=1080)
    height = Column(Integer, nullable=False, default=1920)
    fps = Column(Integer, nullable=False, default=30)

    # ProjectManifest JSON (models.timeline_models); duration is the derived
    # total length in frames and is always written together with the manifest
    manifest = Column(JSONType, nullable=False)
    duration = Column(Integer, nullable=False, default=0)

    status = Column(
        String, nullable=False, default="draft"
    )  # draft, rendering, completed, failed
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (Index("ix_projects_owner_id", owner_id),)

    def __repr__(self):
        return f"<Project project_id={self.project_id} project_name={self.project_name} owner_id={self.owner_id} duration={self.duration}>"


class Assets(Base):
    __tablename__ = "assets"

    asset_id = Column(
        Uuid, unique=True, index=True, nullable=False, primary_key=True, default=uuid4
    )
    user_id = Column(Uuid, ForeignKey("users.user_id"), nullable=False)
    project_id = Column(
        Uuid, ForeignKey("projects.project_id", ondelete="CASCADE"), nullable=False
    )
    asset_type = Column(String, nullable=False)  # image, video, audio
    storage_url = Column(String, nullable=False)
    filename = Column(String, nullable=True)

    # Generation provenance
    prompt = Column(Text, nullable=True)
    provider = Column(String, nullable=True)
    model = Column(String, nullable=True)

    # Free-form metadata, e.g. {"wordTimestamps": [...], "voice": "Adam"} for TTS audio
    asset_metadata = Column(JSONType, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    created_at = Column(
        DateTime, nullable=False, default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_assets_project_created", project_id, created_at),
        Index("ix_assets_user_id", user_id),
    )

    def __repr__(self):
        return f"<Assets asset_id={self.asset_id} asset_type={self.asset_type} project_id={self.project_id}>"


class GenerationJob(Base):
    """
    Asynchronous generation request sent to an external provider.

    The director agent creates the row in ``pending``, moves it to
    ``processing`` once the provider accepted the request, and the rq worker
    drives it to ``completed`` or ``failed``.
    """

    __tablename__ = "generation_jobs"

    job_id = Column(
        Uuid, unique=True, index=True, nullable=False, primary_key=True, default=uuid4
    )
    user_id = Column(Uuid, ForeignKey("users.user_id"), nullable=False)
    project_id = Column(
        Uuid, ForeignKey("projects.project_id", ondelete="CASCADE"), nullable=True
    )

    job_type = Column(String, nullable=False)  # image, video, audio
    status = Column(
        String, nullable=False, default="pending"
    )  # pending, processing, completed, failed
    provider = Column(String, nullable=False, default="fal")
    model = Column(String, nullable=False)

    input = Column(JSONType, nullable=False, default=dict)
    output = Column(JSONType, nullable=True)

    # Provider bookkeeping
    external_id = Column(String, nullable=True)
    status_url = Column(String, nullable=True)
    response_url = Column(String, nullable=True)

    progress = Column(Integer, nullable=False, default=0)  # 0-100
    error = Column(String, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_generation_jobs_project_id", project_id),
        Index("ix_generation_jobs_status", status),
    )

    def __repr__(self):
        return (
            f"<GenerationJob job_id={self.job_id} "
            f"job_type={self.job_type} status={self.status}>"
        )


class ChatMessage(Base):
    """
    Append-only conversation log of the director agent, one stream per project.

    ``position`` is a per-project ordinal; it defines causal order
    (user -> assistant with tool calls -> tool results -> assistant).
    """

    __tablename__ = "chat_messages"

    message_id = Column(
        Uuid, unique=True, index=True, nullable=False, primary_key=True, default=uuid4
    )
    project_id = Column(
        Uuid, ForeignKey("projects.project_id", ondelete="CASCADE"), nullable=False
    )
    position = Column(Integer, nullable=False)
    role = Column(String, nullable=False)  # system, user, assistant, tool
    content = Column(Text, nullable=False, default="")

    # OpenAI-shaped tool call list for assistant messages
    tool_calls = Column(JSONType, nullable=True)
    # Set on tool result messages
    tool_call_id = Column(String, nullable=True)
    tool_name = Column(String, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        Index(
            "ix_chat_messages_project_position",
            project_id,
            position,
            unique=True,
        ),
    )

    def __repr__(self):
        return (
            f"<ChatMessage message_id={self.message_id} "
            f"project_id={self.project_id} position={self.position} role={self.role}>"
        )
