from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# EXCEPTIONS
# =============================================================================


class ArgumentParseError(ValueError):
    """The model sent tool-call arguments that are not a JSON object."""

    def __init__(self, tool_name: str, call_id: str, raw: str | None):
        self.tool_name = tool_name
        self.call_id = call_id
        self.raw = raw
        preview = (raw or "")[:200]
        super().__init__(f"Malformed arguments for {tool_name} ({call_id}): {preview!r}")


class NotFoundError(LookupError):
    def __init__(self, entity: str, detail: str | None = None):
        self.entity = entity
        message = f"{entity} not found"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnauthorizedError(PermissionError):
    def __init__(self) -> None:
        super().__init__("Unauthorized")


# =============================================================================
# TOOL NAMES & ARGUMENTS
# =============================================================================


class ToolName(str, Enum):
    GET_PROJECT_STATE = "getProjectState"
    GENERATE_IMAGE = "generateImage"
    GENERATE_VIDEO = "generateVideo"
    GENERATE_VOICEOVER = "generateVoiceover"
    UPDATE_TIMELINE = "updateTimeline"
    LIST_ASSETS = "listAssets"


AspectRatio = Literal["16:9", "9:16", "1:1", "4:3", "3:4"]
VoiceStyle = Literal["male-narrator", "female-narrator", "male-casual", "female-casual"]


class ToolArgs(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class GetProjectStateArgs(ToolArgs):
    pass


class GenerateImageArgs(ToolArgs):
    prompt: str = Field(
        min_length=10,
        max_length=1000,
        description="Detailed image description. Be specific about scene, lighting, style, and composition.",
    )
    aspect_ratio: AspectRatio | None = Field(
        default=None,
        description="Aspect ratio for the image. Defaults to project dimensions.",
    )
    style: str | None = Field(
        default=None,
        description="Style modifier (e.g., cinematic, anime, photorealistic, illustration)",
    )


class GenerateVideoArgs(ToolArgs):
    image_asset_id: str = Field(description="ID of the image asset to animate into a video")
    motion_prompt: str = Field(
        min_length=5,
        max_length=500,
        description='Describe how the scene should move (e.g., "camera slowly pans right, clouds drift")',
    )
    duration: int = Field(
        default=5,
        ge=5,
        le=10,
        description="Video duration in seconds (5-10). Defaults to 5.",
    )


class GenerateVoiceoverArgs(ToolArgs):
    text: str = Field(
        min_length=1,
        max_length=5000,
        description="The script text to convert to speech",
    )
    voice_style: VoiceStyle | None = Field(
        default=None,
        description="Voice style to use. Defaults to male-narrator.",
    )


class UpdateTimelineArgs(ToolArgs):
    action: Literal[
        "addVideoClip",
        "addAudioClip",
        "addTextOverlay",
        "removeClip",
        "moveClip",
        "setBackground",
    ] = Field(description="The timeline action to perform")
    video_asset_id: str | None = Field(
        default=None, description="Asset ID of the video to add (for addVideoClip)"
    )
    audio_asset_id: str | None = Field(
        default=None, description="Asset ID of the audio to add (for addAudioClip)"
    )
    text_overlay_type: Literal["BigTitle", "LowerThird", "KaraokeText"] | None = Field(
        default=None, description="Type of text overlay (for addTextOverlay)"
    )
    text_overlay_text: str | None = Field(
        default=None, description="Text content for the overlay (for addTextOverlay)"
    )
    text_overlay_position: Literal["top", "center", "bottom"] | None = Field(
        default=None, description="Position of the text overlay"
    )
    text_overlay_font_size: int | None = Field(
        default=None, gt=0, description="Font size in pixels"
    )
    text_overlay_color: str | None = Field(
        default=None, description='Text color (hex, e.g., "#FFFFFF")'
    )
    clip_id: str | None = Field(
        default=None, description="ID of the clip to remove or move"
    )
    new_start_frame: int | None = Field(
        default=None, description="New start frame position (for moveClip)"
    )
    start_frame: int | None = Field(
        default=None,
        ge=0,
        description="Start frame for the clip (30 frames = 1 second at 30fps)",
    )
    duration_frames: int | None = Field(
        default=None,
        gt=0,
        description="Duration in frames. If not specified, uses asset duration.",
    )
    layer: int | None = Field(
        default=None, description="Layer/track number (0 = bottom, higher = on top)"
    )
    background_color: str | None = Field(
        default=None,
        description='Background color hex (for setBackground, e.g., "#000000")',
    )


class ListAssetsArgs(ToolArgs):
    asset_type: Literal["image", "video", "audio", "all"] = Field(
        default="all",
        alias="type",
        description="Filter assets by type. Defaults to all.",
    )


TOOL_ARGUMENT_MODELS: dict[ToolName, type[ToolArgs]] = {
    ToolName.GET_PROJECT_STATE: GetProjectStateArgs,
    ToolName.GENERATE_IMAGE: GenerateImageArgs,
    ToolName.GENERATE_VIDEO: GenerateVideoArgs,
    ToolName.GENERATE_VOICEOVER: GenerateVoiceoverArgs,
    ToolName.UPDATE_TIMELINE: UpdateTimelineArgs,
    ToolName.LIST_ASSETS: ListAssetsArgs,
}


# =============================================================================
# TOOL EXECUTION
# =============================================================================


@dataclass(frozen=True)
class ToolContext:
    """Who is acting on which project; every tool side effect is scoped to it."""
    user_id: UUID
    project_id: UUID


@dataclass
class ToolResult:
    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None

    @classmethod
    def ok(cls, data: dict[str, Any]) -> ToolResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> ToolResult:
        return cls(success=False, error=error)

    def to_payload(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error}


# =============================================================================
# CONVERSATION
# =============================================================================


@dataclass
class ToolCallRequest:
    id: str
    name: str
    arguments: str = "{}"

    @classmethod
    def from_openai(cls, tool_call: Any) -> ToolCallRequest:
        return cls(
            id=tool_call.id,
            name=tool_call.function.name,
            arguments=tool_call.function.arguments or "",
        )

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ToolCallRequest:
        function = payload.get("function") or {}
        return cls(
            id=str(payload.get("id", "")),
            name=str(function.get("name", "")),
            arguments=function.get("arguments") or "",
        )

    def to_openai(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class ConversationMessage:
    role: Literal["system", "user", "assistant", "tool"]
    content: str = ""
    tool_calls: list[ToolCallRequest] | None = None
    tool_call_id: str | None = None
    name: str | None = None

    def to_openai(self) -> dict[str, Any]:
        message: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [call.to_openai() for call in self.tool_calls]
        if self.role == "tool":
            message["tool_call_id"] = self.tool_call_id
            if self.name:
                message["name"] = self.name
        return message


# =============================================================================
# AGENT EVENTS & REQUESTS
# =============================================================================


class AgentEvent(BaseModel):
    type: Literal["text", "tool_call", "tool_result", "error", "done"]
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def text(cls, content: str) -> AgentEvent:
        return cls(type="text", data={"content": content})

    @classmethod
    def tool_call(cls, call_id: str, name: str, arguments: dict[str, Any]) -> AgentEvent:
        return cls(type="tool_call", data={"id": call_id, "name": name, "arguments": arguments})

    @classmethod
    def tool_result(cls, call_id: str, name: str, result: ToolResult) -> AgentEvent:
        return cls(
            type="tool_result",
            data={"id": call_id, "name": name, "result": result.to_payload()},
        )

    @classmethod
    def error(cls, message: str) -> AgentEvent:
        return cls(type="error", data={"message": message})

    @classmethod
    def done(cls, message_id: str | None = None) -> AgentEvent:
        return cls(type="done", data={"messageId": message_id} if message_id else {})

    def to_json_line(self) -> str:
        return f"{json.dumps(self.model_dump(mode='json'), default=str)}\n"


class AgentRequest(BaseModel):
    project_id: UUID
    user_id: UUID
    message: str = Field(min_length=1, description="User chat message")
    model: str | None = Field(default=None, description="Override the LLM model for this turn")


@dataclass
class TurnState:
    """Counters for one agent turn."""
    iterations: int = 0
    tool_calls: int = 0
    executed: list[str] = field(default_factory=list)
