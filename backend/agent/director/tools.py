from __future__ import annotations

import json
import logging
from copy import deepcopy
from typing import Any

from pydantic import ValidationError

from .types import (
    ArgumentParseError,
    TOOL_ARGUMENT_MODELS,
    ToolArgs,
    ToolCallRequest,
    ToolName,
)


logger = logging.getLogger(__name__)


TOOL_DESCRIPTIONS: dict[ToolName, str] = {
    ToolName.GET_PROJECT_STATE: (
        "Get the current project state including timeline clip counts, settings "
        "(dimensions, fps), and the most recent assets. Use this to understand what "
        "exists before making changes."
    ),
    ToolName.GENERATE_IMAGE: (
        "Generate a storyboard image from a text prompt. Returns a job ID; the image "
        "is added to the project assets automatically when generation completes."
    ),
    ToolName.GENERATE_VIDEO: (
        "Convert an existing image asset to a video clip (5-10 seconds). Returns a job "
        "ID; the video is added to assets when complete. Use this after generating images."
    ),
    ToolName.GENERATE_VOICEOVER: (
        "Generate a voiceover from text with word-level timestamps for karaoke-style "
        "text sync. Returns immediately with the audio asset ID and timestamps."
    ),
    ToolName.UPDATE_TIMELINE: (
        "Modify the video timeline. Can add video/audio clips, add text overlays, "
        "remove clips, move clips, or change the background color. Returns clip counts "
        "and the new total duration."
    ),
    ToolName.LIST_ASSETS: (
        "List assets available in the project library, newest first. Can filter by "
        "type (image, video, audio). Returns asset IDs, URLs, and metadata."
    ),
}


# =============================================================================
# Schema generation
# =============================================================================


def _collapse_optional(schema: dict[str, Any]) -> dict[str, Any]:
    """Turn pydantic's ``anyOf: [X, null]`` into plain ``X`` for optional fields."""
    any_of = schema.get("anyOf")
    if not isinstance(any_of, list):
        return schema
    non_null = [entry for entry in any_of if entry.get("type") != "null"]
    if len(non_null) != 1:
        return schema
    collapsed = {key: value for key, value in schema.items() if key != "anyOf"}
    collapsed.update(non_null[0])
    if collapsed.get("default", ...) is None:
        collapsed.pop("default")
    return collapsed


def _strip_titles(schema: Any) -> Any:
    if isinstance(schema, dict):
        return {
            key: _strip_titles(value)
            for key, value in schema.items()
            if key != "title"
        }
    if isinstance(schema, list):
        return [_strip_titles(entry) for entry in schema]
    return schema


def build_parameters_schema(model: type[ToolArgs]) -> dict[str, Any]:
    raw = model.model_json_schema(by_alias=True)
    properties = {
        name: _collapse_optional(prop)
        for name, prop in (raw.get("properties") or {}).items()
    }
    parameters: dict[str, Any] = {
        "type": "object",
        "properties": _strip_titles(properties),
    }
    required = raw.get("required")
    if required:
        parameters["required"] = list(required)
    return parameters


def _build_tools() -> list[dict[str, Any]]:
    tools = []
    for tool_name in ToolName:
        tools.append(
            {
                "type": "function",
                "function": {
                    "name": tool_name.value,
                    "description": TOOL_DESCRIPTIONS[tool_name],
                    "parameters": build_parameters_schema(TOOL_ARGUMENT_MODELS[tool_name]),
                },
            }
        )
    return tools


TOOLS: list[dict[str, Any]] = _build_tools()


def get_tools() -> list[dict[str, Any]]:
    return deepcopy(TOOLS)


# =============================================================================
# Argument handling
# =============================================================================


def parse_tool_arguments(call: ToolCallRequest) -> dict[str, Any]:
    """
    Decode a tool call's JSON argument string.

    Raises:
        ArgumentParseError: the string is not valid JSON or not a JSON object
    """
    raw = call.arguments
    if raw is None or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ArgumentParseError(call.name, call.id, raw) from exc
    if not isinstance(parsed, dict):
        raise ArgumentParseError(call.name, call.id, raw)
    return parsed


def parse_tool_arguments_lenient(call: ToolCallRequest) -> dict[str, Any]:
    """Decode tool-call arguments, falling back to ``{}`` when they are malformed."""
    try:
        return parse_tool_arguments(call)
    except ArgumentParseError as exc:
        logger.warning(
            "Tool call %s (%s) sent malformed arguments, using {}: %s",
            call.id,
            call.name,
            exc,
        )
        return {}


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "Invalid arguments: " + "; ".join(parts)


class ArgumentValidationError(ValueError):
    pass


def validate_arguments(tool_name: ToolName, arguments: dict[str, Any]) -> ToolArgs:
    model = TOOL_ARGUMENT_MODELS[tool_name]
    try:
        return model.model_validate(arguments)
    except ValidationError as exc:
        raise ArgumentValidationError(_format_validation_error(exc)) from exc
