"""
Timeline Editor - pure edit actions over a ProjectManifest.

Each action works on a deep copy of the manifest and returns the edited copy,
so a refused action (missing field, unknown clip, wrong asset type) never
leaves a half-applied document behind. Persisting the result together with
the recomputed duration is the caller's job (see project_operator.save_manifest).

Positions and lengths are frames at the project's fps.
"""

from copy import deepcopy
from enum import Enum
import math
from typing import Any, Callable
from uuid import uuid4

from models.timeline_models import (
    AudioClip,
    ComponentType,
    OVERLAY_MODELS,
    ProjectManifest,
    TrackName,
    VideoClip,
    WordTimestamp,
)


DEFAULT_CLIP_FRAMES = 150
DEFAULT_OVERLAY_FRAMES = 90
DEFAULT_OVERLAY_LAYER = 10
DEFAULT_OVERLAY_POSITION = "center"
DEFAULT_OVERLAY_FONT_SIZE = 48
DEFAULT_OVERLAY_COLOR = "#FFFFFF"

# removeClip / moveClip resolve an id against the tracks in this order and
# act on the first match only.
CLIP_SEARCH_ORDER: tuple[TrackName, ...] = (
    TrackName.VIDEO,
    TrackName.AUDIO,
    TrackName.COMPONENTS,
)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class InvalidOperationError(Exception):
    """Raised when a timeline action is refused."""
    pass


class TimelineAction(str, Enum):
    ADD_VIDEO_CLIP = "addVideoClip"
    ADD_AUDIO_CLIP = "addAudioClip"
    ADD_TEXT_OVERLAY = "addTextOverlay"
    REMOVE_CLIP = "removeClip"
    MOVE_CLIP = "moveClip"
    SET_BACKGROUND = "setBackground"


# Resolves an asset id to an asset record (or None). Records are read through
# asset_type, storage_url, duration_seconds, asset_metadata and asset_id.
AssetResolver = Callable[[str], Any]


# =============================================================================
# HELPERS
# =============================================================================


def _new_clip_id(kind: str) -> str:
    return f"{kind}-{uuid4().hex[:12]}"


def seconds_to_frames(seconds: float, fps: int) -> int:
    # Half-up rounding, not banker's rounding
    return int(math.floor(seconds * fps + 0.5))


def _default_duration(asset: Any, fps: int) -> int:
    if asset.duration_seconds:
        return max(1, seconds_to_frames(asset.duration_seconds, fps))
    return DEFAULT_CLIP_FRAMES


def _track(manifest: ProjectManifest, name: TrackName) -> list:
    return getattr(manifest.tracks, name.value)


def build_clip_index(manifest: ProjectManifest) -> dict[str, tuple[TrackName, int]]:
    """Map clip id -> (track, position). Earlier tracks in CLIP_SEARCH_ORDER win on collisions."""
    index: dict[str, tuple[TrackName, int]] = {}
    for track_name in CLIP_SEARCH_ORDER:
        for position, item in enumerate(_track(manifest, track_name)):
            index.setdefault(item.id, (track_name, position))
    return index


def _locate(manifest: ProjectManifest, clip_id: str) -> tuple[TrackName, int]:
    located = build_clip_index(manifest).get(clip_id)
    if located is None:
        raise InvalidOperationError(f"Clip not found: {clip_id}")
    return located


# =============================================================================
# ACTIONS
# =============================================================================


def add_video_clip(
    manifest: ProjectManifest,
    asset: Any,
    fps: int,
    start_frame: int | None = None,
    duration_frames: int | None = None,
    layer: int | None = None,
) -> VideoClip:
    """Append a video clip; by default it starts where the video track currently ends."""
    if asset is None or asset.asset_type != "video":
        raise InvalidOperationError("Video asset not found")

    clip = VideoClip(
        id=_new_clip_id("video"),
        asset_id=str(asset.asset_id),
        url=asset.storage_url,
        start_frame=manifest.video_end_frame() if start_frame is None else start_frame,
        duration_frames=duration_frames or _default_duration(asset, fps),
        layer=0 if layer is None else layer,
    )
    manifest.tracks.video.append(clip)
    return clip


def add_audio_clip(
    manifest: ProjectManifest,
    asset: Any,
    fps: int,
    start_frame: int | None = None,
    duration_frames: int | None = None,
) -> AudioClip:
    """Append an audio clip at frame 0 unless told otherwise; narration starts the video."""
    if asset is None or asset.asset_type != "audio":
        raise InvalidOperationError("Audio asset not found")

    metadata = asset.asset_metadata or {}
    raw_words = metadata.get("wordTimestamps")
    word_timestamps = (
        [WordTimestamp.model_validate(word) for word in raw_words]
        if raw_words
        else None
    )

    clip = AudioClip(
        id=_new_clip_id("audio"),
        asset_id=str(asset.asset_id),
        url=asset.storage_url,
        start_frame=0 if start_frame is None else start_frame,
        duration_frames=duration_frames or _default_duration(asset, fps),
        volume=1.0,
        word_timestamps=word_timestamps,
    )
    manifest.tracks.audio.append(clip)
    return clip


def add_text_overlay(
    manifest: ProjectManifest,
    component: ComponentType | str,
    text: str,
    position: str | None = None,
    font_size: int | None = None,
    color: str | None = None,
    start_frame: int | None = None,
    duration_frames: int | None = None,
    layer: int | None = None,
):
    try:
        component_type = ComponentType(component)
    except ValueError as exc:
        raise InvalidOperationError(f"Unknown overlay component: {component}") from exc
    if component_type == ComponentType.IMAGE_OVERLAY:
        raise InvalidOperationError("ImageOverlay cannot be added as a text overlay")

    overlay_model = OVERLAY_MODELS[component_type]
    overlay = overlay_model.model_validate(
        {
            "id": _new_clip_id("text"),
            "component": component_type.value,
            "props": {
                "text": text,
                "position": position or DEFAULT_OVERLAY_POSITION,
                "fontSize": font_size or DEFAULT_OVERLAY_FONT_SIZE,
                "color": color or DEFAULT_OVERLAY_COLOR,
            },
            "startFrame": 0 if start_frame is None else start_frame,
            "durationFrames": (
                DEFAULT_OVERLAY_FRAMES if duration_frames is None else duration_frames
            ),
            "layer": DEFAULT_OVERLAY_LAYER if layer is None else layer,
        }
    )
    manifest.tracks.components.append(overlay)
    return overlay


def remove_clip(manifest: ProjectManifest, clip_id: str):
    track_name, position = _locate(manifest, clip_id)
    return _track(manifest, track_name).pop(position)


def move_clip(manifest: ProjectManifest, clip_id: str, new_start_frame: int):
    # Overlap with other clips is allowed; stacking is controlled by layer.
    if new_start_frame < 0:
        raise InvalidOperationError("newStartFrame must be a non-negative frame")
    track_name, position = _locate(manifest, clip_id)
    item = _track(manifest, track_name)[position]
    item.start_frame = new_start_frame
    return item


def set_background(manifest: ProjectManifest, background_color: str) -> None:
    manifest.global_settings.background_color = background_color


# =============================================================================
# DISPATCH
# =============================================================================


def apply_timeline_action(
    manifest: ProjectManifest,
    action: TimelineAction | str,
    fps: int,
    resolve_asset: AssetResolver,
    video_asset_id: str | None = None,
    audio_asset_id: str | None = None,
    text_overlay_type: str | None = None,
    text_overlay_text: str | None = None,
    text_overlay_position: str | None = None,
    text_overlay_font_size: int | None = None,
    text_overlay_color: str | None = None,
    clip_id: str | None = None,
    new_start_frame: int | None = None,
    start_frame: int | None = None,
    duration_frames: int | None = None,
    layer: int | None = None,
    background_color: str | None = None,
) -> ProjectManifest:
    """
    Apply one timeline action and return the edited manifest.

    The input manifest is left untouched. Required-field checks run before any
    asset is resolved, and asset resolution happens before any edit.

    Raises:
        InvalidOperationError: missing field, unknown action, unknown clip,
            or an asset that is missing or of the wrong type
    """
    try:
        action = TimelineAction(action)
    except ValueError as exc:
        raise InvalidOperationError(f"Unknown action: {action}") from exc

    edited = deepcopy(manifest)

    if action == TimelineAction.ADD_VIDEO_CLIP:
        if not video_asset_id:
            raise InvalidOperationError("videoAssetId is required for addVideoClip")
        add_video_clip(
            edited,
            resolve_asset(video_asset_id),
            fps,
            start_frame=start_frame,
            duration_frames=duration_frames,
            layer=layer,
        )

    elif action == TimelineAction.ADD_AUDIO_CLIP:
        if not audio_asset_id:
            raise InvalidOperationError("audioAssetId is required for addAudioClip")
        add_audio_clip(
            edited,
            resolve_asset(audio_asset_id),
            fps,
            start_frame=start_frame,
            duration_frames=duration_frames,
        )

    elif action == TimelineAction.ADD_TEXT_OVERLAY:
        if not text_overlay_type or not text_overlay_text:
            raise InvalidOperationError(
                "textOverlayType and textOverlayText are required for addTextOverlay"
            )
        add_text_overlay(
            edited,
            text_overlay_type,
            text_overlay_text,
            position=text_overlay_position,
            font_size=text_overlay_font_size,
            color=text_overlay_color,
            start_frame=start_frame,
            duration_frames=duration_frames,
            layer=layer,
        )

    elif action == TimelineAction.REMOVE_CLIP:
        if not clip_id:
            raise InvalidOperationError("clipId is required for removeClip")
        remove_clip(edited, clip_id)

    elif action == TimelineAction.MOVE_CLIP:
        if not clip_id or new_start_frame is None:
            raise InvalidOperationError(
                "clipId and newStartFrame are required for moveClip"
            )
        move_clip(edited, clip_id, new_start_frame)

    elif action == TimelineAction.SET_BACKGROUND:
        if not background_color:
            raise InvalidOperationError("backgroundColor is required for setBackground")
        set_background(edited, background_color)

    return edited
