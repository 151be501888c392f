"""
Pydantic models for the project manifest.

The manifest is the JSON document that describes a project's timeline:
- three ordered tracks (video clips, audio clips, component overlays)
- global render settings (background color)

Every position and length is expressed in frames on the project's fps axis.
The persisted form uses camelCase keys (``startFrame``, ``durationFrames``,
``globalSettings``) so stored manifests stay readable by the renderer.
Overlays are a tagged union on ``component``; each kind carries its own
props model. Unknown keys are preserved on round-trip.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, SerializerFunctionWrapHandler, model_serializer
from pydantic.alias_generators import to_camel


MANIFEST_VERSION = 1
DEFAULT_BACKGROUND_COLOR = "#000000"


class ManifestModel(BaseModel):
    """Base for manifest nodes: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    @model_serializer(mode="wrap")
    def serialize_without_empty_fields(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        # Empty declared fields are omitted; extra keys keep explicit nulls
        data = handler(self)
        for name, field in type(self).model_fields.items():
            for key in {name, field.alias or name}:
                if key in data and data[key] is None:
                    del data[key]
        return data


# =============================================================================
# ENUMS
# =============================================================================


class TrackName(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    COMPONENTS = "components"


class ComponentType(str, Enum):
    """Overlay kinds understood by the renderer."""
    BIG_TITLE = "BigTitle"
    LOWER_THIRD = "LowerThird"
    KARAOKE_TEXT = "KaraokeText"
    IMAGE_OVERLAY = "ImageOverlay"


TextPosition = Literal["top", "center", "bottom"]


# =============================================================================
# CLIPS
# =============================================================================


class WordTimestamp(ManifestModel):
    """One spoken word, times in seconds from the start of the audio."""
    word: str
    start: float
    end: float


class ClipEffect(ManifestModel):
    type: Literal["brightness", "contrast", "saturation", "blur", "grayscale"]
    value: float


class VideoClip(ManifestModel):
    id: str
    asset_id: str
    url: str
    start_frame: int = Field(ge=0)
    duration_frames: int = Field(gt=0)
    layer: int = 0
    transition: Literal["cut", "fade", "slide-left", "slide-right", "glitch", "zoom"] | None = None
    effects: list[ClipEffect] | None = None

    @property
    def end_frame(self) -> int:
        return self.start_frame + self.duration_frames


class AudioClip(ManifestModel):
    id: str
    asset_id: str
    url: str
    start_frame: int = Field(ge=0)
    duration_frames: int = Field(gt=0)
    volume: float = 1.0
    word_timestamps: list[WordTimestamp] | None = None

    @property
    def end_frame(self) -> int:
        return self.start_frame + self.duration_frames


# =============================================================================
# OVERLAY PROPS
# =============================================================================


class BigTitleProps(ManifestModel):
    text: str
    font_size: int | None = None
    font_family: str | None = None
    color: str | None = None
    animation: Literal["fade", "slide-up", "scale", "typewriter"] | None = None
    position: TextPosition | None = None


class LowerThirdProps(ManifestModel):
    """
    Lower-third banner.

    The renderer reads ``title``/``subtitle``; overlays created from chat carry
    ``text`` instead, so both are optional and ``position`` stays a free string.
    """
    title: str | None = None
    subtitle: str | None = None
    text: str | None = None
    background_color: str | None = None
    text_color: str | None = None
    font_size: int | None = None
    color: str | None = None
    position: str | None = None


class KaraokeTextProps(ManifestModel):
    text: str
    word_timestamps: list[WordTimestamp] = Field(default_factory=list)
    font_size: int | None = None
    font_family: str | None = None
    color: str | None = None
    highlight_color: str | None = None
    background_color: str | None = None
    position: TextPosition | None = None


class ImageOverlayProps(ManifestModel):
    src: str
    width: float | None = None
    height: float | None = None
    x: float | None = None
    y: float | None = None
    opacity: float | None = None


# =============================================================================
# OVERLAYS
# =============================================================================


class _OverlayBase(ManifestModel):
    id: str
    start_frame: int = Field(ge=0)
    duration_frames: int = Field(gt=0)
    layer: int = 10

    @property
    def end_frame(self) -> int:
        return self.start_frame + self.duration_frames


class BigTitleOverlay(_OverlayBase):
    component: Literal["BigTitle"] = "BigTitle"
    props: BigTitleProps


class LowerThirdOverlay(_OverlayBase):
    component: Literal["LowerThird"] = "LowerThird"
    props: LowerThirdProps


class KaraokeTextOverlay(_OverlayBase):
    component: Literal["KaraokeText"] = "KaraokeText"
    props: KaraokeTextProps


class ImageOverlay(_OverlayBase):
    component: Literal["ImageOverlay"] = "ImageOverlay"
    props: ImageOverlayProps


ComponentOverlay = Annotated[
    Union[BigTitleOverlay, LowerThirdOverlay, KaraokeTextOverlay, ImageOverlay],
    Field(discriminator="component"),
]

OVERLAY_MODELS: dict[ComponentType, type[_OverlayBase]] = {
    ComponentType.BIG_TITLE: BigTitleOverlay,
    ComponentType.LOWER_THIRD: LowerThirdOverlay,
    ComponentType.KARAOKE_TEXT: KaraokeTextOverlay,
    ComponentType.IMAGE_OVERLAY: ImageOverlay,
}


# =============================================================================
# MANIFEST
# =============================================================================


class ManifestTracks(ManifestModel):
    video: list[VideoClip] = Field(default_factory=list)
    audio: list[AudioClip] = Field(default_factory=list)
    components: list[ComponentOverlay] = Field(default_factory=list)


class GlobalSettings(ManifestModel):
    background_color: str = DEFAULT_BACKGROUND_COLOR


class ProjectManifest(ManifestModel):
    version: int = MANIFEST_VERSION
    tracks: ManifestTracks = Field(default_factory=ManifestTracks)
    global_settings: GlobalSettings = Field(default_factory=GlobalSettings)

    def all_items(self) -> list[VideoClip | AudioClip | _OverlayBase]:
        return [*self.tracks.video, *self.tracks.audio, *self.tracks.components]

    def total_duration(self) -> int:
        """Timeline length in frames: the furthest clip/overlay end, 0 when empty."""
        return max((item.end_frame for item in self.all_items()), default=0)

    def video_end_frame(self) -> int:
        return max((clip.end_frame for clip in self.tracks.video), default=0)

    def clip_counts(self) -> dict[str, int]:
        return {
            "video": len(self.tracks.video),
            "audio": len(self.tracks.audio),
            "components": len(self.tracks.components),
        }

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_json(cls, data: dict[str, Any] | None) -> ProjectManifest:
        if not data:
            return create_empty_manifest()
        return cls.model_validate(data)


def create_empty_manifest() -> ProjectManifest:
    return ProjectManifest()
