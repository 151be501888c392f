from __future__ import annotations

import logging
import time
from typing import Any, Callable
from uuid import UUID

from sqlalchemy.orm import Session

from database.models import Assets, Project, User
from operators.asset_operator import (
    count_project_assets,
    create_asset,
    get_asset,
    list_project_assets,
)
from operators.generation_operator import (
    complete_job,
    create_generation_job,
    enqueue_generation_poll,
    mark_job_processing,
)
from operators.project_operator import get_project_by_id, load_manifest, save_manifest
from operators.timeline_editor import InvalidOperationError, apply_timeline_action
from utils.fal_provider import FalClient

from .config import AgentConfig
from .tools import ArgumentValidationError, validate_arguments
from .types import (
    GenerateImageArgs,
    GenerateVideoArgs,
    GenerateVoiceoverArgs,
    GetProjectStateArgs,
    ListAssetsArgs,
    NotFoundError,
    ToolContext,
    ToolName,
    ToolResult,
    UnauthorizedError,
    UpdateTimelineArgs,
)


logger = logging.getLogger(__name__)

ASSET_LIST_LIMIT = 50
PROMPT_PREVIEW_CHARS = 100

VOICE_MALE = "Adam"
VOICE_FEMALE = "Rachel"
VOICE_STYLE_MAP = {
    "male-narrator": VOICE_MALE,
    "female-narrator": VOICE_FEMALE,
    "male-casual": VOICE_MALE,
    "female-casual": VOICE_FEMALE,
}


def _asset_summary(asset: Assets, include_metadata: bool = False) -> dict[str, Any]:
    summary = {
        "id": str(asset.asset_id),
        "type": asset.asset_type,
        "url": asset.storage_url,
        "prompt": asset.prompt[:PROMPT_PREVIEW_CHARS] if asset.prompt else None,
        "durationSeconds": asset.duration_seconds,
        "createdAt": asset.created_at.isoformat() if asset.created_at else None,
    }
    if include_metadata:
        summary["metadata"] = asset.asset_metadata
    return summary


def _scaled_dimensions(width: int, height: int, aspect_ratio: str | None) -> tuple[int, int]:
    """Keep the project's dominant side and derive the other from the aspect ratio."""
    if not aspect_ratio:
        return width, height
    ratio_w, ratio_h = (int(part) for part in aspect_ratio.split(":"))
    if width > height:
        return width, int(width * ratio_h / ratio_w + 0.5)
    return int(height * ratio_w / ratio_h + 0.5), height


class ToolExecutor:
    """
    Single dispatch point from a tool call to its side effects.

    ``execute`` never raises: unknown tools, invalid arguments, refused
    edits, missing or foreign resources and provider failures all come back
    as a failed ToolResult, with the session rolled back.
    """

    def __init__(
        self,
        db: Session,
        config: AgentConfig,
        generation_client: FalClient | None = None,
        schedule_poll: Callable[[UUID], None] = enqueue_generation_poll,
    ):
        self.db = db
        self.config = config
        self.generation_client = generation_client or FalClient.from_config(config)
        self.schedule_poll = schedule_poll

    def execute(
        self,
        tool_name: str | ToolName,
        arguments: dict[str, Any],
        context: ToolContext,
    ) -> ToolResult:
        try:
            name = ToolName(tool_name)
        except ValueError:
            return ToolResult.fail(f"Unknown tool: {tool_name}")

        try:
            args = validate_arguments(name, arguments)
        except ArgumentValidationError as exc:
            return ToolResult.fail(str(exc))

        handler = self.HANDLERS[name]
        started = time.monotonic()
        try:
            data = handler(self, args, context)
        except (InvalidOperationError, NotFoundError, UnauthorizedError) as exc:
            self.db.rollback()
            logger.info("Tool %s refused: %s", name.value, exc)
            return ToolResult.fail(str(exc))
        except Exception as exc:
            self.db.rollback()
            logger.exception("Tool %s failed", name.value)
            return ToolResult.fail(str(exc) or f"{name.value} failed")

        logger.info(
            "Tool %s completed in %.2fs", name.value, time.monotonic() - started
        )
        return ToolResult.ok(data)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _require_project(self, context: ToolContext) -> Project:
        project = get_project_by_id(context.project_id, self.db)
        if project is None:
            raise NotFoundError("Project")
        if project.owner_id != context.user_id:
            raise UnauthorizedError()
        return project

    def _get_user(self, context: ToolContext) -> User | None:
        return self.db.query(User).filter(User.user_id == context.user_id).first()

    def _require_asset(
        self,
        asset_id: str,
        context: ToolContext,
        label: str = "Asset",
        include_id: bool = False,
    ) -> Assets:
        asset = get_asset(self.db, asset_id)
        detail = asset_id if include_id else None
        if asset is None:
            raise NotFoundError(label, detail)
        if asset.user_id != context.user_id:
            raise UnauthorizedError()
        if asset.project_id != context.project_id:
            raise NotFoundError(label, detail)
        return asset

    # -------------------------------------------------------------------------
    # Read-only tools
    # -------------------------------------------------------------------------

    def _get_project_state(
        self, args: GetProjectStateArgs, context: ToolContext
    ) -> dict[str, Any]:
        project = self._require_project(context)
        manifest = load_manifest(project)
        assets = list_project_assets(
            self.db, context.user_id, context.project_id, limit=ASSET_LIST_LIMIT
        )
        counts = count_project_assets(self.db, context.user_id, context.project_id)

        return {
            "project": {
                "id": str(project.project_id),
                "name": project.project_name,
                "width": project.width,
                "height": project.height,
                "fps": project.fps,
                "duration": project.duration,
                "status": project.status,
            },
            "manifest": {
                "videoClipCount": len(manifest.tracks.video),
                "audioClipCount": len(manifest.tracks.audio),
                "componentCount": len(manifest.tracks.components),
                "backgroundColor": manifest.global_settings.background_color,
            },
            "assets": [_asset_summary(asset) for asset in assets],
            "assetCounts": {
                "images": counts["image"],
                "videos": counts["video"],
                "audio": counts["audio"],
            },
        }

    def _list_assets(self, args: ListAssetsArgs, context: ToolContext) -> dict[str, Any]:
        self._require_project(context)
        assets = list_project_assets(
            self.db,
            context.user_id,
            context.project_id,
            asset_type=args.asset_type,
            limit=ASSET_LIST_LIMIT,
        )
        return {
            "count": len(assets),
            "assets": [_asset_summary(asset, include_metadata=True) for asset in assets],
        }

    # -------------------------------------------------------------------------
    # Generation tools
    # -------------------------------------------------------------------------

    def _generate_image(self, args: GenerateImageArgs, context: ToolContext) -> dict[str, Any]:
        project = self._require_project(context)
        user = self._get_user(context)

        width, height = _scaled_dimensions(project.width, project.height, args.aspect_ratio)
        prompt = args.prompt
        if args.style:
            prompt = f"{prompt}, {args.style} style"
        model = (user.preferred_image_model if user else None) or self.config.default_image_model

        # A provider failure after this point leaves the job in "pending"
        job = create_generation_job(
            self.db,
            user_id=context.user_id,
            project_id=context.project_id,
            job_type="image",
            model=model,
            input_payload={"prompt": prompt, "width": width, "height": height},
        )
        queued = self.generation_client.submit_image(prompt, model, width, height)
        mark_job_processing(
            self.db,
            job,
            external_id=queued.request_id,
            status_url=queued.status_url,
            response_url=queued.response_url,
        )
        self.schedule_poll(job.job_id)

        return {
            "jobId": str(job.job_id),
            "status": "processing",
            "message": "Started generating image. This usually takes 10-30 seconds.",
            "prompt": prompt,
            "dimensions": f"{width}x{height}",
        }

    def _generate_video(self, args: GenerateVideoArgs, context: ToolContext) -> dict[str, Any]:
        self._require_project(context)
        image = self._require_asset(
            args.image_asset_id, context, label="Image asset", include_id=True
        )
        if image.asset_type != "image":
            raise InvalidOperationError("Asset is not an image")

        user = self._get_user(context)
        model = (user.preferred_video_model if user else None) or self.config.default_video_model

        job = create_generation_job(
            self.db,
            user_id=context.user_id,
            project_id=context.project_id,
            job_type="video",
            model=model,
            input_payload={
                "imageUrl": image.storage_url,
                "prompt": args.motion_prompt,
                "duration": args.duration,
                "sourceImageId": str(image.asset_id),
            },
        )
        queued = self.generation_client.submit_video(
            image.storage_url, args.motion_prompt, model, duration=args.duration
        )
        mark_job_processing(
            self.db,
            job,
            external_id=queued.request_id,
            status_url=queued.status_url,
            response_url=queued.response_url,
        )
        self.schedule_poll(job.job_id)

        return {
            "jobId": str(job.job_id),
            "status": "processing",
            "message": "Started converting image to video. This usually takes 60-90 seconds.",
            "sourceImageId": args.image_asset_id,
            "duration": args.duration,
        }

    def _generate_voiceover(
        self, args: GenerateVoiceoverArgs, context: ToolContext
    ) -> dict[str, Any]:
        self._require_project(context)
        user = self._get_user(context)
        voice = (
            (user.preferred_voice_id if user else None)
            or VOICE_STYLE_MAP.get(args.voice_style or "male-narrator")
            or VOICE_MALE
        )

        job = create_generation_job(
            self.db,
            user_id=context.user_id,
            project_id=context.project_id,
            job_type="audio",
            model=self.config.tts_model,
            input_payload={"text": args.text, "voice": voice},
            status="processing",
        )
        speech = self.generation_client.generate_speech(args.text, voice)

        asset = create_asset(
            self.db,
            user_id=context.user_id,
            project_id=context.project_id,
            asset_type="audio",
            storage_url=speech.audio_url,
            filename=f"tts-{int(time.time() * 1000)}.mp3",
            prompt=args.text[:500],
            provider="fal",
            model=self.config.tts_model,
            metadata={"wordTimestamps": speech.word_timestamps, "voice": voice},
            duration_seconds=speech.duration,
            commit=False,
        )
        complete_job(
            self.db,
            job,
            {
                "url": speech.audio_url,
                "assetId": str(asset.asset_id),
                "duration": speech.duration,
                "wordTimestamps": speech.word_timestamps,
            },
            commit=False,
        )
        self.db.commit()

        return {
            "assetId": str(asset.asset_id),
            "url": speech.audio_url,
            "duration": speech.duration,
            "wordTimestamps": speech.word_timestamps,
            "message": (
                f"Generated {speech.duration:.1f}s voiceover "
                f"with {len(speech.word_timestamps)} words"
            ),
        }

    # -------------------------------------------------------------------------
    # Timeline
    # -------------------------------------------------------------------------

    def _update_timeline(
        self, args: UpdateTimelineArgs, context: ToolContext
    ) -> dict[str, Any]:
        project = self._require_project(context)
        fps = project.fps

        def resolve_asset(asset_id: str) -> Assets | None:
            asset = get_asset(self.db, asset_id)
            if asset is None:
                return None
            if asset.user_id != context.user_id:
                raise UnauthorizedError()
            if asset.project_id != context.project_id:
                return None
            return asset

        manifest = apply_timeline_action(
            load_manifest(project),
            args.action,
            fps,
            resolve_asset,
            **args.model_dump(exclude={"action"}),
        )
        duration = save_manifest(project, manifest, self.db)

        return {
            "action": args.action,
            "totalDuration": duration,
            "totalDurationSeconds": duration / fps if fps else 0,
            "clipCounts": manifest.clip_counts(),
        }

    HANDLERS: dict[ToolName, Callable[..., dict[str, Any]]] = {
        ToolName.GET_PROJECT_STATE: _get_project_state,
        ToolName.GENERATE_IMAGE: _generate_image,
        ToolName.GENERATE_VIDEO: _generate_video,
        ToolName.GENERATE_VOICEOVER: _generate_voiceover,
        ToolName.UPDATE_TIMELINE: _update_timeline,
        ToolName.LIST_ASSETS: _list_assets,
    }


_unhandled = set(ToolName) - set(ToolExecutor.HANDLERS)
if _unhandled:
    raise RuntimeError(f"Tools without a handler: {sorted(t.value for t in _unhandled)}")
