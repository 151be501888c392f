from __future__ import annotations

import logging
import os
import time
from typing import Any
from uuid import UUID

from rq import Retry
from sqlalchemy.orm import Session

from database.base import SessionLocal
from database.models import GenerationJob
from operators.asset_operator import create_asset
from redis_client import rq_queue
from utils.fal_provider import FalClient, ProviderError


logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = float(os.getenv("GENERATION_POLL_INTERVAL_SECONDS", "5"))
POLL_TIMEOUT_SECONDS = int(os.getenv("GENERATION_POLL_TIMEOUT_SECONDS", "600"))
DEFAULT_VIDEO_SECONDS = 5.0

JOB_TYPES = {"image", "video", "audio"}
TERMINAL_STATUSES = {"completed", "failed"}


class GenerationJobNotFoundError(Exception):
    def __init__(self, job_id: UUID | str):
        self.job_id = job_id
        super().__init__(f"Generation job not found: {job_id}")


def create_generation_job(
    db: Session,
    user_id: UUID,
    project_id: UUID | None,
    job_type: str,
    model: str,
    input_payload: dict[str, Any],
    status: str = "pending",
    provider: str = "fal",
) -> GenerationJob:
    if job_type not in JOB_TYPES:
        raise ValueError(f"Unsupported generation job type: {job_type}")

    job = GenerationJob(
        user_id=user_id,
        project_id=project_id,
        job_type=job_type,
        status=status,
        provider=provider,
        model=model,
        input=input_payload,
        progress=0,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def get_generation_job(db: Session, job_id: UUID | str) -> GenerationJob | None:
    job_uuid = job_id if isinstance(job_id, UUID) else UUID(str(job_id))
    return db.query(GenerationJob).filter(GenerationJob.job_id == job_uuid).first()


def mark_job_processing(
    db: Session,
    job: GenerationJob,
    external_id: str,
    status_url: str | None = None,
    response_url: str | None = None,
) -> GenerationJob:
    job.status = "processing"
    job.external_id = external_id
    job.status_url = status_url
    job.response_url = response_url
    db.commit()
    db.refresh(job)
    return job


def complete_job(
    db: Session,
    job: GenerationJob,
    output: dict[str, Any],
    commit: bool = True,
) -> GenerationJob:
    job.status = "completed"
    job.output = output
    job.progress = 100
    job.error = None
    if commit:
        db.commit()
        db.refresh(job)
    return job


def fail_job(db: Session, job: GenerationJob, error: str) -> GenerationJob:
    job.status = "failed"
    job.error = error[:1000]
    db.commit()
    db.refresh(job)
    return job


def enqueue_generation_poll(job_id: UUID | str) -> None:
    """Queue a background poll for a submitted job. Failures are logged, not raised."""
    try:
        rq_queue.enqueue(
            poll_generation_job,
            str(job_id),
            job_timeout=POLL_TIMEOUT_SECONDS + 60,
            retry=Retry(max=2, interval=[10, 30]),
        )
    except Exception as exc:
        logger.warning("Failed to enqueue generation poll for %s: %s", job_id, exc)


def check_generation_job(db: Session, job: GenerationJob, client) -> GenerationJob:
    """
    Ask the provider for the job's state once and record it.

    On completion the generated media becomes an asset in the job's project
    and the job output records ``{url, assetId}``.
    """
    if job.status in TERMINAL_STATUSES:
        return job
    if not job.status_url or not job.response_url:
        return fail_job(db, job, "Job has no provider status URL")

    status = client.get_request_status(job.status_url, job.response_url)

    if status.status == "failed":
        logger.info("Generation job %s failed: %s", job.job_id, status.error)
        return fail_job(db, job, status.error or "Generation failed")

    if status.status != "completed":
        # Jobs only move forward
        if status.status == "processing" and job.status == "pending":
            job.status = "processing"
            db.commit()
            db.refresh(job)
        return job

    url = status.output_url()
    if not url:
        return fail_job(db, job, "Provider returned no output URL")

    job_input = job.input or {}
    duration_seconds = None
    if job.job_type == "video":
        try:
            duration_seconds = float(job_input.get("duration") or DEFAULT_VIDEO_SECONDS)
        except (TypeError, ValueError):
            duration_seconds = DEFAULT_VIDEO_SECONDS

    asset = create_asset(
        db,
        user_id=job.user_id,
        project_id=job.project_id,
        asset_type=job.job_type,
        storage_url=url,
        prompt=job_input.get("prompt"),
        provider=job.provider,
        model=job.model,
        metadata={"jobId": str(job.job_id), "externalId": job.external_id},
        duration_seconds=duration_seconds,
        commit=False,
    )
    complete_job(db, job, {"url": url, "assetId": str(asset.asset_id)}, commit=False)
    db.commit()
    db.refresh(job)
    logger.info("Generation job %s completed as asset %s", job.job_id, asset.asset_id)
    return job


def poll_generation_job(job_id: str) -> str:
    """rq task: poll the provider until the job settles or the poll window closes."""
    from agent.director.config import AgentConfig

    client = FalClient.from_config(AgentConfig.from_env())
    db = SessionLocal()
    try:
        job = get_generation_job(db, job_id)
        if job is None:
            raise GenerationJobNotFoundError(job_id)

        deadline = time.monotonic() + POLL_TIMEOUT_SECONDS
        while True:
            try:
                job = check_generation_job(db, job, client)
            except ProviderError as exc:
                db.rollback()
                logger.warning("Status check for generation job %s failed: %s", job_id, exc)
                if time.monotonic() >= deadline:
                    fail_job(db, job, f"Provider status check failed: {exc}")
                    return "failed"
            else:
                if job.status in TERMINAL_STATUSES:
                    return job.status
                if time.monotonic() >= deadline:
                    fail_job(db, job, f"Timed out after {POLL_TIMEOUT_SECONDS}s")
                    return "failed"
            time.sleep(POLL_INTERVAL_SECONDS)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
