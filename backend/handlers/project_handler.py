import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database.base import get_db
from database.models import Project
from dependencies.auth import get_user_id
from dependencies.project import require_project
from models.api_models import (
    ProjectCreateRequest,
    ProjectCreateResponse,
    ProjectDeleteResponse,
    ProjectGetResponse,
    ProjectListResponse,
    ProjectManifestResponse,
    ProjectSummary,
)
from operators.project_operator import create_project, list_projects, load_manifest


router = APIRouter(prefix="/projects", tags=["projects"])
logger = logging.getLogger(__name__)


def _summary(project: Project) -> ProjectSummary:
    return ProjectSummary(
        project_id=str(project.project_id),
        project_name=project.project_name,
        width=project.width,
        height=project.height,
        fps=project.fps,
        duration=project.duration or 0,
        status=project.status,
        updated_at=project.updated_at,
    )


@router.post("/", response_model=ProjectCreateResponse)
async def project_create(
    request: ProjectCreateRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_user_id),
):
    try:
        project = create_project(
            user_id,
            request.name,
            db,
            width=request.width,
            height=request.height,
            fps=request.fps,
        )
    except Exception:
        db.rollback()
        logger.exception("Failed to create project for user %s", user_id)
        raise HTTPException(status_code=500, detail="Failed to create project")

    return ProjectCreateResponse(ok=True, project=_summary(project))


@router.get("/", response_model=ProjectListResponse)
async def project_list(
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_user_id),
):
    try:
        projects = list_projects(user_id, db)
    except Exception:
        db.rollback()
        logger.exception("Failed to list projects for user %s", user_id)
        raise HTTPException(status_code=500, detail="Failed to list projects")

    return ProjectListResponse(ok=True, projects=[_summary(p) for p in projects])


@router.get("/{project_id}", response_model=ProjectGetResponse)
async def project_get(
    project: Project = Depends(require_project),
):
    return ProjectGetResponse(ok=True, project=_summary(project))


@router.get("/{project_id}/manifest", response_model=ProjectManifestResponse)
async def project_manifest_get(
    project: Project = Depends(require_project),
):
    manifest = load_manifest(project)
    return ProjectManifestResponse(
        ok=True,
        project_id=str(project.project_id),
        duration=project.duration or 0,
        manifest=manifest.to_json(),
    )


@router.delete("/{project_id}", response_model=ProjectDeleteResponse)
async def project_delete(
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
):
    try:
        db.delete(project)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to delete project %s", project.project_id)
        raise HTTPException(status_code=500, detail="Failed to delete project")

    return ProjectDeleteResponse(ok=True)
