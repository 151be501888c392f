from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session as DBSession

from database.models import Project
from models.timeline_models import ProjectManifest, create_empty_manifest

DEFAULT_WIDTH = 1080
DEFAULT_HEIGHT = 1920
DEFAULT_FPS = 30


def get_project_by_id(project_id: UUID, db: DBSession) -> Project | None:
    return db.query(Project).filter(Project.project_id == project_id).first()


def create_project(
    user_id: UUID,
    name: str,
    db: DBSession,
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    fps: int = DEFAULT_FPS,
) -> Project:
    now = datetime.now(timezone.utc)
    project = Project(
        project_name=name,
        owner_id=user_id,
        width=width,
        height=height,
        fps=fps,
        manifest=create_empty_manifest().to_json(),
        duration=0,
        status="draft",
        created_at=now,
        updated_at=now,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


def list_projects(user_id: UUID, db: DBSession) -> list[Project]:
    return (
        db.query(Project)
        .filter(Project.owner_id == user_id)
        .order_by(Project.updated_at.desc())
        .all()
    )


def load_manifest(project: Project) -> ProjectManifest:
    return ProjectManifest.from_json(project.manifest)


def save_manifest(project: Project, manifest: ProjectManifest, db: DBSession) -> int:
    """Persist the manifest and its derived duration in one write. Returns the duration in frames."""
    duration = manifest.total_duration()
    project.manifest = manifest.to_json()
    project.duration = duration
    project.updated_at = datetime.now(timezone.utc)
    db.commit()
    return duration
