from uuid import UUID

from fastapi import Depends, HTTPException, Path
from sqlalchemy.orm import Session

from database.base import get_db
from database.models import Project
from dependencies.auth import get_user_id


def require_project(
    project_id: UUID = Path(...),
    user_id: UUID = Depends(get_user_id),
    db: Session = Depends(get_db),
) -> Project:
    """Load a project owned by the caller, or 404."""
    project = (
        db.query(Project)
        .filter(
            Project.project_id == project_id,
            Project.owner_id == user_id,
        )
        .first()
    )

    if not project:
        raise HTTPException(status_code=404, detail="Project not found")

    return project
