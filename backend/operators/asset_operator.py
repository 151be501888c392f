from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session as DBSession

from database.models import Assets

ASSET_TYPES = ("image", "video", "audio")


def parse_asset_id(value: str | UUID) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def create_asset(
    db: DBSession,
    user_id: UUID,
    project_id: UUID,
    asset_type: str,
    storage_url: str,
    filename: str | None = None,
    prompt: str | None = None,
    provider: str | None = None,
    model: str | None = None,
    metadata: dict[str, Any] | None = None,
    duration_seconds: float | None = None,
    commit: bool = True,
) -> Assets:
    if asset_type not in ASSET_TYPES:
        raise ValueError(f"Unsupported asset type: {asset_type}")

    asset = Assets(
        user_id=user_id,
        project_id=project_id,
        asset_type=asset_type,
        storage_url=storage_url,
        filename=filename,
        prompt=prompt,
        provider=provider,
        model=model,
        asset_metadata=metadata,
        duration_seconds=duration_seconds,
    )
    db.add(asset)
    if commit:
        db.commit()
        db.refresh(asset)
    else:
        db.flush()
    return asset


def get_asset(db: DBSession, asset_id: str | UUID) -> Assets | None:
    asset_uuid = parse_asset_id(asset_id)
    if asset_uuid is None:
        return None
    return db.query(Assets).filter(Assets.asset_id == asset_uuid).first()


def list_project_assets(
    db: DBSession,
    user_id: UUID,
    project_id: UUID,
    asset_type: str | None = None,
    limit: int = 50,
) -> list[Assets]:
    """Newest first, scoped to the (user, project) pair."""
    query = db.query(Assets).filter(
        Assets.user_id == user_id,
        Assets.project_id == project_id,
    )
    if asset_type and asset_type != "all":
        query = query.filter(Assets.asset_type == asset_type)
    return query.order_by(Assets.created_at.desc()).limit(limit).all()


def count_project_assets(db: DBSession, user_id: UUID, project_id: UUID) -> dict[str, int]:
    counts = {asset_type: 0 for asset_type in ASSET_TYPES}
    rows = (
        db.query(Assets.asset_type)
        .filter(Assets.user_id == user_id, Assets.project_id == project_id)
        .all()
    )
    for (asset_type,) in rows:
        counts[asset_type] = counts.get(asset_type, 0) + 1
    return counts
