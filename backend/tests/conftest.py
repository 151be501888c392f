import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SESSION_COOKIE_SECURE", "false")
os.environ["DIRECTOR_LOG_FILE"] = ""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.base import Base
import database.models  # noqa: F401  registers the tables
from operators.asset_operator import create_asset
from operators.auth_operator import create_user
from operators.project_operator import create_project


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user(db):
    return create_user(db)


@pytest.fixture
def other_user(db):
    return create_user(db)


@pytest.fixture
def project(db, user):
    return create_project(user.user_id, "Launch Teaser", db)


@pytest.fixture
def make_asset(db, user, project):
    def _make(
        asset_type="video",
        duration_seconds=5.0,
        metadata=None,
        owner=None,
        project_id=None,
        storage_url=None,
    ):
        return create_asset(
            db,
            user_id=(owner or user).user_id,
            project_id=project_id or project.project_id,
            asset_type=asset_type,
            storage_url=storage_url or f"https://cdn.example.com/{asset_type}.bin",
            prompt=f"a {asset_type} asset",
            provider="fal",
            metadata=metadata,
            duration_seconds=duration_seconds,
        )

    return _make
