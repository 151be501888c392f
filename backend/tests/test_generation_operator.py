from types import SimpleNamespace

import pytest

from database.models import Assets
from operators import generation_operator
from operators.generation_operator import (
    check_generation_job,
    create_generation_job,
    enqueue_generation_poll,
    mark_job_processing,
    poll_generation_job,
)
from utils.fal_provider import FalRequestStatus, ProviderError
from fakes import FakeGenerationClient


@pytest.fixture
def make_job(db, user, project):
    def _make(job_type="image", input_payload=None, status_url="https://q/requests/r1/status"):
        job = create_generation_job(
            db,
            user_id=user.user_id,
            project_id=project.project_id,
            job_type=job_type,
            model="fal-ai/test-model",
            input_payload=input_payload or {"prompt": "a fox in snow"},
        )
        return mark_job_processing(
            db,
            job,
            external_id="r1",
            status_url=status_url,
            response_url=status_url.removesuffix("/status"),
        )

    return _make


def test_create_rejects_unknown_job_type(db, user, project):
    with pytest.raises(ValueError):
        create_generation_job(db, user.user_id, project.project_id, "3d", "m", {})


def test_still_running_job_is_left_processing(db, make_job):
    job = make_job()
    client = FakeGenerationClient(statuses=[FalRequestStatus(status="processing")])

    job = check_generation_job(db, job, client)

    assert job.status == "processing"
    assert db.query(Assets).count() == 0


def test_queued_status_does_not_demote_processing_job(db, make_job):
    job = make_job()
    client = FakeGenerationClient(statuses=[FalRequestStatus(status="pending")])

    job = check_generation_job(db, job, client)

    db.refresh(job)
    assert job.status == "processing"


def test_pending_job_advances_when_provider_starts(db, user, project):
    job = create_generation_job(
        db, user.user_id, project.project_id, "image", "fal-ai/test-model", {"prompt": "p"}
    )
    job.status_url = "https://q/requests/r2/status"
    job.response_url = "https://q/requests/r2"
    db.commit()
    client = FakeGenerationClient(statuses=[FalRequestStatus(status="processing")])

    job = check_generation_job(db, job, client)

    assert job.status == "processing"


def test_completed_image_becomes_asset(db, make_job, project):
    job = make_job()
    client = FakeGenerationClient(
        statuses=[
            FalRequestStatus(
                status="completed", result={"images": [{"url": "https://cdn/fox.png"}]}
            )
        ]
    )

    job = check_generation_job(db, job, client)

    asset = db.query(Assets).one()
    assert job.status == "completed"
    assert job.progress == 100
    assert job.output == {"url": "https://cdn/fox.png", "assetId": str(asset.asset_id)}
    assert asset.asset_type == "image"
    assert asset.project_id == project.project_id
    assert asset.prompt == "a fox in snow"
    assert asset.duration_seconds is None


def test_completed_video_uses_requested_duration(db, make_job):
    job = make_job("video", {"prompt": "pan", "duration": 8})
    client = FakeGenerationClient(
        statuses=[FalRequestStatus(status="completed", result={"video": {"url": "v.mp4"}})]
    )

    check_generation_job(db, job, client)

    assert db.query(Assets).one().duration_seconds == 8.0


def test_completed_video_defaults_to_five_seconds(db, make_job):
    job = make_job("video", {"prompt": "pan"})
    client = FakeGenerationClient(
        statuses=[FalRequestStatus(status="completed", result={"video": {"url": "v.mp4"}})]
    )

    check_generation_job(db, job, client)

    assert db.query(Assets).one().duration_seconds == 5.0


def test_failed_job_records_error(db, make_job):
    job = make_job()
    client = FakeGenerationClient(
        statuses=[FalRequestStatus(status="failed", error="NSFW content detected")]
    )

    job = check_generation_job(db, job, client)

    assert job.status == "failed"
    assert job.error == "NSFW content detected"


def test_completed_without_url_fails(db, make_job):
    job = make_job()
    client = FakeGenerationClient(statuses=[FalRequestStatus(status="completed", result={})])

    job = check_generation_job(db, job, client)

    assert job.status == "failed"
    assert job.error == "Provider returned no output URL"


def test_terminal_job_is_not_checked_again(db, make_job):
    job = make_job()
    job.status = "completed"
    db.commit()
    client = FakeGenerationClient()

    check_generation_job(db, job, client)

    assert client.status_checks == []


def test_poll_task_runs_to_completion_in_mock_mode(db, session_factory, make_job, monkeypatch):
    job = make_job(status_url="https://queue.fal.run/fal-ai/flux/requests/mock-abc/status")
    monkeypatch.setenv("MOCK_GENERATION", "true")
    monkeypatch.setattr(generation_operator, "SessionLocal", session_factory)
    monkeypatch.setattr(generation_operator.time, "sleep", lambda seconds: None)

    assert poll_generation_job(str(job.job_id)) == "completed"

    db.expire_all()
    assert db.query(Assets).one().storage_url.startswith("https://placehold.co/")


def test_poll_task_times_out(db, session_factory, make_job, monkeypatch):
    job = make_job()
    monkeypatch.setattr(generation_operator, "SessionLocal", session_factory)
    monkeypatch.setattr(generation_operator, "POLL_TIMEOUT_SECONDS", 0)
    monkeypatch.setattr(
        generation_operator.FalClient,
        "from_config",
        classmethod(lambda cls, config: FakeGenerationClient()),
    )

    assert poll_generation_job(str(job.job_id)) == "failed"

    db.expire_all()
    db.refresh(job)
    assert job.error == "Timed out after 0s"


def test_enqueue_puts_poll_on_the_queue(monkeypatch):
    enqueued = []
    monkeypatch.setattr(
        generation_operator,
        "rq_queue",
        SimpleNamespace(enqueue=lambda func, *args, **kwargs: enqueued.append((func, args))),
    )

    enqueue_generation_poll("job-1")

    assert enqueued == [(poll_generation_job, ("job-1",))]


def test_enqueue_failure_is_logged_not_raised(monkeypatch, caplog):
    def _refuse(*args, **kwargs):
        raise ConnectionError("redis down")

    monkeypatch.setattr(generation_operator, "rq_queue", SimpleNamespace(enqueue=_refuse))

    with caplog.at_level("WARNING", logger="operators.generation_operator"):
        enqueue_generation_poll("job-1")

    assert "redis down" in caplog.text


def test_poll_task_recovers_from_transient_provider_error(db, session_factory, make_job, monkeypatch):
    job = make_job()
    client = FakeGenerationClient(
        statuses=[
            ProviderError("fal.ai request failed (502): bad gateway", status_code=502),
            FalRequestStatus(
                status="completed", result={"images": [{"url": "https://cdn/fox.png"}]}
            ),
        ]
    )
    monkeypatch.setattr(generation_operator, "SessionLocal", session_factory)
    monkeypatch.setattr(generation_operator.time, "sleep", lambda seconds: None)
    monkeypatch.setattr(
        generation_operator.FalClient, "from_config", classmethod(lambda cls, config: client)
    )

    assert poll_generation_job(str(job.job_id)) == "completed"
    assert len(client.status_checks) == 2


def test_poll_task_fails_job_when_provider_keeps_erroring(db, session_factory, make_job, monkeypatch):
    job = make_job()
    client = FakeGenerationClient(
        statuses=[ProviderError("fal.ai request failed (503): unavailable", status_code=503)]
    )
    monkeypatch.setattr(generation_operator, "SessionLocal", session_factory)
    monkeypatch.setattr(generation_operator, "POLL_TIMEOUT_SECONDS", 0)
    monkeypatch.setattr(
        generation_operator.FalClient, "from_config", classmethod(lambda cls, config: client)
    )

    assert poll_generation_job(str(job.job_id)) == "failed"

    db.expire_all()
    db.refresh(job)
    assert job.status == "failed"
    assert "unavailable" in job.error
