import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[2]
load_dotenv(ROOT_DIR / ".env")

from rq import Queue, Worker
from rq.job import Job
from rq.worker import SimpleWorker, SpawnWorker

from redis_client import RQ_QUEUE_NAME, init_redis, redis_rq
from utils.log_config import attach_file_handler, configure_logging, resolve_log_path


logger = logging.getLogger(__name__)


def _configure_worker_logging() -> None:
    configure_logging()

    jobs_log = os.getenv("GENERATION_JOBS_LOG_FILE", "backend/log/generation_jobs.log")
    jobs_log_level = os.getenv("GENERATION_JOBS_LOG_LEVEL", "INFO")
    jobs_log_path = resolve_log_path(jobs_log, ROOT_DIR)
    if jobs_log_path:
        attach_file_handler("redis_client.worker", jobs_log_path, level_name=jobs_log_level)
        attach_file_handler("operators.generation_operator", jobs_log_path, level_name=jobs_log_level)
        attach_file_handler("utils.fal_provider", jobs_log_path, level_name=jobs_log_level)
        attach_file_handler("rq.worker", jobs_log_path, level_name=jobs_log_level)


class LoggingWorker(Worker):
    def handle_exception(self, job: Job, *exc_info) -> None:
        self.log.error("Job failed: %s", job.id, exc_info=exc_info)
        super().handle_exception(job, *exc_info)


class LoggingSimpleWorker(SimpleWorker):
    def handle_exception(self, job: Job, *exc_info) -> None:
        self.log.error("Job failed: %s", job.id, exc_info=exc_info)
        super().handle_exception(job, *exc_info)


class LoggingSpawnWorker(SpawnWorker):
    def handle_exception(self, job: Job, *exc_info) -> None:
        self.log.error("Job failed: %s", job.id, exc_info=exc_info)
        super().handle_exception(job, *exc_info)


def _build_worker() -> Worker:
    queues = [Queue(RQ_QUEUE_NAME, connection=redis_rq)]
    override = os.getenv("RQ_WORKER_CLASS", "").strip().lower()
    supports_fork = hasattr(os, "wait4") and hasattr(os, "fork")
    supports_spawn = hasattr(os, "wait4") and hasattr(os, "spawnv")
    if override == "simple":
        return LoggingSimpleWorker(queues, connection=redis_rq)
    if override == "spawn" and supports_spawn:
        return LoggingSpawnWorker(queues, connection=redis_rq)
    if supports_fork:
        return LoggingWorker(queues, connection=redis_rq)
    if supports_spawn:
        return LoggingSpawnWorker(queues, connection=redis_rq)
    return LoggingSimpleWorker(queues, connection=redis_rq)


def main():
    _configure_worker_logging()
    logger.info("rq_worker_start queue=%s python_executable=%s", RQ_QUEUE_NAME, sys.executable)
    init_redis()
    worker = _build_worker()
    worker.work()


if __name__ == "__main__":
    main()
