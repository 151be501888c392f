import os

from redis import Redis
from rq import Queue

REDIS_AUTH_URL = os.getenv("REDIS_AUTH_URL", "redis://localhost:6379/0")
REDIS_RQ_URL = os.getenv("REDIS_RQ_URL", "redis://localhost:6379/1")
RQ_QUEUE_NAME = os.getenv("RQ_QUEUE_NAME", "director")

redis_auth = Redis.from_url(REDIS_AUTH_URL, decode_responses=True)
# rq stores pickled payloads, so its connection must return bytes
redis_rq = Redis.from_url(REDIS_RQ_URL)

rq_queue = Queue(RQ_QUEUE_NAME, connection=redis_rq)


def init_redis() -> None:
    redis_auth.ping()
    redis_rq.ping()
