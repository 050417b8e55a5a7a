# ABOUTME: RQ wiring for notification delivery: Redis connection, the notification queue and job policies.
# ABOUTME: Policy constants mirror the event_* settings so emitters built without Settings behave the same.

from collections.abc import Callable

from loguru import logger
from redis import Redis
from rq import Queue
from rq.job import Job

NOTIFICATION_QUEUE = "notifications"

# Job policies (seconds)
JOB_TIMEOUT = 30
RESULT_TTL = 300
FAILURE_TTL = 600  # long enough to inspect failed deliveries


def create_redis_connection(url: str = "redis://localhost:6379") -> Redis:
    """
    Open and ping a Redis connection shared by the store, locks and queue.

    Raises:
        ConnectionError: When Redis does not answer the ping
    """
    client = Redis.from_url(url, decode_responses=False)
    try:
        client.ping()
    except Exception as e:
        logger.error(f"Redis at {url} is not reachable: {e}")
        raise ConnectionError(f"Redis connection failed: {e}") from e

    logger.info(f"Connected to Redis at {url}")
    return client


def get_notification_queue(
    redis_conn: Redis,
    queue_name: str = NOTIFICATION_QUEUE,
    default_timeout: int = JOB_TIMEOUT,
) -> Queue:
    """Queue consumed by `rq worker notifications` running deliver_event jobs"""
    queue = Queue(queue_name, connection=redis_conn, default_timeout=default_timeout)
    logger.debug(f"Notification queue '{queue_name}' ready (timeout={default_timeout}s)")
    return queue


def enqueue_job(
    queue: Queue,
    func: str | Callable,
    args: tuple = (),
    job_timeout: int = JOB_TIMEOUT,
    result_ttl: int = RESULT_TTL,
    failure_ttl: int = FAILURE_TTL,
) -> Job:
    """
    Enqueue a delivery job with explicit timeout and retention.

    Args:
        queue: Notification queue
        func: Job function or its dotted import path
        args: Positional job arguments (must be JSON/pickle friendly)
        job_timeout: Maximum execution time in seconds
        result_ttl: Retention of successful results in seconds
        failure_ttl: Retention of failed jobs in seconds

    Returns:
        The enqueued RQ Job
    """
    job = queue.enqueue(
        func,
        args=args,
        job_timeout=job_timeout,
        result_ttl=result_ttl,
        failure_ttl=failure_ttl,
    )
    name = func if isinstance(func, str) else func.__name__
    logger.debug(f"Enqueued {name} as job {job.id} on '{queue.name}'")
    return job
