# ABOUTME: Event emitters used after the exclusive scope is released: RQ-queued and direct delivery.
# ABOUTME: Emission is best-effort; failures are logged and never propagate into phase or pass commands.

from collections.abc import Callable
from typing import Any

from loguru import logger
from redis import RedisError
from rq import Queue

from phasekeeper.models.events import EventKind, PhaseEvent
from phasekeeper.workers.queue_config import (
    FAILURE_TTL,
    JOB_TIMEOUT,
    RESULT_TTL,
    enqueue_job,
)
from phasekeeper.workers.sink_retry import sink_retry

DELIVER_EVENT_JOB = "phasekeeper.workers.notification_worker.deliver_event"


class QueuedEventEmitter:
    """Enqueue each event as an RQ job consumed by notification workers"""

    def __init__(
        self,
        queue: Queue,
        job_timeout: int = JOB_TIMEOUT,
        result_ttl: int = RESULT_TTL,
        failure_ttl: int = FAILURE_TTL,
    ):
        """
        Initialize emitter.

        Args:
            queue: RQ queue for notification delivery jobs
            job_timeout: Maximum delivery job time in seconds
            result_ttl: Seconds to keep successful results
            failure_ttl: Seconds to keep failed jobs
        """
        self.queue = queue
        self.job_timeout = job_timeout
        self.result_ttl = result_ttl
        self.failure_ttl = failure_ttl

    def emit(self, campaign_id: str, kind: EventKind, payload: dict[str, Any]) -> None:
        event = PhaseEvent(campaign_id=campaign_id, kind=kind, payload=payload)
        try:
            enqueue_job(
                self.queue,
                DELIVER_EVENT_JOB,
                args=(event.model_dump(mode="json"),),
                job_timeout=self.job_timeout,
                result_ttl=self.result_ttl,
                failure_ttl=self.failure_ttl,
            )
        except RedisError as e:
            logger.error(
                f"Dropped {event.kind} event {event.event_id} for campaign {campaign_id}: "
                f"enqueue failed: {e}"
            )


class DirectEventEmitter:
    """
    Deliver events synchronously to an in-process sink callable.

    Used when no RQ worker pool runs (tests, single-process tools). The sink
    is retried on transient errors and any final failure is logged and dropped.
    """

    def __init__(self, sink: Callable[[PhaseEvent], None], attempts: int = 3):
        self.sink = sink
        self._deliver = sink_retry(attempts=attempts, max_wait=2.0)(self._call_sink)

    def _call_sink(self, event: PhaseEvent) -> None:
        self.sink(event)

    def emit(self, campaign_id: str, kind: EventKind, payload: dict[str, Any]) -> None:
        event = PhaseEvent(campaign_id=campaign_id, kind=kind, payload=payload)
        try:
            self._deliver(event)
        except Exception as e:
            logger.error(
                f"Dropped {event.kind} event {event.event_id} for campaign {campaign_id}: "
                f"{type(e).__name__}: {e}"
            )
