# ABOUTME: Worker module initialization for RQ background event delivery.
# ABOUTME: Exports the delivery job, emitters, queue configuration, and retry utilities.

from phasekeeper.workers.event_emitter import DirectEventEmitter, QueuedEventEmitter
from phasekeeper.workers.notification_worker import deliver_event, push_event
from phasekeeper.workers.queue_config import (
    NOTIFICATION_QUEUE,
    create_redis_connection,
    enqueue_job,
    get_notification_queue,
)
from phasekeeper.workers.sink_retry import sink_retry

__all__ = [
    # Worker functions
    "deliver_event",
    "push_event",
    # Emitters
    "QueuedEventEmitter",
    "DirectEventEmitter",
    # Queue configuration
    "create_redis_connection",
    "get_notification_queue",
    "enqueue_job",
    "NOTIFICATION_QUEUE",
    # Utilities
    "sink_retry",
]
