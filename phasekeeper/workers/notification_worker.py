# ABOUTME: RQ worker function delivering phase, pass and gate events to the notification sink.
# ABOUTME: Appends each event to the campaign's Redis event list and publishes it on the events channel.

import json
from typing import Any

from loguru import logger
from redis import Redis

EVENTS_CHANNEL = "phasekeeper:events"
EVENT_LIST_MAX = 1000


def event_list_key(campaign_id: str) -> str:
    return f"phasekeeper:campaign:{campaign_id}:events"


def push_event(redis_client: Redis, event: dict[str, Any]) -> int:
    """
    Append an event to its campaign list and publish it.

    The external notification service renders and fans out from either
    the list (catch-up) or the channel (live). Delivery is at-least-once:
    consumers dedupe on event_id.

    Args:
        redis_client: Redis connection
        event: PhaseEvent as a JSON-compatible dict

    Returns:
        Number of live subscribers that received the publish
    """
    payload = json.dumps(event, default=str)
    key = event_list_key(event["campaign_id"])

    pipe = redis_client.pipeline(transaction=True)
    pipe.rpush(key, payload)
    pipe.ltrim(key, -EVENT_LIST_MAX, -1)
    pipe.publish(EVENTS_CHANNEL, payload)
    results = pipe.execute()
    return int(results[-1] or 0)


def deliver_event(event: dict[str, Any]) -> dict[str, Any]:
    """
    RQ worker function: hand one event to the notification sink.

    Worker pattern: imports settings inside function (runs in separate process).
    Transient Redis failures are retried with exponential backoff; a final
    failure fails the job, which RQ keeps for failure_ttl.

    Args:
        event: PhaseEvent.model_dump(mode="json")

    Returns:
        Dict with event_id and subscriber count
    """
    from phasekeeper.config.settings import get_settings
    from phasekeeper.models.events import PhaseEvent
    from phasekeeper.workers.sink_retry import sink_retry

    settings = get_settings()
    validated = PhaseEvent.model_validate(event)
    redis_client = Redis.from_url(settings.redis_url, decode_responses=False)

    @sink_retry(attempts=settings.event_retry_attempts)
    def _deliver() -> int:
        return push_event(redis_client, validated.model_dump(mode="json"))

    try:
        subscribers = _deliver()
    except Exception as e:
        logger.error(
            f"Event {validated.event_id} ({validated.kind}) for campaign "
            f"{validated.campaign_id} could not be delivered: {type(e).__name__}: {e}"
        )
        raise
    finally:
        redis_client.close()

    logger.info(
        f"Delivered {validated.kind} event {validated.event_id} for campaign "
        f"{validated.campaign_id} ({subscribers} live subscriber(s))"
    )
    return {"event_id": validated.event_id, "subscribers": subscribers}
