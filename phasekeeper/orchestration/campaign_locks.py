# ABOUTME: Per-campaign exclusive execution scope shared by transitions, pass changes and the gate scheduler.
# ABOUTME: In-process mutex registry for single workers, Redis distributed lock for multi-worker deployments.

import threading
import time
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Protocol
from uuid import uuid4

from loguru import logger
from redis import Redis
from redis.exceptions import LockError, RedisError

from phasekeeper.orchestration.exceptions import (
    ConcurrencyTimeout,
    InternalFailure,
    PhaseCoordinationError,
)


class CampaignLockRegistry(Protocol):
    """Hands out one exclusive scope per campaign id"""

    def scope(self, campaign_id: str) -> AbstractContextManager[None]:
        ...


class InProcessLockRegistry:
    """
    Registry of threading.Lock keyed by campaign id.

    Locks are created lazily and kept for the life of the process; a
    campaign's lock object never changes once handed out.
    """

    def __init__(self, wait_seconds: float = 5.0):
        """
        Initialize registry.

        Args:
            wait_seconds: Bounded wait before ConcurrencyTimeout
        """
        self.wait_seconds = wait_seconds
        self._registry_lock = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, campaign_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(campaign_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[campaign_id] = lock
            return lock

    @contextmanager
    def scope(self, campaign_id: str) -> Iterator[None]:
        """
        Hold the campaign's exclusive scope for the duration of the block.

        Raises:
            ConcurrencyTimeout: When the scope is not acquired within wait_seconds
        """
        lock = self._lock_for(campaign_id)
        started = time.monotonic()
        if not lock.acquire(timeout=self.wait_seconds):
            waited = time.monotonic() - started
            logger.warning(f"Timed out waiting {waited:.2f}s for campaign {campaign_id} scope")
            raise ConcurrencyTimeout(campaign_id, waited)
        try:
            yield
        finally:
            lock.release()


class RedisLockRegistry:
    """
    Distributed scope using redis-py's Lock (SET NX PX + token-checked release).

    The ttl bounds how long a crashed holder can block a campaign; it must
    exceed the longest guard evaluation + commit.
    """

    def __init__(self, redis_client: Redis, wait_seconds: float = 5.0, ttl_seconds: float = 30.0):
        """
        Initialize registry.

        Args:
            redis_client: Redis connection shared with the campaign store
            wait_seconds: Bounded wait before ConcurrencyTimeout
            ttl_seconds: Lock expiry protecting against crashed holders
        """
        self.redis = redis_client
        self.wait_seconds = wait_seconds
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def lock_name(campaign_id: str) -> str:
        return f"phasekeeper:lock:campaign:{campaign_id}"

    @contextmanager
    def scope(self, campaign_id: str) -> Iterator[None]:
        """
        Hold the campaign's distributed lock for the duration of the block.

        Raises:
            ConcurrencyTimeout: When the lock is not acquired within wait_seconds
        """
        lock = self.redis.lock(
            self.lock_name(campaign_id),
            timeout=self.ttl_seconds,
            sleep=0.05,
            blocking_timeout=self.wait_seconds,
            thread_local=False,
        )
        started = time.monotonic()
        if not lock.acquire():
            waited = time.monotonic() - started
            logger.warning(f"Timed out waiting {waited:.2f}s for campaign {campaign_id} lock")
            raise ConcurrencyTimeout(campaign_id, waited)
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError as e:
                # Lock expired under us; the commit already happened or failed on its own
                logger.error(f"Campaign {campaign_id} lock expired before release: {e}")
            except RedisError as e:
                logger.error(f"Failed to release campaign {campaign_id} lock: {e}")


@contextmanager
def exclusive_scope(
    locks: CampaignLockRegistry,
    campaign_id: str,
    operation: str,
) -> Iterator[None]:
    """
    Hold a campaign's scope and convert unexpected failures to InternalFailure.

    Coordination errors (guards, pause, validation) pass through unchanged.
    Anything else aborts the uncommitted mutation and is logged with a
    correlation id that is returned to the caller.

    Args:
        locks: Registry handing out the campaign scope
        campaign_id: Campaign to serialize on
        operation: Name of the guarded operation, for logs

    Raises:
        ConcurrencyTimeout: Scope not acquired in time
        InternalFailure: Unexpected error inside the scope
    """
    with locks.scope(campaign_id):
        try:
            yield
        except PhaseCoordinationError:
            raise
        except Exception as e:
            correlation_id = uuid4().hex
            logger.bind(
                correlation_id=correlation_id,
                campaign_id=campaign_id,
                operation=operation,
            ).exception(f"{operation} failed for campaign {campaign_id}: {type(e).__name__}: {e}")
            raise InternalFailure(correlation_id) from e
