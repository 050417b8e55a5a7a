# ABOUTME: CampaignCoordinator facade exposing phase, pass and gate commands over one shared wiring.
# ABOUTME: build_coordinator wires Redis storage, distributed locks and RQ event delivery from Settings.

from collections.abc import Callable
from datetime import datetime, timedelta

from loguru import logger
from redis import Redis

from phasekeeper.config.settings import Settings, get_settings
from phasekeeper.models.campaign import (
    Campaign,
    CampaignPhase,
    ParticipantPass,
    PassSummary,
    PhaseStatus,
    TransitionRecord,
)
from phasekeeper.orchestration.campaign_locks import CampaignLockRegistry, RedisLockRegistry
from phasekeeper.orchestration.collaborators import (
    CommitmentLedger,
    EventEmitter,
    NarrativeLockIndex,
    ParticipantRoster,
)
from phasekeeper.orchestration.guards import GuardChain
from phasekeeper.orchestration.pass_tracker import PassTracker
from phasekeeper.orchestration.phase_controller import PhaseController
from phasekeeper.orchestration.scheduler import TimeGateScheduler
from phasekeeper.orchestration.time_gate import utc_now
from phasekeeper.storage.base import CampaignStore
from phasekeeper.storage.redis_collaborators import (
    RedisCommitmentLedger,
    RedisNarrativeLockIndex,
    RedisParticipantRoster,
)
from phasekeeper.storage.redis_store import RedisCampaignStore
from phasekeeper.workers.event_emitter import QueuedEventEmitter
from phasekeeper.workers.queue_config import get_notification_queue


class CampaignCoordinator:
    """
    Single entry point for transports (CLI, HTTP handlers, bots).

    Controller, tracker and scheduler share one store, one lock registry and
    one emitter, so every caller serializes on the same per-campaign scope.
    """

    def __init__(
        self,
        store: CampaignStore,
        roster: ParticipantRoster,
        commitments: CommitmentLedger,
        narrative_locks: NarrativeLockIndex,
        emitter: EventEmitter,
        locks: CampaignLockRegistry,
        guard_chain: GuardChain | None = None,
        now: Callable[[], datetime] = utc_now,
        poll_interval: float = 60.0,
        warning_interval: float = 300.0,
        warning_thresholds_hours: list[int] | None = None,
    ):
        self.store = store
        self.controller = PhaseController(
            store, roster, commitments, narrative_locks, emitter, locks,
            guard_chain=guard_chain, now=now,
        )
        self.tracker = PassTracker(store, roster, commitments, emitter, locks, now=now)
        self.scheduler = TimeGateScheduler(
            store, self.tracker, emitter, locks,
            now=now,
            poll_interval=poll_interval,
            warning_interval=warning_interval,
            warning_thresholds_hours=warning_thresholds_hours or [24, 6, 1],
        )

    # Phase commands

    def register_campaign(
        self, campaign_id: str, title: str = "", gate_duration: str | timedelta | None = None
    ) -> Campaign:
        return self.controller.register_campaign(campaign_id, title, gate_duration)

    def transition_phase(
        self, campaign_id: str, to_phase: CampaignPhase | str, actor_id: str, is_director: bool
    ) -> Campaign:
        return self.controller.transition(campaign_id, to_phase, actor_id, is_director)

    def force_transition(
        self, campaign_id: str, to_phase: CampaignPhase | str, actor_id: str, is_director: bool
    ) -> Campaign:
        return self.controller.force_transition(campaign_id, to_phase, actor_id, is_director)

    def configure_gate(
        self, campaign_id: str, duration: str | timedelta | None, actor_id: str, is_director: bool
    ) -> Campaign:
        return self.controller.configure_gate(campaign_id, duration, actor_id, is_director)

    def pause_campaign(self, campaign_id: str, actor_id: str, is_director: bool) -> Campaign:
        return self.controller.pause_campaign(campaign_id, actor_id, is_director)

    def resume_campaign(self, campaign_id: str, actor_id: str, is_director: bool) -> Campaign:
        return self.controller.resume_campaign(campaign_id, actor_id, is_director)

    # Pass commands

    def set_pass(self, participant_id: str, hard_pass: bool = False) -> ParticipantPass:
        return self.tracker.set_pass(participant_id, hard_pass)

    def clear_pass(self, participant_id: str) -> ParticipantPass | None:
        return self.tracker.clear_pass(participant_id)

    def auto_clear_on_post(self, participant_id: str) -> bool:
        return self.tracker.auto_clear_on_post(participant_id)

    def remove_participant(self, campaign_id: str, participant_id: str) -> bool:
        return self.tracker.remove_participant(campaign_id, participant_id)

    # Queries

    def get_phase_status(self, campaign_id: str) -> PhaseStatus:
        return self.controller.get_phase_status(campaign_id)

    def get_pass(self, participant_id: str) -> ParticipantPass | None:
        return self.tracker.get_pass(participant_id)

    def pass_summary(self, campaign_id: str) -> PassSummary:
        return self.tracker.pass_summary(campaign_id)

    def transition_history(self, campaign_id: str) -> list[TransitionRecord]:
        return self.controller.list_transitions(campaign_id)


def build_coordinator(
    redis_client: Redis,
    settings: Settings | None = None,
    emitter: EventEmitter | None = None,
) -> CampaignCoordinator:
    """
    Wire a coordinator for multi-worker deployments.

    Args:
        redis_client: Redis connection for state, locks and the notification queue
        settings: Settings (uses get_settings() if None)
        emitter: Override for event delivery (default: RQ queue)

    Returns:
        CampaignCoordinator backed by Redis
    """
    settings = settings or get_settings()
    roster = RedisParticipantRoster(redis_client)

    if emitter is None:
        emitter = QueuedEventEmitter(
            get_notification_queue(
                redis_client, settings.notification_queue, default_timeout=settings.event_job_timeout
            ),
            job_timeout=settings.event_job_timeout,
            result_ttl=settings.event_result_ttl,
            failure_ttl=settings.event_failure_ttl,
        )

    coordinator = CampaignCoordinator(
        store=RedisCampaignStore(redis_client),
        roster=roster,
        commitments=RedisCommitmentLedger(redis_client, roster=roster),
        narrative_locks=RedisNarrativeLockIndex(redis_client),
        emitter=emitter,
        locks=RedisLockRegistry(
            redis_client,
            wait_seconds=settings.campaign_lock_wait_seconds,
            ttl_seconds=settings.campaign_lock_ttl_seconds,
        ),
        poll_interval=settings.gate_poll_interval_seconds,
        warning_interval=settings.gate_warning_interval_seconds,
        warning_thresholds_hours=settings.gate_warning_thresholds,
    )
    logger.debug("Campaign coordinator wired with Redis store, locks and notification queue")
    return coordinator
