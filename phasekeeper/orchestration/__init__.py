# ABOUTME: Orchestration layer exports for the campaign phase cycle, pass tracking and time gate.
# ABOUTME: Provides the controller, tracker, scheduler, guard chain and the CampaignCoordinator facade.

from phasekeeper.orchestration.campaign_locks import (
    CampaignLockRegistry,
    InProcessLockRegistry,
    RedisLockRegistry,
    exclusive_scope,
)
from phasekeeper.orchestration.coordinator import CampaignCoordinator, build_coordinator
from phasekeeper.orchestration.exceptions import (
    AlreadyInPhase,
    CampaignNotFound,
    CampaignPaused,
    ConcurrencyTimeout,
    DirectorRequired,
    GuardViolationError,
    InternalFailure,
    InvalidGateDuration,
    InvalidRequest,
    NotInParticipantPhase,
    ParticipantNotFound,
    PendingCommitment,
    PhaseCoordinationError,
)
from phasekeeper.orchestration.guards import GuardChain, GuardReason, build_default_guard_chain
from phasekeeper.orchestration.pass_tracker import PassTracker
from phasekeeper.orchestration.phase_controller import PhaseController
from phasekeeper.orchestration.scheduler import TimeGateScheduler
from phasekeeper.orchestration.time_gate import TIME_GATE_PRESETS

__all__ = [
    # Facade
    "CampaignCoordinator",
    "build_coordinator",
    # Components
    "PhaseController",
    "PassTracker",
    "TimeGateScheduler",
    "GuardChain",
    "GuardReason",
    "build_default_guard_chain",
    "TIME_GATE_PRESETS",
    # Exclusive scope
    "CampaignLockRegistry",
    "InProcessLockRegistry",
    "RedisLockRegistry",
    "exclusive_scope",
    # Errors
    "PhaseCoordinationError",
    "InvalidRequest",
    "AlreadyInPhase",
    "InvalidGateDuration",
    "CampaignNotFound",
    "ParticipantNotFound",
    "NotInParticipantPhase",
    "DirectorRequired",
    "GuardViolationError",
    "CampaignPaused",
    "PendingCommitment",
    "ConcurrencyTimeout",
    "InternalFailure",
]
