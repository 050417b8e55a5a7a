# ABOUTME: Transition guard chain: named, ordered, side-effect-free predicates over a campaign snapshot.
# ABOUTME: Chains are keyed by (from_phase, to_phase); the first violation wins and is deterministic.

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from phasekeeper.models.campaign import Campaign, CampaignPhase, ParticipantPass


class GuardReason(str, Enum):
    """Reason codes reported by guard violations, one per guard"""
    NOT_ALL_PASSED = "not_all_passed"
    PENDING_COMMITMENTS = "pending_commitments"
    ACTIVE_NARRATIVE_LOCKS = "active_narrative_locks"


@dataclass(frozen=True)
class GuardSnapshot:
    """Consistent read of everything guards may look at, taken inside the exclusive scope"""

    campaign: Campaign
    passes: dict[str, ParticipantPass]
    qualifying_participants: list[str]
    pending_commitments: int
    active_locks: list[str]


@dataclass(frozen=True)
class GuardViolation:
    """A guard's refusal, with a reason code distinct per guard"""

    guard_name: str
    reason_code: str
    message: str


@dataclass(frozen=True)
class Guard:
    """A named predicate; check returns None when satisfied"""

    name: str
    check: Callable[[GuardSnapshot], GuardViolation | None]

    def __call__(self, snapshot: GuardSnapshot) -> GuardViolation | None:
        return self.check(snapshot)


def unpassed_participants(
    qualifying_participants: list[str],
    passes: dict[str, ParticipantPass],
) -> list[str]:
    """Qualifying participants without a pass (absent row = never passed)"""
    return [
        participant_id for participant_id in qualifying_participants
        if not (participant_id in passes and passes[participant_id].is_passed)
    ]


def all_participants_passed(
    qualifying_participants: list[str],
    passes: dict[str, ParticipantPass],
) -> bool:
    """Vacuously true when the campaign has no qualifying participants"""
    return not unpassed_participants(qualifying_participants, passes)


def _check_all_passed(snapshot: GuardSnapshot) -> GuardViolation | None:
    waiting = unpassed_participants(snapshot.qualifying_participants, snapshot.passes)
    if not waiting:
        return None
    return GuardViolation(
        guard_name="all_participants_passed",
        reason_code=GuardReason.NOT_ALL_PASSED.value,
        message=(
            f"Not all participants have passed "
            f"({len(snapshot.qualifying_participants) - len(waiting)}"
            f"/{len(snapshot.qualifying_participants)} passed)"
        ),
    )


def _check_no_pending_commitments(snapshot: GuardSnapshot) -> GuardViolation | None:
    if snapshot.pending_commitments <= 0:
        return None
    return GuardViolation(
        guard_name="no_pending_commitments",
        reason_code=GuardReason.PENDING_COMMITMENTS.value,
        message=f"There are {snapshot.pending_commitments} pending commitment(s) to resolve",
    )


def _check_no_active_locks(snapshot: GuardSnapshot) -> GuardViolation | None:
    if not snapshot.active_locks:
        return None
    return GuardViolation(
        guard_name="no_active_narrative_locks",
        reason_code=GuardReason.ACTIVE_NARRATIVE_LOCKS.value,
        message=f"Participants are still composing ({len(snapshot.active_locks)} active lock(s))",
    )


ALL_PARTICIPANTS_PASSED = Guard("all_participants_passed", _check_all_passed)
NO_PENDING_COMMITMENTS = Guard("no_pending_commitments", _check_no_pending_commitments)
NO_ACTIVE_NARRATIVE_LOCKS = Guard("no_active_narrative_locks", _check_no_active_locks)


TransitionKey = tuple[CampaignPhase, CampaignPhase]


@dataclass(frozen=True)
class GuardChain:
    """Fixed ordered guard lists per transition key"""

    chains: dict[TransitionKey, tuple[Guard, ...]] = field(default_factory=dict)

    def guards_for(self, from_phase: CampaignPhase, to_phase: CampaignPhase) -> tuple[Guard, ...]:
        return self.chains.get((from_phase, to_phase), ())

    def evaluate(self, snapshot: GuardSnapshot, to_phase: CampaignPhase) -> GuardViolation | None:
        """
        Run the chain for (snapshot phase -> to_phase), short-circuiting on the first violation.

        Args:
            snapshot: Consistent campaign snapshot
            to_phase: Requested target phase

        Returns:
            First violation in chain order, or None when every guard passes
        """
        for guard in self.guards_for(snapshot.campaign.phase, to_phase):
            violation = guard(snapshot)
            if violation is not None:
                return violation
        return None


def build_default_guard_chain() -> GuardChain:
    """
    Compose the production chains.

    director -> participant is always permitted; participant -> director
    requires, in order: all passed, no pending commitments, no active locks.
    """
    return GuardChain(chains={
        (CampaignPhase.DIRECTOR, CampaignPhase.PARTICIPANT): (),
        (CampaignPhase.PARTICIPANT, CampaignPhase.DIRECTOR): (
            ALL_PARTICIPANTS_PASSED,
            NO_PENDING_COMMITMENTS,
            NO_ACTIVE_NARRATIVE_LOCKS,
        ),
    })
