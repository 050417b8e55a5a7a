# ABOUTME: PhaseController owning the campaign phase: guarded transitions, time gate configuration and pause.
# ABOUTME: Every mutation runs in the campaign's exclusive scope and commits as one unit; events follow release.

import time
from collections.abc import Callable
from datetime import datetime, timedelta

from loguru import logger

from phasekeeper.models.campaign import (
    Campaign,
    CampaignPhase,
    PhaseStatus,
    TransitionReason,
    TransitionRecord,
)
from phasekeeper.models.events import EventKind
from phasekeeper.orchestration.campaign_locks import CampaignLockRegistry, exclusive_scope
from phasekeeper.orchestration.collaborators import (
    CommitmentLedger,
    EventEmitter,
    NarrativeLockIndex,
    ParticipantRoster,
    emit_best_effort,
)
from phasekeeper.orchestration.exceptions import (
    AlreadyInPhase,
    CampaignNotFound,
    CampaignPaused,
    DirectorRequired,
    GuardViolationError,
    InvalidRequest,
)
from phasekeeper.orchestration.guards import (
    GuardChain,
    GuardSnapshot,
    build_default_guard_chain,
    unpassed_participants,
)
from phasekeeper.orchestration.time_gate import (
    clear_gate,
    gate_elapsed,
    gate_remaining,
    is_gate_expired,
    pause_gate,
    reconfigure_gate,
    resolve_gate_duration,
    resume_gate,
    start_gate,
    utc_now,
)
from phasekeeper.storage.base import CampaignStore, ChangeSet
from phasekeeper.utils.logging import log_gate_event, log_phase_transition


def parse_phase(value: CampaignPhase | str) -> CampaignPhase:
    """
    Accept a CampaignPhase or its value ("director_phase", "participant_phase").

    Raises:
        InvalidRequest: Unknown phase name
    """
    if isinstance(value, CampaignPhase):
        return value
    try:
        return CampaignPhase(value)
    except ValueError as e:
        valid = ", ".join(phase.value for phase in CampaignPhase)
        raise InvalidRequest(f"Unknown phase '{value}'. Valid phases: {valid}") from e


class PhaseController:
    """
    Authoritative owner of a campaign's phase and time gate fields.

    State machine:
        director_phase <-> participant_phase (no terminal state, initial director_phase)

    Transitions are refused while paused, then gated by the guard chain for
    the (from, to) pair. A committed transition writes phase, gate fields,
    pass resets and the audit record together.
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
    ):
        """
        Initialize phase controller.

        Args:
            store: Campaign, pass and audit persistence
            roster: Qualifying participant lookup
            commitments: Pending commitment counts
            narrative_locks: Active narrative-unit lock lookup
            emitter: Notification sink hand-off
            locks: Per-campaign exclusive scope registry
            guard_chain: Guard chains per transition key (default production chain)
            now: Clock returning timezone-aware datetimes
        """
        self.store = store
        self.roster = roster
        self.commitments = commitments
        self.narrative_locks = narrative_locks
        self.emitter = emitter
        self.locks = locks
        self.guard_chain = guard_chain or build_default_guard_chain()
        self.now = now

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_campaign(self, campaign_id: str) -> Campaign:
        campaign = self.store.get_campaign(campaign_id)
        if campaign is None:
            raise CampaignNotFound(campaign_id)
        return campaign

    def _require_director(self, is_director: bool, actor_id: str, campaign_id: str, action: str) -> None:
        if not is_director:
            logger.warning(f"Actor {actor_id} denied {action} on campaign {campaign_id}: not director")
            raise DirectorRequired(f"Only the director may {action} campaign {campaign_id}")

    def snapshot(self, campaign: Campaign) -> GuardSnapshot:
        """Read everything guards look at for one campaign"""
        campaign_id = campaign.campaign_id
        return GuardSnapshot(
            campaign=campaign,
            passes=self.store.list_passes(campaign_id),
            qualifying_participants=self.roster.list_qualifying_participants(campaign_id),
            pending_commitments=self.commitments.count_pending_commitments(campaign_id),
            active_locks=self.narrative_locks.list_active_locks(campaign_id),
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def register_campaign(
        self,
        campaign_id: str,
        title: str = "",
        gate_duration: str | timedelta | None = None,
    ) -> Campaign:
        """
        Create a campaign in director_phase.

        Args:
            campaign_id: New campaign identifier
            title: Display title
            gate_duration: Preset label, explicit duration, or None

        Returns:
            The created campaign

        Raises:
            InvalidRequest: Campaign id already exists or is empty
            InvalidGateDuration: Bad preset or duration
        """
        if not campaign_id:
            raise InvalidRequest("campaign_id must not be empty")
        duration, preset = resolve_gate_duration(gate_duration)
        if self.store.get_campaign(campaign_id) is not None:
            raise InvalidRequest(f"Campaign already exists: {campaign_id}")

        campaign = Campaign(
            campaign_id=campaign_id,
            title=title,
            phase=CampaignPhase.DIRECTOR,
            phase_started_at=self.now(),
            gate_duration=duration,
            gate_preset=preset,
        )
        created = self.store.create_campaign(campaign)
        logger.info(f"Registered campaign {campaign_id} (gate={preset or duration})")
        return created

    def transition(
        self,
        campaign_id: str,
        target_phase: CampaignPhase | str,
        actor_id: str,
        is_director: bool,
    ) -> Campaign:
        """
        Move the campaign to target_phase if every guard allows it.

        Args:
            campaign_id: Campaign to transition
            target_phase: Requested phase (must differ from the current one)
            actor_id: Requesting user
            is_director: Verified director claim for this campaign

        Returns:
            Campaign snapshot after the commit

        Raises:
            InvalidRequest: Unknown phase
            DirectorRequired: Actor is not the director
            AlreadyInPhase: Campaign is already in target_phase
            CampaignNotFound: Unknown campaign
            CampaignPaused: Campaign is paused
            GuardViolationError: First failing guard of the chain
            ConcurrencyTimeout: Campaign scope busy
            InternalFailure: Unexpected storage failure (nothing was written)
        """
        return self._transition(campaign_id, target_phase, actor_id, is_director, forced=False)

    def force_transition(
        self,
        campaign_id: str,
        target_phase: CampaignPhase | str,
        actor_id: str,
        is_director: bool,
    ) -> Campaign:
        """
        Director override that skips the guard chain.

        Same-phase, permission and pause checks still apply; the audit record
        carries reason forced_transition.
        """
        return self._transition(campaign_id, target_phase, actor_id, is_director, forced=True)

    def _transition(
        self,
        campaign_id: str,
        target_phase: CampaignPhase | str,
        actor_id: str,
        is_director: bool,
        forced: bool,
    ) -> Campaign:
        target = parse_phase(target_phase)
        action = "force a transition of" if forced else "transition"
        self._require_director(is_director, actor_id, campaign_id, action)

        current = self._load_campaign(campaign_id)
        if current.phase == target:
            raise AlreadyInPhase(campaign_id, target.value)

        reason = TransitionReason.FORCED_TRANSITION if forced else TransitionReason.DIRECTOR_TRANSITION
        started = time.monotonic()

        with exclusive_scope(self.locks, campaign_id, "transition"):
            campaign = self._load_campaign(campaign_id)
            from_phase = campaign.phase
            if from_phase == target:
                raise AlreadyInPhase(campaign_id, target.value)

            if campaign.is_paused:
                logger.info(f"Transition of campaign {campaign_id} refused: paused")
                raise CampaignPaused(campaign_id)

            if not forced:
                violation = self.guard_chain.evaluate(self.snapshot(campaign), target)
                if violation is not None:
                    logger.info(
                        f"Transition {from_phase.value} -> {target.value} of campaign "
                        f"{campaign_id} blocked by {violation.guard_name}: {violation.message}"
                    )
                    raise GuardViolationError(
                        violation.reason_code, violation.message, violation.guard_name
                    )

            now = self.now()
            updated = campaign.model_copy(update={"phase": target, "phase_started_at": now})
            if target == CampaignPhase.PARTICIPANT:
                updated = start_gate(updated, now)
            else:
                updated = clear_gate(updated)

            record = TransitionRecord(
                campaign_id=campaign_id,
                from_phase=from_phase,
                to_phase=target,
                actor_id=actor_id,
                reason=reason,
                timestamp=now,
            )
            self.store.commit(ChangeSet(
                campaign_id=campaign_id,
                campaign=updated,
                reset_passes=True,
                transition=record,
            ))

        log_phase_transition(
            campaign_id=campaign_id,
            from_phase=from_phase.value,
            to_phase=target.value,
            actor_id=actor_id,
            reason=reason.value,
            duration_ms=(time.monotonic() - started) * 1000,
        )
        if updated.gate_is_counting:
            log_gate_event(campaign_id, "started", remaining=updated.gate_duration)

        emit_best_effort(self.emitter, campaign_id, EventKind.PHASE_TRANSITION, {
            "record_id": record.record_id,
            "from_phase": from_phase.value,
            "to_phase": target.value,
            "actor_id": actor_id,
            "reason": reason.value,
            "gate_duration_seconds": (
                int(updated.gate_duration.total_seconds())
                if updated.gate_is_counting and updated.gate_duration
                else None
            ),
        })
        return updated

    def configure_gate(
        self,
        campaign_id: str,
        duration: str | timedelta | None,
        actor_id: str,
        is_director: bool,
    ) -> Campaign:
        """
        Set, change or disable the campaign's time gate.

        Args:
            campaign_id: Campaign to configure
            duration: Preset ("24h", "2d", "3d", "4d", "5d"), positive timedelta, or None to disable
            actor_id: Requesting user
            is_director: Verified director claim

        Returns:
            Campaign after the change

        Raises:
            InvalidGateDuration: Unknown preset or non-positive duration
            DirectorRequired: Actor is not the director
        """
        resolved, preset = resolve_gate_duration(duration)
        self._require_director(is_director, actor_id, campaign_id, "configure the time gate of")

        with exclusive_scope(self.locks, campaign_id, "configure_gate"):
            campaign = self._load_campaign(campaign_id)
            now = self.now()
            updated = reconfigure_gate(campaign, resolved, preset, now)
            self.store.commit(ChangeSet(campaign_id=campaign_id, campaign=updated))

        log_gate_event(
            campaign_id,
            "configured" if resolved is not None else "disabled",
            remaining=gate_remaining(updated, now),
            preset=preset,
            actor_id=actor_id,
        )
        return updated

    def pause_campaign(self, campaign_id: str, actor_id: str, is_director: bool) -> Campaign:
        """
        Pause the campaign, freezing the time gate and blocking transitions.

        Idempotent: pausing a paused campaign changes nothing.
        """
        self._require_director(is_director, actor_id, campaign_id, "pause")

        with exclusive_scope(self.locks, campaign_id, "pause_campaign"):
            campaign = self._load_campaign(campaign_id)
            if campaign.is_paused:
                return campaign
            now = self.now()
            updated = pause_gate(campaign, now)
            self.store.commit(ChangeSet(campaign_id=campaign_id, campaign=updated))

        log_gate_event(campaign_id, "paused", remaining=gate_remaining(updated, now), actor_id=actor_id)
        return updated

    def resume_campaign(self, campaign_id: str, actor_id: str, is_director: bool) -> Campaign:
        """
        Resume a paused campaign; the gate restarts with its remaining time intact.

        Idempotent: resuming an unpaused campaign changes nothing.
        """
        self._require_director(is_director, actor_id, campaign_id, "resume")

        with exclusive_scope(self.locks, campaign_id, "resume_campaign"):
            campaign = self._load_campaign(campaign_id)
            if not campaign.is_paused:
                return campaign
            now = self.now()
            updated = resume_gate(campaign, now)
            self.store.commit(ChangeSet(campaign_id=campaign_id, campaign=updated))

        log_gate_event(campaign_id, "resumed", remaining=gate_remaining(updated, now), actor_id=actor_id)
        return updated

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_phase_status(self, campaign_id: str) -> PhaseStatus:
        """
        Read-only status including a dry run of the guards for the opposite phase.

        Not taken under the exclusive scope; the result may be stale by the
        time the caller acts on it.
        """
        campaign = self._load_campaign(campaign_id)
        snapshot = self.snapshot(campaign)
        now = self.now()

        remaining = gate_remaining(campaign, now)
        elapsed = gate_elapsed(campaign, now) if remaining is not None else None

        total = len(snapshot.qualifying_participants)
        waiting = unpassed_participants(snapshot.qualifying_participants, snapshot.passes)

        if campaign.is_paused:
            transition_block = CampaignPaused.code
        else:
            violation = self.guard_chain.evaluate(snapshot, campaign.phase.opposite)
            transition_block = violation.reason_code if violation else None

        return PhaseStatus(
            campaign_id=campaign_id,
            phase=campaign.phase,
            phase_started_at=campaign.phase_started_at,
            is_paused=campaign.is_paused,
            gate_duration=campaign.gate_duration,
            gate_preset=campaign.gate_preset,
            gate_elapsed=elapsed,
            gate_remaining=remaining,
            gate_expired=is_gate_expired(campaign, now),
            passed_count=total - len(waiting),
            total_count=total,
            all_passed=not waiting,
            can_transition=transition_block is None,
            transition_block=transition_block,
        )

    def list_transitions(self, campaign_id: str) -> list[TransitionRecord]:
        """Audit log of committed transitions, oldest first"""
        self._load_campaign(campaign_id)
        return self.store.list_transitions(campaign_id)
