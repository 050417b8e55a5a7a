# ABOUTME: PassTracker managing per-participant readiness (pass / hard pass) to leave participant phase.
# ABOUTME: Handles manual passes, auto-clear on post, the gate expiry auto-pass sweep and pass summaries.

from collections.abc import Callable
from datetime import datetime

from loguru import logger

from phasekeeper.models.campaign import (
    Campaign,
    CampaignPhase,
    ParticipantPass,
    ParticipantPassInfo,
    PassSummary,
)
from phasekeeper.models.events import EventKind
from phasekeeper.orchestration.campaign_locks import CampaignLockRegistry, exclusive_scope
from phasekeeper.orchestration.collaborators import (
    CommitmentLedger,
    EventEmitter,
    ParticipantRoster,
    emit_best_effort,
)
from phasekeeper.orchestration.exceptions import (
    CampaignNotFound,
    NotInParticipantPhase,
    ParticipantNotFound,
    PendingCommitment,
)
from phasekeeper.orchestration.guards import all_participants_passed, unpassed_participants
from phasekeeper.orchestration.time_gate import is_gate_expired, utc_now
from phasekeeper.storage.base import CampaignStore, ChangeSet
from phasekeeper.utils.logging import log_pass_event


class PassTracker:
    """
    Per-participant pass state, serialized on the campaign's exclusive scope.

    Pass rows are sparse: a participant without a row has never passed.
    The tracker never changes the campaign phase; an all-passed edge is only
    announced to the notification sink.
    """

    def __init__(
        self,
        store: CampaignStore,
        roster: ParticipantRoster,
        commitments: CommitmentLedger,
        emitter: EventEmitter,
        locks: CampaignLockRegistry,
        now: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize pass tracker.

        Args:
            store: Campaign, pass and audit persistence
            roster: Qualifying participant lookup
            commitments: Pending commitment counts
            emitter: Notification sink hand-off
            locks: Per-campaign exclusive scope registry
            now: Clock returning timezone-aware datetimes
        """
        self.store = store
        self.roster = roster
        self.commitments = commitments
        self.emitter = emitter
        self.locks = locks
        self.now = now

    def _campaign_for(self, participant_id: str) -> str:
        campaign_id = self.roster.campaign_for_participant(participant_id)
        if campaign_id is None:
            raise ParticipantNotFound(participant_id)
        return campaign_id

    def _load_campaign(self, campaign_id: str) -> Campaign:
        campaign = self.store.get_campaign(campaign_id)
        if campaign is None:
            raise CampaignNotFound(campaign_id)
        return campaign

    def _emit_all_passed(self, campaign_id: str, total: int, trigger: str) -> None:
        logger.info(f"All {total} participant(s) of campaign {campaign_id} have passed ({trigger})")
        emit_best_effort(
            self.emitter,
            campaign_id,
            EventKind.ALL_PASSED,
            {"passed_count": total, "total_count": total, "trigger": trigger},
        )

    def set_pass(self, participant_id: str, hard_pass: bool = False) -> ParticipantPass:
        """
        Mark a participant as ready to leave participant phase.

        Args:
            participant_id: Participant passing
            hard_pass: Survives the participant's own posts until cleared

        Returns:
            The stored pass row

        Raises:
            ParticipantNotFound: Participant is not on any campaign roster
            NotInParticipantPhase: Campaign is in director phase
            PendingCommitment: Participant has unresolved commitments
            ConcurrencyTimeout: Campaign scope busy
        """
        campaign_id = self._campaign_for(participant_id)

        with exclusive_scope(self.locks, campaign_id, "set_pass"):
            campaign = self._load_campaign(campaign_id)
            if campaign.phase != CampaignPhase.PARTICIPANT:
                raise NotInParticipantPhase(
                    f"Campaign {campaign_id} is in {campaign.phase.value}; passing is only "
                    f"possible during participant_phase"
                )

            pending = self.commitments.count_participant_commitments(participant_id)
            if pending > 0:
                logger.info(
                    f"Pass refused for {participant_id}: {pending} pending commitment(s)"
                )
                raise PendingCommitment(participant_id, pending)

            qualifying = self.roster.list_qualifying_participants(campaign_id)
            passes = self.store.list_passes(campaign_id)
            was_all_passed = all_participants_passed(qualifying, passes)

            row = ParticipantPass(
                campaign_id=campaign_id,
                participant_id=participant_id,
                is_passed=True,
                is_hard_pass=hard_pass,
                passed_at=self.now(),
            )
            self.store.commit(ChangeSet(campaign_id=campaign_id, pass_upserts=[row]))

            passes[participant_id] = row
            all_passed_edge = not was_all_passed and all_participants_passed(qualifying, passes)

        log_pass_event(campaign_id, participant_id, "set", hard_pass=hard_pass)
        if all_passed_edge:
            self._emit_all_passed(campaign_id, len(qualifying), trigger="set_pass")
        return row

    def clear_pass(self, participant_id: str) -> ParticipantPass | None:
        """
        Reset a participant's pass, hard or not.

        Returns:
            The cleared row, or None when the participant never passed
        """
        campaign_id = self._campaign_for(participant_id)

        with exclusive_scope(self.locks, campaign_id, "clear_pass"):
            row = self.store.get_pass(campaign_id, participant_id)
            if row is None:
                return None
            cleared = row.cleared()
            self.store.commit(ChangeSet(campaign_id=campaign_id, pass_upserts=[cleared]))

        log_pass_event(campaign_id, participant_id, "clear")
        return cleared

    def auto_clear_on_post(self, participant_id: str) -> bool:
        """
        Drop a regular pass when its participant posts content.

        A hard pass means "done, do not disturb" and is left untouched.

        Returns:
            True when a pass was cleared
        """
        campaign_id = self._campaign_for(participant_id)

        with exclusive_scope(self.locks, campaign_id, "auto_clear_on_post"):
            row = self.store.get_pass(campaign_id, participant_id)
            if row is None or not row.is_passed or row.is_hard_pass:
                return False
            self.store.commit(ChangeSet(campaign_id=campaign_id, pass_upserts=[row.cleared()]))

        log_pass_event(campaign_id, participant_id, "auto_clear")
        return True

    def auto_pass_remaining(self, campaign_id: str) -> list[str] | None:
        """
        Gate expiry sweep: regular-pass every qualifying participant still waiting.

        Expiry is re-validated inside the scope, so a transition or resume
        that won the race turns the sweep into a no-op. Participants with
        pending commitments are skipped. The sweep runs at most once per
        gate activation.

        Args:
            campaign_id: Campaign whose gate expired

        Returns:
            Participant ids that were auto-passed, or None if the sweep was skipped
        """
        with exclusive_scope(self.locks, campaign_id, "auto_pass_remaining"):
            campaign = self._load_campaign(campaign_id)
            now = self.now()
            if (
                campaign.phase != CampaignPhase.PARTICIPANT
                or campaign.is_paused
                or campaign.gate_expiry_handled
                or not is_gate_expired(campaign, now)
            ):
                return None

            qualifying = self.roster.list_qualifying_participants(campaign_id)
            passes = self.store.list_passes(campaign_id)
            was_all_passed = all_participants_passed(qualifying, passes)

            rows: list[ParticipantPass] = []
            skipped: list[str] = []
            for participant_id in unpassed_participants(qualifying, passes):
                if self.commitments.count_participant_commitments(participant_id) > 0:
                    skipped.append(participant_id)
                    continue
                rows.append(ParticipantPass(
                    campaign_id=campaign_id,
                    participant_id=participant_id,
                    is_passed=True,
                    is_hard_pass=False,
                    passed_at=now,
                ))

            handled = campaign.model_copy(update={"gate_expiry_handled": True})
            self.store.commit(ChangeSet(
                campaign_id=campaign_id,
                campaign=handled,
                pass_upserts=rows,
            ))

            for row in rows:
                passes[row.participant_id] = row
            all_passed_edge = not was_all_passed and all_participants_passed(qualifying, passes)

        for row in rows:
            log_pass_event(campaign_id, row.participant_id, "auto_pass")
        if skipped:
            logger.warning(
                f"Gate expiry for campaign {campaign_id} skipped {len(skipped)} participant(s) "
                f"with pending commitments: {skipped}"
            )
        if all_passed_edge:
            self._emit_all_passed(campaign_id, len(qualifying), trigger="gate_expired")
        return [row.participant_id for row in rows]

    def get_pass(self, participant_id: str) -> ParticipantPass | None:
        campaign_id = self._campaign_for(participant_id)
        return self.store.get_pass(campaign_id, participant_id)

    def pass_summary(self, campaign_id: str) -> PassSummary:
        """Passed/total counts over qualifying participants with per-participant state"""
        self._load_campaign(campaign_id)
        qualifying = self.roster.list_qualifying_participants(campaign_id)
        passes = self.store.list_passes(campaign_id)

        participants = []
        for participant_id in qualifying:
            row = passes.get(participant_id)
            participants.append(ParticipantPassInfo(
                participant_id=participant_id,
                is_passed=bool(row and row.is_passed),
                is_hard_pass=bool(row and row.is_hard_pass),
                passed_at=row.passed_at if row else None,
            ))

        passed_count = sum(1 for info in participants if info.is_passed)
        return PassSummary(
            campaign_id=campaign_id,
            passed_count=passed_count,
            total_count=len(qualifying),
            all_passed=passed_count == len(qualifying),
            participants=participants,
        )

    def remove_participant(self, campaign_id: str, participant_id: str) -> bool:
        """
        Cascade-delete a participant's pass row after the participant entity is deleted.

        Takes the campaign id explicitly because the roster may already have
        forgotten the participant.
        """
        with exclusive_scope(self.locks, campaign_id, "remove_participant"):
            removed = self.store.delete_pass(campaign_id, participant_id)
        if removed:
            log_pass_event(campaign_id, participant_id, "removed")
        return removed
