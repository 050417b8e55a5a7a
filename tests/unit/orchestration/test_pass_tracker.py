# ABOUTME: Unit tests for PassTracker: set/clear pass, auto-clear on post, expiry auto-pass and summaries.
# ABOUTME: Runs over the in-memory store with fake roster, commitment ledger and recording emitter.

from datetime import timedelta

import pytest

from phasekeeper.models.campaign import CampaignPhase
from phasekeeper.models.events import EventKind
from phasekeeper.orchestration.exceptions import (
    InternalFailure,
    NotInParticipantPhase,
    ParticipantNotFound,
    PendingCommitment,
)
from phasekeeper.storage.base import StorageError

CAMPAIGN_ID = "camp_raptor_01"
ZARA = "char_zara_001"
KADE = "char_kade_002"


class TestSetPass:
    """Test SetPass"""

    def test_set_regular_pass(self, coordinator, participant_phase_campaign, clock, store):
        row = coordinator.set_pass(ZARA)

        assert row.is_passed is True
        assert row.is_hard_pass is False
        assert row.passed_at == clock()
        assert store.get_pass(CAMPAIGN_ID, ZARA) == row

    def test_set_hard_pass(self, coordinator, participant_phase_campaign):
        row = coordinator.set_pass(ZARA, hard_pass=True)

        assert row.is_passed is True
        assert row.is_hard_pass is True

    def test_unknown_participant(self, coordinator, participant_phase_campaign):
        with pytest.raises(ParticipantNotFound):
            coordinator.set_pass("char_ghost_999")

    def test_rejected_in_director_phase(self, coordinator, store):
        coordinator.register_campaign(CAMPAIGN_ID)

        with pytest.raises(NotInParticipantPhase):
            coordinator.set_pass(ZARA)
        assert store.list_passes(CAMPAIGN_ID) == {}

    def test_pending_commitment_blocks_pass(self, coordinator, participant_phase_campaign, commitments, store):
        commitments.pending[ZARA] = 2

        with pytest.raises(PendingCommitment) as exc_info:
            coordinator.set_pass(ZARA)

        assert exc_info.value.pending == 2
        assert exc_info.value.code == "pending_commitment"
        assert store.get_pass(CAMPAIGN_ID, ZARA) is None

    def test_all_passed_emitted_on_edge(self, coordinator, participant_phase_campaign, emitter):
        coordinator.set_pass(ZARA)
        assert emitter.of_kind(EventKind.ALL_PASSED) == []

        coordinator.set_pass(KADE)

        payloads = emitter.of_kind(EventKind.ALL_PASSED)
        assert len(payloads) == 1
        assert payloads[0]["passed_count"] == 2
        assert payloads[0]["total_count"] == 2

    def test_all_passed_not_repeated_without_edge(self, coordinator, participant_phase_campaign, emitter):
        """Re-passing while everyone is already passed is not a new edge"""
        coordinator.set_pass(ZARA)
        coordinator.set_pass(KADE)
        coordinator.set_pass(KADE, hard_pass=True)

        assert len(emitter.of_kind(EventKind.ALL_PASSED)) == 1

    def test_all_passed_does_not_transition(self, coordinator, participant_phase_campaign):
        coordinator.set_pass(ZARA)
        coordinator.set_pass(KADE)

        assert coordinator.get_phase_status(CAMPAIGN_ID).phase == CampaignPhase.PARTICIPANT


class TestClearPass:
    """Test ClearPass"""

    def test_clear_hard_pass(self, coordinator, participant_phase_campaign, store):
        coordinator.set_pass(ZARA, hard_pass=True)

        cleared = coordinator.clear_pass(ZARA)

        assert cleared.is_passed is False
        assert cleared.is_hard_pass is False
        assert cleared.passed_at is None
        assert store.get_pass(CAMPAIGN_ID, ZARA) == cleared

    def test_clear_absent_row_stays_absent(self, coordinator, participant_phase_campaign, store):
        assert coordinator.clear_pass(ZARA) is None
        assert store.get_pass(CAMPAIGN_ID, ZARA) is None

    def test_clear_allowed_in_director_phase(self, coordinator, participant_phase_campaign):
        """Clearing is unconditional"""
        coordinator.set_pass(ZARA)
        coordinator.set_pass(KADE)
        coordinator.transition_phase(CAMPAIGN_ID, "director_phase", "user_gm", is_director=True)

        assert coordinator.clear_pass(ZARA).is_passed is False


class TestAutoClearOnPost:
    """Test the post hook distinguishing regular and hard passes"""

    def test_regular_pass_cleared(self, coordinator, participant_phase_campaign):
        coordinator.set_pass(KADE)

        assert coordinator.auto_clear_on_post(KADE) is True
        assert coordinator.get_pass(KADE).is_passed is False

    def test_hard_pass_untouched(self, coordinator, participant_phase_campaign):
        coordinator.set_pass(ZARA, hard_pass=True)

        assert coordinator.auto_clear_on_post(ZARA) is False
        row = coordinator.get_pass(ZARA)
        assert row.is_passed is True
        assert row.is_hard_pass is True

    def test_no_pass_is_noop(self, coordinator, participant_phase_campaign, store):
        assert coordinator.auto_clear_on_post(ZARA) is False
        assert store.get_pass(CAMPAIGN_ID, ZARA) is None


class TestAutoPassRemaining:
    """Test the gate expiry sweep"""

    def test_skipped_before_expiry(self, coordinator, participant_phase_campaign, clock):
        clock.advance(hours=23)

        assert coordinator.tracker.auto_pass_remaining(CAMPAIGN_ID) is None

    def test_passes_unpassed_as_regular(self, coordinator, participant_phase_campaign, clock, store):
        coordinator.set_pass(ZARA, hard_pass=True)
        clock.advance(hours=24)

        passed = coordinator.tracker.auto_pass_remaining(CAMPAIGN_ID)

        assert passed == [KADE]
        kade = store.get_pass(CAMPAIGN_ID, KADE)
        assert kade.is_passed is True
        assert kade.is_hard_pass is False
        # Existing hard pass untouched
        assert store.get_pass(CAMPAIGN_ID, ZARA).is_hard_pass is True

    def test_runs_once_per_activation(self, coordinator, participant_phase_campaign, clock, store):
        clock.advance(hours=25)
        assert coordinator.tracker.auto_pass_remaining(CAMPAIGN_ID) == [ZARA, KADE]
        assert store.get_campaign(CAMPAIGN_ID).gate_expiry_handled is True

        coordinator.clear_pass(KADE)

        assert coordinator.tracker.auto_pass_remaining(CAMPAIGN_ID) is None
        assert store.get_pass(CAMPAIGN_ID, KADE).is_passed is False

    def test_skips_participants_with_pending_commitments(
        self, coordinator, participant_phase_campaign, clock, commitments
    ):
        commitments.pending[KADE] = 1
        clock.advance(hours=24)

        assert coordinator.tracker.auto_pass_remaining(CAMPAIGN_ID) == [ZARA]

    def test_emits_all_passed_edge(self, coordinator, participant_phase_campaign, clock, emitter):
        clock.advance(hours=24)

        coordinator.tracker.auto_pass_remaining(CAMPAIGN_ID)

        payloads = emitter.of_kind(EventKind.ALL_PASSED)
        assert len(payloads) == 1
        assert payloads[0]["trigger"] == "gate_expired"

    def test_skipped_while_paused(self, coordinator, participant_phase_campaign, clock):
        clock.advance(hours=20)
        coordinator.pause_campaign(CAMPAIGN_ID, "user_gm", is_director=True)
        clock.advance(hours=100)

        assert coordinator.tracker.auto_pass_remaining(CAMPAIGN_ID) is None

    def test_storage_failure_surfaces_internal_failure(
        self, coordinator, participant_phase_campaign, clock, store, monkeypatch
    ):
        clock.advance(hours=24)

        def broken_commit(changes):
            raise StorageError("disk on fire")

        monkeypatch.setattr(store, "commit", broken_commit)

        with pytest.raises(InternalFailure) as exc_info:
            coordinator.tracker.auto_pass_remaining(CAMPAIGN_ID)

        assert exc_info.value.correlation_id
        assert isinstance(exc_info.value.__cause__, StorageError)
        monkeypatch.undo()
        assert store.list_passes(CAMPAIGN_ID) == {}
        assert store.get_campaign(CAMPAIGN_ID).gate_expiry_handled is False


class TestPassSummaryAndRemoval:
    """Test read-side summary and cascade removal"""

    def test_summary_counts(self, coordinator, participant_phase_campaign):
        coordinator.set_pass(ZARA, hard_pass=True)

        summary = coordinator.pass_summary(CAMPAIGN_ID)

        assert summary.passed_count == 1
        assert summary.total_count == 2
        assert summary.all_passed is False
        by_id = {info.participant_id: info for info in summary.participants}
        assert by_id[ZARA].is_hard_pass is True
        assert by_id[KADE].is_passed is False

    def test_summary_excludes_archived(self, coordinator, participant_phase_campaign, roster):
        coordinator.set_pass(ZARA)
        roster.archive(KADE)

        summary = coordinator.pass_summary(CAMPAIGN_ID)

        assert summary.total_count == 1
        assert summary.all_passed is True

    def test_empty_roster_summary(self, coordinator, roster):
        roster.members.clear()
        coordinator.register_campaign("camp_empty")

        summary = coordinator.pass_summary("camp_empty")

        assert summary.total_count == 0
        assert summary.all_passed is True

    def test_remove_participant_deletes_row(self, coordinator, participant_phase_campaign, roster, store):
        coordinator.set_pass(ZARA)
        roster.delete(ZARA)

        assert coordinator.remove_participant(CAMPAIGN_ID, ZARA) is True
        assert store.get_pass(CAMPAIGN_ID, ZARA) is None
        assert coordinator.remove_participant(CAMPAIGN_ID, ZARA) is False

    def test_passed_at_uses_clock(self, coordinator, participant_phase_campaign, clock):
        clock.advance(minutes=42)

        row = coordinator.set_pass(KADE)

        assert row.passed_at == participant_phase_campaign.phase_started_at + timedelta(minutes=42)
