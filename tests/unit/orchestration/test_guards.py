# ABOUTME: Unit tests for the transition guard chain.
# ABOUTME: Verifies guard order, first-violation-wins, vacuous truth and determinism.

from datetime import datetime, timezone

import pytest

from phasekeeper.models.campaign import Campaign, CampaignPhase, ParticipantPass
from phasekeeper.orchestration.guards import (
    ALL_PARTICIPANTS_PASSED,
    NO_ACTIVE_NARRATIVE_LOCKS,
    NO_PENDING_COMMITMENTS,
    Guard,
    GuardChain,
    GuardReason,
    GuardSnapshot,
    GuardViolation,
    all_participants_passed,
    build_default_guard_chain,
    unpassed_participants,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def passed(participant_id: str, hard: bool = False) -> ParticipantPass:
    return ParticipantPass(
        campaign_id="camp_01",
        participant_id=participant_id,
        is_passed=True,
        is_hard_pass=hard,
        passed_at=NOW,
    )


def snapshot(
    phase: CampaignPhase = CampaignPhase.PARTICIPANT,
    passes: dict[str, ParticipantPass] | None = None,
    qualifying: list[str] | None = None,
    pending: int = 0,
    active_locks: list[str] | None = None,
) -> GuardSnapshot:
    return GuardSnapshot(
        campaign=Campaign(campaign_id="camp_01", phase=phase),
        passes=passes or {},
        qualifying_participants=qualifying if qualifying is not None else ["p1", "p2"],
        pending_commitments=pending,
        active_locks=active_locks or [],
    )


class TestPassAggregate:
    """Test the all-passed helpers"""

    def test_absent_row_means_not_passed(self):
        assert unpassed_participants(["p1", "p2"], {"p1": passed("p1")}) == ["p2"]

    def test_cleared_row_means_not_passed(self):
        passes = {"p1": passed("p1").cleared(), "p2": passed("p2")}

        assert unpassed_participants(["p1", "p2"], passes) == ["p1"]

    def test_empty_roster_is_vacuously_all_passed(self):
        assert all_participants_passed([], {}) is True

    def test_rows_for_non_qualifying_participants_are_ignored(self):
        """Archived participants keep their row but no longer count"""
        passes = {"p1": passed("p1"), "archived": passed("archived")}

        assert all_participants_passed(["p1"], passes) is True
        assert all_participants_passed(["p1", "p2"], passes) is False


class TestIndividualGuards:
    """Test each production guard in isolation"""

    def test_all_passed_guard(self):
        violation = ALL_PARTICIPANTS_PASSED(snapshot(passes={"p1": passed("p1")}))

        assert violation.reason_code == GuardReason.NOT_ALL_PASSED.value
        assert violation.guard_name == "all_participants_passed"
        assert "1/2" in violation.message

    def test_all_passed_guard_satisfied(self):
        assert ALL_PARTICIPANTS_PASSED(snapshot(passes={"p1": passed("p1"), "p2": passed("p2", hard=True)})) is None

    def test_pending_commitments_guard(self):
        violation = NO_PENDING_COMMITMENTS(snapshot(pending=2))

        assert violation.reason_code == "pending_commitments"
        assert "2 pending" in violation.message

    def test_active_locks_guard(self):
        violation = NO_ACTIVE_NARRATIVE_LOCKS(snapshot(active_locks=["scene_bridge"]))

        assert violation.reason_code == "active_narrative_locks"

    def test_reason_codes_are_distinct(self):
        codes = {reason.value for reason in GuardReason}

        assert len(codes) == 3


class TestDefaultGuardChain:
    """Test chain composition and evaluation order"""

    @pytest.fixture
    def chain(self) -> GuardChain:
        return build_default_guard_chain()

    def test_director_to_participant_has_no_guards(self, chain):
        """director -> participant is always permitted"""
        blocked_everywhere = snapshot(
            phase=CampaignPhase.DIRECTOR, pending=5, active_locks=["scene_1"]
        )

        assert chain.guards_for(CampaignPhase.DIRECTOR, CampaignPhase.PARTICIPANT) == ()
        assert chain.evaluate(blocked_everywhere, CampaignPhase.PARTICIPANT) is None

    def test_participant_to_director_order(self, chain):
        names = [g.name for g in chain.guards_for(CampaignPhase.PARTICIPANT, CampaignPhase.DIRECTOR)]

        assert names == ["all_participants_passed", "no_pending_commitments", "no_active_narrative_locks"]

    def test_first_violation_wins(self, chain):
        """With every guard failing, the pass guard is reported"""
        state = snapshot(pending=3, active_locks=["scene_1"])

        violation = chain.evaluate(state, CampaignPhase.DIRECTOR)

        assert violation.reason_code == "not_all_passed"

    def test_second_guard_reported_when_first_passes(self, chain):
        state = snapshot(
            passes={"p1": passed("p1"), "p2": passed("p2")}, pending=1, active_locks=["scene_1"]
        )

        assert chain.evaluate(state, CampaignPhase.DIRECTOR).reason_code == "pending_commitments"

    def test_third_guard(self, chain):
        state = snapshot(passes={"p1": passed("p1"), "p2": passed("p2")}, active_locks=["scene_1"])

        assert chain.evaluate(state, CampaignPhase.DIRECTOR).reason_code == "active_narrative_locks"

    def test_all_guards_pass(self, chain):
        state = snapshot(passes={"p1": passed("p1"), "p2": passed("p2")})

        assert chain.evaluate(state, CampaignPhase.DIRECTOR) is None

    def test_empty_roster_transitions_without_passes(self, chain):
        assert chain.evaluate(snapshot(qualifying=[]), CampaignPhase.DIRECTOR) is None

    def test_evaluation_is_deterministic(self, chain):
        state = snapshot(passes={"p2": passed("p2")}, pending=1)

        results = {chain.evaluate(state, CampaignPhase.DIRECTOR) for _ in range(20)}

        assert len(results) == 1

    def test_unknown_key_has_empty_chain(self, chain):
        assert chain.guards_for(CampaignPhase.DIRECTOR, CampaignPhase.DIRECTOR) == ()


class TestCustomChain:
    """Test chains composed from custom guards"""

    def test_short_circuits_after_first_violation(self):
        calls = []

        def failing(state):
            calls.append("failing")
            return GuardViolation("failing", "custom_block", "blocked")

        def never_reached(state):
            calls.append("never_reached")
            return None

        chain = GuardChain(chains={
            (CampaignPhase.PARTICIPANT, CampaignPhase.DIRECTOR): (
                Guard("failing", failing),
                Guard("never_reached", never_reached),
            ),
        })

        violation = chain.evaluate(snapshot(), CampaignPhase.DIRECTOR)

        assert violation.reason_code == "custom_block"
        assert calls == ["failing"]
