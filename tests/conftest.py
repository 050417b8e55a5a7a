# ABOUTME: Shared pytest fixtures for all test modules (unit, integration, contract).
# ABOUTME: Provides a controllable clock, fake collaborators, a recording emitter and mock Redis clients.

from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import MagicMock

import pytest

from phasekeeper.models.campaign import Campaign, CampaignPhase, ParticipantPass
from phasekeeper.models.events import EventKind
from phasekeeper.orchestration.campaign_locks import InProcessLockRegistry
from phasekeeper.orchestration.coordinator import CampaignCoordinator
from phasekeeper.storage.memory_store import InMemoryCampaignStore

CAMPAIGN_ID = "camp_raptor_01"
START_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# --- Test doubles ---

class FrozenClock:
    """Clock that only moves when told to"""

    def __init__(self, start: datetime = START_TIME):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class FakeRoster:
    """In-memory ParticipantRoster; archived participants are dropped from the qualifying list"""

    def __init__(self):
        self.members: dict[str, list[str]] = {}
        self.archived: set[str] = set()

    def add(self, campaign_id: str, *participant_ids: str) -> None:
        self.members.setdefault(campaign_id, []).extend(participant_ids)

    def archive(self, participant_id: str) -> None:
        self.archived.add(participant_id)

    def delete(self, participant_id: str) -> None:
        for members in self.members.values():
            if participant_id in members:
                members.remove(participant_id)

    def list_qualifying_participants(self, campaign_id: str) -> list[str]:
        return [pid for pid in self.members.get(campaign_id, []) if pid not in self.archived]

    def campaign_for_participant(self, participant_id: str) -> str | None:
        for campaign_id, members in self.members.items():
            if participant_id in members:
                return campaign_id
        return None


class FakeCommitmentLedger:
    """Pending commitments per participant, summed per campaign through the roster"""

    def __init__(self, roster: FakeRoster):
        self.roster = roster
        self.pending: dict[str, int] = {}

    def count_pending_commitments(self, campaign_id: str) -> int:
        return sum(self.pending.get(pid, 0) for pid in self.roster.members.get(campaign_id, []))

    def count_participant_commitments(self, participant_id: str) -> int:
        return self.pending.get(participant_id, 0)


class FakeNarrativeLockIndex:
    def __init__(self):
        self.locks: dict[str, list[str]] = {}

    def list_active_locks(self, campaign_id: str) -> list[str]:
        return list(self.locks.get(campaign_id, []))


class RecordingEmitter:
    """EventEmitter capturing every emitted event in order"""

    def __init__(self):
        self.events: list[tuple[str, EventKind, dict[str, Any]]] = []

    def emit(self, campaign_id: str, kind: EventKind, payload: dict[str, Any]) -> None:
        self.events.append((campaign_id, kind, payload))

    def kinds(self) -> list[EventKind]:
        return [kind for _, kind, _ in self.events]

    def of_kind(self, kind: EventKind) -> list[dict[str, Any]]:
        return [payload for _, event_kind, payload in self.events if event_kind == kind]


# --- Core fixtures ---

@pytest.fixture
def clock() -> FrozenClock:
    """Controllable UTC clock starting at START_TIME"""
    return FrozenClock()


@pytest.fixture
def store() -> InMemoryCampaignStore:
    return InMemoryCampaignStore()


@pytest.fixture
def roster() -> FakeRoster:
    """Roster with two qualifying participants in CAMPAIGN_ID"""
    fake = FakeRoster()
    fake.add(CAMPAIGN_ID, "char_zara_001", "char_kade_002")
    return fake


@pytest.fixture
def commitments(roster) -> FakeCommitmentLedger:
    return FakeCommitmentLedger(roster)


@pytest.fixture
def narrative_locks() -> FakeNarrativeLockIndex:
    return FakeNarrativeLockIndex()


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def locks() -> InProcessLockRegistry:
    return InProcessLockRegistry(wait_seconds=1.0)


@pytest.fixture
def coordinator(store, roster, commitments, narrative_locks, emitter, locks, clock) -> CampaignCoordinator:
    """Coordinator wired over the in-memory store and fakes"""
    return CampaignCoordinator(
        store=store,
        roster=roster,
        commitments=commitments,
        narrative_locks=narrative_locks,
        emitter=emitter,
        locks=locks,
        now=clock,
        poll_interval=0.01,
        warning_interval=0.0,
    )


@pytest.fixture
def participant_phase_campaign(coordinator, emitter) -> Campaign:
    """CAMPAIGN_ID with a 24h gate, already in participant phase; emitted events cleared"""
    coordinator.register_campaign(CAMPAIGN_ID, title="Voyage of the Raptor", gate_duration="24h")
    campaign = coordinator.transition_phase(
        CAMPAIGN_ID, CampaignPhase.PARTICIPANT, "user_gm", is_director=True
    )
    emitter.events.clear()
    return campaign


@pytest.fixture
def make_pass():
    """Factory fixture for pass rows"""
    def _make_pass(participant_id: str, hard: bool = False, campaign_id: str = CAMPAIGN_ID) -> ParticipantPass:
        return ParticipantPass(
            campaign_id=campaign_id,
            participant_id=participant_id,
            is_passed=True,
            is_hard_pass=hard,
            passed_at=START_TIME,
        )
    return _make_pass


# --- Redis fixtures ---

@pytest.fixture
def mock_redis_client():
    """Mock Redis client for campaign state, collaborators and queues"""
    redis = MagicMock()

    # Mock basic Redis operations
    redis.get = MagicMock(return_value=None)
    redis.set = MagicMock(return_value=True)
    redis.exists = MagicMock(return_value=1)
    redis.sadd = MagicMock(return_value=1)
    redis.smembers = MagicMock(return_value=set())
    redis.hget = MagicMock(return_value=None)
    redis.hgetall = MagicMock(return_value={})
    redis.hdel = MagicMock(return_value=1)
    redis.lrange = MagicMock(return_value=[])
    redis.rpush = MagicMock(return_value=1)

    # Transactional pipeline
    pipe = MagicMock()
    pipe.execute = MagicMock(return_value=[True, 1, 1])
    redis.pipeline = MagicMock(return_value=pipe)

    return redis
