# ABOUTME: Redis read adapters for roster, commitment and narrative-lock collaborators.
# ABOUTME: The surrounding product writes these keys; the phase coordinator only reads them.

from redis import Redis

from phasekeeper.storage.redis_store import KEY_PREFIX

PARTICIPANT_CAMPAIGN_KEY = f"{KEY_PREFIX}:participant_campaign"


def roster_key(campaign_id: str) -> str:
    return f"{KEY_PREFIX}:campaign:{campaign_id}:roster"


def commitments_key(campaign_id: str) -> str:
    return f"{KEY_PREFIX}:campaign:{campaign_id}:pending_commitments"


def narrative_locks_key(campaign_id: str) -> str:
    return f"{KEY_PREFIX}:campaign:{campaign_id}:narrative_locks"


def _text(raw: bytes | str) -> str:
    return raw.decode("utf-8") if isinstance(raw, bytes) else raw


class RedisParticipantRoster:
    """
    Roster backed by a per-campaign set of qualifying participant ids.

    Archived or orphaned participants are removed from the set by the owning
    service; phasekeeper:participant_campaign maps participant -> campaign.
    """

    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    def list_qualifying_participants(self, campaign_id: str) -> list[str]:
        return sorted(_text(member) for member in self.redis.smembers(roster_key(campaign_id)))

    def campaign_for_participant(self, participant_id: str) -> str | None:
        raw = self.redis.hget(PARTICIPANT_CAMPAIGN_KEY, participant_id)
        return _text(raw) if raw is not None else None


class RedisCommitmentLedger:
    """Pending commitment counts: hash participant_id -> unresolved count"""

    def __init__(self, redis_client: Redis, roster: RedisParticipantRoster | None = None):
        self.redis = redis_client
        self.roster = roster or RedisParticipantRoster(redis_client)

    def count_pending_commitments(self, campaign_id: str) -> int:
        counts = self.redis.hgetall(commitments_key(campaign_id))
        return sum(max(int(_text(value)), 0) for value in counts.values())

    def count_participant_commitments(self, participant_id: str) -> int:
        campaign_id = self.roster.campaign_for_participant(participant_id)
        if campaign_id is None:
            return 0
        raw = self.redis.hget(commitments_key(campaign_id), participant_id)
        return max(int(_text(raw)), 0) if raw is not None else 0


class RedisNarrativeLockIndex:
    """
    Active narrative-unit locks: sorted set lock_id -> expiry epoch seconds.

    Entries past their expiry are treated as released and skipped; pruning
    them is left to the writer so that guard reads never mutate the set.
    """

    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    def list_active_locks(self, campaign_id: str) -> list[str]:
        seconds, _micros = self.redis.time()
        key = narrative_locks_key(campaign_id)
        return [_text(member) for member in self.redis.zrangebyscore(key, f"({seconds}", "+inf")]
