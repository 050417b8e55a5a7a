# ABOUTME: Redis-backed campaign store: JSON campaign records, sparse pass hashes and an append-only audit list.
# ABOUTME: Commits run in a MULTI/EXEC pipeline so phase, gate, pass rows and audit land together.

from loguru import logger
from pydantic import ValidationError
from redis import Redis, RedisError

from phasekeeper.models.campaign import Campaign, ParticipantPass, TransitionRecord
from phasekeeper.storage.base import ChangeSet, StorageError

KEY_PREFIX = "phasekeeper"
CAMPAIGN_INDEX_KEY = f"{KEY_PREFIX}:campaigns"


def campaign_key(campaign_id: str) -> str:
    return f"{KEY_PREFIX}:campaign:{campaign_id}"


def passes_key(campaign_id: str) -> str:
    return f"{KEY_PREFIX}:campaign:{campaign_id}:passes"


def transitions_key(campaign_id: str) -> str:
    return f"{KEY_PREFIX}:campaign:{campaign_id}:transitions"


def _text(raw: bytes | str) -> str:
    return raw.decode("utf-8") if isinstance(raw, bytes) else raw


class RedisCampaignStore:
    """
    CampaignStore persisted in Redis.

    Layout:
    - phasekeeper:campaigns                          set of campaign ids
    - phasekeeper:campaign:{id}                      campaign JSON
    - phasekeeper:campaign:{id}:passes               hash participant_id -> pass JSON (sparse)
    - phasekeeper:campaign:{id}:transitions          list of TransitionRecord JSON (append-only)

    Callers hold the campaign's exclusive scope around read-then-commit
    sequences; the pipeline only guarantees the writes apply as one unit.
    """

    def __init__(self, redis_client: Redis):
        """
        Initialize store.

        Args:
            redis_client: Redis connection for campaign state
        """
        self.redis = redis_client

    def create_campaign(self, campaign: Campaign) -> Campaign:
        # Record and index land together; re-adding an indexed id is a no-op
        try:
            pipe = self.redis.pipeline(transaction=True)
            pipe.set(campaign_key(campaign.campaign_id), campaign.model_dump_json(), nx=True)
            pipe.sadd(CAMPAIGN_INDEX_KEY, campaign.campaign_id)
            created = pipe.execute()[0]
        except RedisError as e:
            raise StorageError(f"Failed to create campaign {campaign.campaign_id}: {e}") from e

        if not created:
            raise StorageError(f"Campaign already exists: {campaign.campaign_id}")

        logger.debug(f"Created campaign {campaign.campaign_id} in Redis")
        return campaign

    def get_campaign(self, campaign_id: str) -> Campaign | None:
        try:
            raw = self.redis.get(campaign_key(campaign_id))
        except RedisError as e:
            raise StorageError(f"Failed to load campaign {campaign_id}: {e}") from e

        if raw is None:
            return None
        try:
            return Campaign.model_validate_json(_text(raw))
        except ValidationError as e:
            raise StorageError(f"Corrupt campaign record {campaign_id}: {e}") from e

    def list_campaign_ids(self) -> list[str]:
        try:
            members = self.redis.smembers(CAMPAIGN_INDEX_KEY)
        except RedisError as e:
            raise StorageError(f"Failed to list campaigns: {e}") from e
        return sorted(_text(member) for member in members)

    def get_pass(self, campaign_id: str, participant_id: str) -> ParticipantPass | None:
        try:
            raw = self.redis.hget(passes_key(campaign_id), participant_id)
        except RedisError as e:
            raise StorageError(f"Failed to load pass {participant_id}: {e}") from e
        return ParticipantPass.model_validate_json(_text(raw)) if raw is not None else None

    def list_passes(self, campaign_id: str) -> dict[str, ParticipantPass]:
        try:
            rows = self.redis.hgetall(passes_key(campaign_id))
        except RedisError as e:
            raise StorageError(f"Failed to load passes for {campaign_id}: {e}") from e
        return {
            _text(participant_id): ParticipantPass.model_validate_json(_text(raw))
            for participant_id, raw in rows.items()
        }

    def delete_pass(self, campaign_id: str, participant_id: str) -> bool:
        try:
            return bool(self.redis.hdel(passes_key(campaign_id), participant_id))
        except RedisError as e:
            raise StorageError(f"Failed to delete pass {participant_id}: {e}") from e

    def list_transitions(self, campaign_id: str) -> list[TransitionRecord]:
        try:
            raw_records = self.redis.lrange(transitions_key(campaign_id), 0, -1)
        except RedisError as e:
            raise StorageError(f"Failed to load transitions for {campaign_id}: {e}") from e
        return [TransitionRecord.model_validate_json(_text(raw)) for raw in raw_records]

    def commit(self, changes: ChangeSet) -> None:
        """
        Apply a ChangeSet in one MULTI/EXEC transaction.

        Raises:
            StorageError: When the campaign is unknown or Redis rejects the transaction
        """
        if changes.is_empty():
            return

        campaign_id = changes.campaign_id
        try:
            if not self.redis.exists(campaign_key(campaign_id)):
                raise StorageError(f"Cannot commit to unknown campaign: {campaign_id}")

            rows: dict[str, str] = {}
            if changes.reset_passes:
                for participant_id, row in self.list_passes(campaign_id).items():
                    rows[participant_id] = row.cleared().model_dump_json()
            for row in changes.pass_upserts:
                if row.campaign_id != campaign_id:
                    raise StorageError(
                        f"Pass row for {row.participant_id} belongs to {row.campaign_id}, "
                        f"not {campaign_id}"
                    )
                rows[row.participant_id] = row.model_dump_json()

            pipe = self.redis.pipeline(transaction=True)
            if changes.campaign is not None:
                pipe.set(campaign_key(campaign_id), changes.campaign.model_dump_json())
            if rows:
                pipe.hset(passes_key(campaign_id), mapping=rows)
            if changes.transition is not None:
                pipe.rpush(transitions_key(campaign_id), changes.transition.model_dump_json())
            pipe.execute()

        except RedisError as e:
            logger.error(f"Redis commit failed for campaign {campaign_id}: {e}")
            raise StorageError(f"Commit failed for campaign {campaign_id}: {e}") from e

        logger.debug(
            f"Committed campaign {campaign_id}: campaign={changes.campaign is not None}, "
            f"pass_rows={len(rows)}, transition={changes.transition is not None}"
        )
