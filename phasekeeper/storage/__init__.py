# ABOUTME: Storage layer exports: store protocol, atomic ChangeSet and the in-memory/Redis stores.
# ABOUTME: Also provides Redis read adapters for the roster, commitment and lock collaborators.

from phasekeeper.storage.base import CampaignStore, ChangeSet, StorageError
from phasekeeper.storage.memory_store import InMemoryCampaignStore
from phasekeeper.storage.redis_collaborators import (
    RedisCommitmentLedger,
    RedisNarrativeLockIndex,
    RedisParticipantRoster,
)
from phasekeeper.storage.redis_store import RedisCampaignStore

__all__ = [
    "CampaignStore",
    "ChangeSet",
    "StorageError",
    "InMemoryCampaignStore",
    "RedisCampaignStore",
    "RedisParticipantRoster",
    "RedisCommitmentLedger",
    "RedisNarrativeLockIndex",
]
