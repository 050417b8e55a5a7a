# ABOUTME: In-process campaign store with copy-then-swap commits for single-process deployments and tests.
# ABOUTME: Reads return deep copies so callers can never mutate stored state outside a commit.

import threading

from loguru import logger

from phasekeeper.models.campaign import Campaign, ParticipantPass, TransitionRecord
from phasekeeper.storage.base import ChangeSet, StorageError


class InMemoryCampaignStore:
    """Dictionary-backed CampaignStore"""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._campaigns: dict[str, Campaign] = {}
        self._passes: dict[str, dict[str, ParticipantPass]] = {}
        self._transitions: dict[str, list[TransitionRecord]] = {}

    def create_campaign(self, campaign: Campaign) -> Campaign:
        with self._lock:
            if campaign.campaign_id in self._campaigns:
                raise StorageError(f"Campaign already exists: {campaign.campaign_id}")
            self._campaigns[campaign.campaign_id] = campaign.model_copy(deep=True)
            self._passes[campaign.campaign_id] = {}
            self._transitions[campaign.campaign_id] = []
        logger.debug(f"Created campaign {campaign.campaign_id} in memory store")
        return campaign.model_copy(deep=True)

    def get_campaign(self, campaign_id: str) -> Campaign | None:
        with self._lock:
            campaign = self._campaigns.get(campaign_id)
            return campaign.model_copy(deep=True) if campaign else None

    def list_campaign_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._campaigns)

    def get_pass(self, campaign_id: str, participant_id: str) -> ParticipantPass | None:
        with self._lock:
            row = self._passes.get(campaign_id, {}).get(participant_id)
            return row.model_copy() if row else None

    def list_passes(self, campaign_id: str) -> dict[str, ParticipantPass]:
        with self._lock:
            return {
                participant_id: row.model_copy()
                for participant_id, row in self._passes.get(campaign_id, {}).items()
            }

    def delete_pass(self, campaign_id: str, participant_id: str) -> bool:
        with self._lock:
            return self._passes.get(campaign_id, {}).pop(participant_id, None) is not None

    def list_transitions(self, campaign_id: str) -> list[TransitionRecord]:
        with self._lock:
            return list(self._transitions.get(campaign_id, []))

    def commit(self, changes: ChangeSet) -> None:
        """
        Apply a ChangeSet atomically.

        The new pass table is built on the side and swapped in together with
        the campaign and audit record, so a failure leaves nothing behind.

        Raises:
            StorageError: Unknown campaign or rows belonging to another campaign
        """
        if changes.is_empty():
            return

        with self._lock:
            campaign_id = changes.campaign_id
            if campaign_id not in self._campaigns:
                raise StorageError(f"Cannot commit to unknown campaign: {campaign_id}")

            if changes.campaign is not None and changes.campaign.campaign_id != campaign_id:
                raise StorageError("ChangeSet campaign does not match campaign_id")

            passes = dict(self._passes[campaign_id])
            if changes.reset_passes:
                passes = {pid: row.cleared() for pid, row in passes.items()}

            for row in changes.pass_upserts:
                if row.campaign_id != campaign_id:
                    raise StorageError(
                        f"Pass row for {row.participant_id} belongs to {row.campaign_id}, "
                        f"not {campaign_id}"
                    )
                passes[row.participant_id] = row.model_copy()

            # Swap
            self._passes[campaign_id] = passes
            if changes.campaign is not None:
                self._campaigns[campaign_id] = changes.campaign.model_copy(deep=True)
            if changes.transition is not None:
                self._transitions[campaign_id].append(changes.transition)
