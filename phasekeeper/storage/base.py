# ABOUTME: Store protocol and ChangeSet describing one all-or-nothing campaign mutation.
# ABOUTME: A commit writes campaign fields, pass rows, pass resets and the audit record together.

from dataclasses import dataclass, field
from typing import Protocol

from phasekeeper.models.campaign import Campaign, ParticipantPass, TransitionRecord


class StorageError(Exception):
    """Raised by stores when a read or an atomic commit fails"""

    pass


@dataclass
class ChangeSet:
    """
    Everything one exclusive-scope operation wants to persist.

    Applied as a unit by CampaignStore.commit(): either every part lands or
    none does. reset_passes clears every existing pass row of the campaign
    before pass_upserts are applied.
    """

    campaign_id: str
    campaign: Campaign | None = None
    pass_upserts: list[ParticipantPass] = field(default_factory=list)
    reset_passes: bool = False
    transition: TransitionRecord | None = None

    def is_empty(self) -> bool:
        return (
            self.campaign is None
            and not self.pass_upserts
            and not self.reset_passes
            and self.transition is None
        )


class CampaignStore(Protocol):
    """Persistence for campaigns, sparse pass rows and the transition audit log"""

    def create_campaign(self, campaign: Campaign) -> Campaign:
        ...

    def get_campaign(self, campaign_id: str) -> Campaign | None:
        ...

    def list_campaign_ids(self) -> list[str]:
        ...

    def get_pass(self, campaign_id: str, participant_id: str) -> ParticipantPass | None:
        ...

    def list_passes(self, campaign_id: str) -> dict[str, ParticipantPass]:
        ...

    def delete_pass(self, campaign_id: str, participant_id: str) -> bool:
        ...

    def list_transitions(self, campaign_id: str) -> list[TransitionRecord]:
        ...

    def commit(self, changes: ChangeSet) -> None:
        ...
