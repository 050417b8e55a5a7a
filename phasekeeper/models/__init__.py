"""Data models for campaign phase coordination"""

from .campaign import (
    Campaign,
    CampaignPhase,
    ParticipantPass,
    ParticipantPassInfo,
    PassSummary,
    PhaseStatus,
    TransitionReason,
    TransitionRecord,
)
from .events import EventKind, PhaseEvent

__all__ = [
    # Campaign models
    "CampaignPhase",
    "TransitionReason",
    "Campaign",
    "ParticipantPass",
    "TransitionRecord",
    "ParticipantPassInfo",
    "PassSummary",
    "PhaseStatus",
    # Event models
    "EventKind",
    "PhaseEvent",
]
