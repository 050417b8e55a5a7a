# ABOUTME: Pydantic models for campaign phase state, participant passes and the transition audit log.
# ABOUTME: Defines the two-phase cycle, gate bookkeeping fields and read-side status/summary shapes.

from datetime import datetime, timedelta
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


class CampaignPhase(str, Enum):
    """The two states of the campaign-wide turn cycle"""
    DIRECTOR = "director_phase"
    PARTICIPANT = "participant_phase"

    @property
    def opposite(self) -> "CampaignPhase":
        if self is CampaignPhase.DIRECTOR:
            return CampaignPhase.PARTICIPANT
        return CampaignPhase.DIRECTOR


class TransitionReason(str, Enum):
    """Audit reason codes for committed transitions"""
    DIRECTOR_TRANSITION = "director_transition"
    FORCED_TRANSITION = "forced_transition"


class Campaign(BaseModel):
    """
    Campaign aggregate owned by the phase controller.

    Gate clock is an accumulator plus a nullable "counting since" timestamp:
    elapsed = gate_elapsed_accumulated + (now - gate_started_at).
    """

    campaign_id: str = Field(min_length=1)
    title: str = ""
    phase: CampaignPhase = CampaignPhase.DIRECTOR
    phase_started_at: datetime | None = None
    is_paused: bool = False

    # Time gate configuration
    gate_duration: timedelta | None = Field(
        default=None,
        description="Countdown length for participant phase (None = disabled)"
    )
    gate_preset: str | None = Field(
        default=None,
        description="Preset label the duration came from, if any"
    )

    # Time gate runtime
    gate_started_at: datetime | None = Field(
        default=None,
        description="Set only while the gate is counting"
    )
    gate_elapsed_accumulated: timedelta = Field(
        default=timedelta(0),
        description="Elapsed time folded in by pauses"
    )
    gate_warnings_sent: list[int] = Field(
        default_factory=list,
        description="Warning thresholds (hours) already announced this activation"
    )
    gate_expiry_handled: bool = Field(
        default=False,
        description="Expiry auto-pass sweep already ran this activation"
    )

    @model_validator(mode="after")
    def _gate_counts_only_when_active(self) -> "Campaign":
        if self.gate_started_at is not None and not self.gate_should_count:
            raise ValueError(
                "gate_started_at may only be set in an unpaused participant phase "
                "with a configured gate duration"
            )
        if self.gate_duration is not None and self.gate_duration <= timedelta(0):
            raise ValueError("gate_duration must be positive")
        return self

    @property
    def gate_should_count(self) -> bool:
        """Whether the gate invariant requires the clock to be running"""
        return (
            self.phase == CampaignPhase.PARTICIPANT
            and self.gate_duration is not None
            and not self.is_paused
        )

    @property
    def gate_is_counting(self) -> bool:
        return self.gate_started_at is not None


class ParticipantPass(BaseModel):
    """Readiness of one participant to leave participant phase"""

    campaign_id: str
    participant_id: str
    is_passed: bool = False
    is_hard_pass: bool = False
    passed_at: datetime | None = None

    @model_validator(mode="after")
    def _hard_pass_implies_pass(self) -> "ParticipantPass":
        if self.is_hard_pass and not self.is_passed:
            raise ValueError("is_hard_pass requires is_passed")
        return self

    def cleared(self) -> "ParticipantPass":
        """Return this row reset to never-passed"""
        return self.model_copy(
            update={"is_passed": False, "is_hard_pass": False, "passed_at": None}
        )


class TransitionRecord(BaseModel):
    """Append-only audit entry, one per committed transition"""

    record_id: str = Field(default_factory=lambda: uuid4().hex)
    campaign_id: str
    from_phase: CampaignPhase
    to_phase: CampaignPhase
    actor_id: str
    reason: TransitionReason
    timestamp: datetime

    model_config = {"frozen": True}


class ParticipantPassInfo(BaseModel):
    """Per-participant line of a pass summary"""

    participant_id: str
    is_passed: bool
    is_hard_pass: bool
    passed_at: datetime | None = None


class PassSummary(BaseModel):
    """Campaign-wide pass overview"""

    campaign_id: str
    passed_count: int
    total_count: int
    all_passed: bool
    participants: list[ParticipantPassInfo] = Field(default_factory=list)


class PhaseStatus(BaseModel):
    """Read-side snapshot returned by GetPhaseStatus"""

    campaign_id: str
    phase: CampaignPhase
    phase_started_at: datetime | None = None
    is_paused: bool
    gate_duration: timedelta | None = None
    gate_preset: str | None = None
    gate_elapsed: timedelta | None = None
    gate_remaining: timedelta | None = None
    gate_expired: bool = False
    passed_count: int = 0
    total_count: int = 0
    all_passed: bool = False
    can_transition: bool = True
    transition_block: str | None = Field(
        default=None,
        description="Reason code blocking a transition to the opposite phase"
    )
