# ABOUTME: Exception definitions for phase transitions, pass tracking and the per-campaign scope.
# ABOUTME: Every error carries a stable code so transports can map it without string matching.


class PhaseCoordinationError(Exception):
    """Base class for all errors surfaced by the phase coordinator"""

    code = "phase_coordination_error"
    retryable = False


class InvalidRequest(PhaseCoordinationError):
    """Raised for malformed input; rejected before any lock is taken"""

    code = "invalid_request"


class AlreadyInPhase(InvalidRequest):
    """Raised when the requested phase is the current phase"""

    code = "already_in_phase"

    def __init__(self, campaign_id: str, phase: str):
        self.campaign_id = campaign_id
        self.phase = phase
        super().__init__(f"Campaign {campaign_id} is already in {phase}")


class InvalidGateDuration(InvalidRequest):
    """Raised when a time gate duration or preset is not acceptable"""

    code = "invalid_gate_duration"


class CampaignNotFound(InvalidRequest):
    """Raised when campaign_id doesn't exist"""

    code = "campaign_not_found"

    def __init__(self, campaign_id: str):
        self.campaign_id = campaign_id
        super().__init__(f"Campaign not found: {campaign_id}")


class ParticipantNotFound(InvalidRequest):
    """Raised when participant_id is not a qualifying participant of any campaign"""

    code = "participant_not_found"

    def __init__(self, participant_id: str):
        self.participant_id = participant_id
        super().__init__(f"Participant not found: {participant_id}")


class NotInParticipantPhase(InvalidRequest):
    """Raised when passing while the campaign is in director phase"""

    code = "not_in_participant_phase"


class DirectorRequired(PhaseCoordinationError):
    """Raised when a non-director attempts a director-only command"""

    code = "director_required"


class GuardViolationError(PhaseCoordinationError):
    """Raised when a transition guard blocks the transition"""

    code = "guard_violation"

    def __init__(self, reason_code: str, message: str, guard_name: str):
        self.reason_code = reason_code
        self.guard_name = guard_name
        super().__init__(message)


class CampaignPaused(PhaseCoordinationError):
    """Raised for every transition attempt while the campaign is paused"""

    code = "campaign_paused"

    def __init__(self, campaign_id: str):
        self.campaign_id = campaign_id
        super().__init__(f"Campaign {campaign_id} is paused")


class PendingCommitment(PhaseCoordinationError):
    """Raised when a participant with unresolved commitments tries to pass"""

    code = "pending_commitment"

    def __init__(self, participant_id: str, pending: int):
        self.participant_id = participant_id
        self.pending = pending
        super().__init__(
            f"Participant {participant_id} has {pending} pending commitment(s) to resolve"
        )


class ConcurrencyTimeout(PhaseCoordinationError):
    """Raised when the campaign's exclusive scope could not be acquired in time"""

    code = "concurrency_timeout"
    retryable = True

    def __init__(self, campaign_id: str, waited_seconds: float):
        self.campaign_id = campaign_id
        self.waited_seconds = waited_seconds
        super().__init__(
            f"Campaign {campaign_id} is busy (waited {waited_seconds:.1f}s), retry later"
        )


class InternalFailure(PhaseCoordinationError):
    """Raised when an unexpected failure aborted a mutation; cause is logged under correlation_id"""

    code = "internal_failure"

    def __init__(self, correlation_id: str):
        self.correlation_id = correlation_id
        super().__init__(f"Internal failure (correlation id {correlation_id})")
