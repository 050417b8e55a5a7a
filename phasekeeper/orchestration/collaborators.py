# ABOUTME: Protocols for the external collaborators the phase coordinator reads from and emits to.
# ABOUTME: Roster, commitment ledger, narrative lock index and event emitter live outside this package.

from typing import Any, Protocol, runtime_checkable

from loguru import logger

from phasekeeper.models.events import EventKind


@runtime_checkable
class ParticipantRoster(Protocol):
    """Active, non-archived participants with a valid owner"""

    def list_qualifying_participants(self, campaign_id: str) -> list[str]:
        ...

    def campaign_for_participant(self, participant_id: str) -> str | None:
        ...


@runtime_checkable
class CommitmentLedger(Protocol):
    """Unresolved dice-style action commitments"""

    def count_pending_commitments(self, campaign_id: str) -> int:
        ...

    def count_participant_commitments(self, participant_id: str) -> int:
        ...


@runtime_checkable
class NarrativeLockIndex(Protocol):
    """Exclusive write locks on shared narrative units (e.g. a compose lock on a scene)"""

    def list_active_locks(self, campaign_id: str) -> list[str]:
        ...


@runtime_checkable
class EventEmitter(Protocol):
    """Best-effort, at-least-once hand-off to the notification sink"""

    def emit(self, campaign_id: str, kind: EventKind, payload: dict[str, Any]) -> None:
        ...


def emit_best_effort(
    emitter: EventEmitter,
    campaign_id: str,
    kind: EventKind,
    payload: dict[str, Any],
) -> None:
    """Emit outside the exclusive scope; a failing emitter never fails the command"""
    try:
        emitter.emit(campaign_id, kind, payload)
    except Exception as e:
        logger.error(f"Failed to emit {kind.value} for campaign {campaign_id}: {type(e).__name__}: {e}")
