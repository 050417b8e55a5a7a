# ABOUTME: Pydantic model for events emitted to the external notification sink.
# ABOUTME: Covers phase transitions, all-passed edges, gate expiry and gate warnings.

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class EventKind(str, Enum):
    """Kinds of events produced for the notification sink"""
    PHASE_TRANSITION = "phase_transition"
    ALL_PASSED = "all_passed"
    GATE_EXPIRED = "gate_expired"
    GATE_WARNING = "gate_warning"


class PhaseEvent(BaseModel):
    """Envelope delivered to the sink (at-least-once, may be dropped)"""

    event_id: str = Field(default_factory=lambda: uuid4().hex)
    campaign_id: str
    kind: EventKind
    payload: dict[str, Any] = Field(default_factory=dict)
    emitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"use_enum_values": True}
