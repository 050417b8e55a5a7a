# ABOUTME: Pure time gate arithmetic: elapsed/remaining, start/clear, pause/resume and warning thresholds.
# ABOUTME: Campaign copies are returned, never mutated; callers commit them inside the exclusive scope.

from datetime import datetime, timedelta, timezone

from phasekeeper.models.campaign import Campaign, CampaignPhase
from phasekeeper.orchestration.exceptions import InvalidGateDuration

# Preset labels accepted by ConfigureGate
TIME_GATE_PRESETS: dict[str, timedelta] = {
    "24h": timedelta(hours=24),
    "2d": timedelta(hours=48),
    "3d": timedelta(hours=72),
    "4d": timedelta(hours=96),
    "5d": timedelta(hours=120),
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_gate_duration(value: str | timedelta | None) -> tuple[timedelta | None, str | None]:
    """
    Turn a ConfigureGate argument into (duration, preset_label).

    Args:
        value: Preset label ("24h", "2d", ...), explicit positive timedelta, or None to disable

    Returns:
        Tuple of duration and the preset label it came from (None for explicit durations)

    Raises:
        InvalidGateDuration: Unknown preset or non-positive duration
    """
    if value is None:
        return None, None

    if isinstance(value, str):
        duration = TIME_GATE_PRESETS.get(value.strip().lower())
        if duration is None:
            raise InvalidGateDuration(
                f"Unknown time gate preset '{value}'. "
                f"Valid presets: {', '.join(TIME_GATE_PRESETS)}"
            )
        return duration, value.strip().lower()

    if isinstance(value, timedelta):
        if value <= timedelta(0):
            raise InvalidGateDuration(f"Time gate duration must be positive, got {value}")
        return value, None

    raise InvalidGateDuration(f"Unsupported time gate value: {value!r}")


def gate_elapsed(campaign: Campaign, now: datetime) -> timedelta:
    """Accumulated elapsed time plus the currently counting stretch"""
    elapsed = campaign.gate_elapsed_accumulated
    if campaign.gate_started_at is not None:
        elapsed += max(now - campaign.gate_started_at, timedelta(0))
    return elapsed


def gate_remaining(campaign: Campaign, now: datetime) -> timedelta | None:
    """
    Remaining gate time, or None when no gate applies.

    A paused participant phase still reports its frozen remaining time.
    """
    if campaign.phase != CampaignPhase.PARTICIPANT or campaign.gate_duration is None:
        return None
    return campaign.gate_duration - gate_elapsed(campaign, now)


def is_gate_expired(campaign: Campaign, now: datetime) -> bool:
    remaining = gate_remaining(campaign, now)
    return remaining is not None and remaining <= timedelta(0)


def start_gate(campaign: Campaign, now: datetime) -> Campaign:
    """Begin a fresh gate activation (transition into participant phase)"""
    return campaign.model_copy(update={
        "gate_started_at": now if campaign.gate_should_count else None,
        "gate_elapsed_accumulated": timedelta(0),
        "gate_warnings_sent": [],
        "gate_expiry_handled": False,
    })


def clear_gate(campaign: Campaign) -> Campaign:
    """Drop all runtime gate state (transition out of participant phase, or gate disabled)"""
    return campaign.model_copy(update={
        "gate_started_at": None,
        "gate_elapsed_accumulated": timedelta(0),
        "gate_warnings_sent": [],
        "gate_expiry_handled": False,
    })


def pause_gate(campaign: Campaign, now: datetime) -> Campaign:
    """Fold the counting stretch into the accumulator and stop the clock"""
    if campaign.gate_started_at is None:
        return campaign.model_copy(update={"is_paused": True})
    return campaign.model_copy(update={
        "is_paused": True,
        "gate_elapsed_accumulated": gate_elapsed(campaign, now),
        "gate_started_at": None,
    })


def resume_gate(campaign: Campaign, now: datetime) -> Campaign:
    """Restart the clock from now; the accumulator is left untouched"""
    resumed = campaign.model_copy(update={"is_paused": False})
    if resumed.gate_should_count and resumed.gate_started_at is None:
        resumed = resumed.model_copy(update={"gate_started_at": now})
    return resumed


def reconfigure_gate(
    campaign: Campaign,
    duration: timedelta | None,
    preset: str | None,
    now: datetime,
) -> Campaign:
    """
    Apply a new gate duration while keeping the gate invariant.

    Enabling during an unpaused participant phase starts counting; disabling
    clears the gate; changing a running gate keeps its elapsed time.
    """
    updated = campaign.model_copy(update={"gate_duration": duration, "gate_preset": preset})

    if duration is None:
        return clear_gate(updated)

    if updated.gate_should_count and updated.gate_started_at is None:
        updated = updated.model_copy(update={"gate_started_at": now})

    remaining = gate_remaining(updated, now)
    if remaining is not None and remaining > timedelta(0) and updated.gate_expiry_handled:
        # Extended past the old deadline: the new deadline gets its own sweep
        updated = updated.model_copy(update={"gate_expiry_handled": False})

    return updated


def crossed_warning_thresholds(
    remaining: timedelta,
    thresholds_hours: list[int],
    already_sent: list[int],
    gate_duration: timedelta | None = None,
) -> list[int]:
    """
    Thresholds newly crossed by the remaining time, largest first.

    A threshold counts only when the countdown passes it: with a gate
    duration given, thresholds at or above that duration are never crossed
    (a 2h gate never warns at 6h, a 24h gate stays silent at its start).

    Args:
        remaining: Current remaining gate time (must be positive to warn)
        thresholds_hours: Configured thresholds in hours
        already_sent: Thresholds announced earlier in this activation
        gate_duration: Configured gate duration, if known

    Returns:
        Newly crossed thresholds (empty when nothing to announce)
    """
    if remaining <= timedelta(0):
        return []
    return sorted(
        (
            hours for hours in set(thresholds_hours)
            if hours not in already_sent
            and remaining <= timedelta(hours=hours)
            and (gate_duration is None or timedelta(hours=hours) < gate_duration)
        ),
        reverse=True,
    )
