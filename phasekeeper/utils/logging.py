# ABOUTME: Structured logging configuration using loguru for campaign phase auditing.
# ABOUTME: Console and dated file sinks plus a JSON error sink; helpers bind campaign/participant context.

import sys
from datetime import timedelta
from pathlib import Path
from typing import Any

from loguru import logger

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level> | "
    "{extra}"
)


def setup_logging(
    log_level: str = "INFO",
    log_dir: str | Path | None = None,
    console_output: bool = True,
    file_output: bool = True,
    format_string: str | None = None,
    rotation: str = "100 MB",
    retention: str = "30 days",
    compression: str = "zip"
) -> None:
    """
    Replace loguru's default handler with phasekeeper's sinks.

    With file output enabled, `log_dir` receives a dated text log at
    `log_level` and `errors.jsonl`, a serialized ERROR-and-above sink where
    internal failures can be looked up by correlation id.

    Args:
        log_level: One of LOG_LEVELS (case-insensitive)
        log_dir: Directory for log files (default: "logs")
        console_output: Log to stderr
        file_output: Log to files under log_dir
        format_string: Override for DEFAULT_FORMAT
        rotation: loguru rotation policy for the dated log
        retention: loguru retention policy for rotated files
        compression: Compression applied to rotated files

    Raises:
        ValueError: If log_level is not one of LOG_LEVELS
    """
    level = log_level.upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"Invalid log level: '{log_level}'. Must be one of: {', '.join(LOG_LEVELS)}")

    fmt = format_string or DEFAULT_FORMAT
    logger.remove()

    if console_output:
        logger.add(sys.stderr, format=fmt, level=level, colorize=True, diagnose=False)

    if file_output:
        log_path = Path(log_dir or "logs")
        log_path.mkdir(parents=True, exist_ok=True)

        # enqueue: the scheduler thread and command callers share these sinks
        logger.add(
            str(log_path / "errors.jsonl"),
            level="ERROR",
            serialize=True,
            rotation=rotation,
            retention=retention,
            enqueue=True,
        )
        logger.add(
            str(log_path / "phasekeeper_{time:YYYY-MM-DD}.log"),
            format=fmt,
            level=level,
            rotation=rotation,
            retention=retention,
            compression=compression,
            backtrace=True,
            diagnose=False,
            enqueue=True,
        )

    logger.debug(f"Logging configured (level={level}, console={console_output}, files={file_output})")


def get_logger() -> Any:
    return logger


def log_phase_transition(
    campaign_id: str,
    from_phase: str,
    to_phase: str,
    actor_id: str,
    reason: str,
    duration_ms: float | None = None
) -> None:
    """
    Log a committed phase transition.

    Usage:
        >>> log_phase_transition(
        ...     campaign_id="camp_01",
        ...     from_phase="participant_phase",
        ...     to_phase="director_phase",
        ...     actor_id="user_gm",
        ...     reason="director_transition",
        ...     duration_ms=4.2
        ... )

    Args:
        campaign_id: Campaign identifier
        from_phase: Previous phase
        to_phase: New phase
        actor_id: Director who requested the transition
        reason: Audit reason code
        duration_ms: Optional time spent inside the exclusive scope
    """
    context: dict[str, Any] = {
        "campaign_id": campaign_id,
        "from_phase": from_phase,
        "to_phase": to_phase,
        "actor_id": actor_id,
        "reason": reason,
    }

    if duration_ms is not None:
        context["duration_ms"] = round(duration_ms, 3)

    logger.bind(**context).info(
        f"Phase transition: {from_phase} -> {to_phase}"
    )


def log_pass_event(
    campaign_id: str,
    participant_id: str,
    action: str,
    hard_pass: bool = False,
    **extra_context: Any
) -> None:
    """
    Log a pass state change (set, clear, auto_clear, auto_pass).

    Args:
        campaign_id: Campaign identifier
        participant_id: Participant whose pass changed
        action: What happened to the pass
        hard_pass: Whether the resulting pass is a hard pass
        **extra_context: Additional context fields
    """
    context = {
        "campaign_id": campaign_id,
        "participant_id": participant_id,
        "action": action,
        "hard_pass": hard_pass,
        **extra_context
    }

    logger.bind(**context).info(f"Pass {action}: {participant_id}")


def log_gate_event(
    campaign_id: str,
    event: str,
    remaining: timedelta | None = None,
    level: str = "INFO",
    **extra_context: Any
) -> None:
    """
    Log a time gate event (started, paused, resumed, warning, expired).

    Args:
        campaign_id: Campaign identifier
        event: Gate event name
        remaining: Remaining gate time when the event happened
        level: Log level (default: "INFO")
        **extra_context: Additional context fields
    """
    context: dict[str, Any] = {
        "campaign_id": campaign_id,
        "gate_event": event,
        **extra_context
    }

    if remaining is not None:
        context["remaining_seconds"] = int(remaining.total_seconds())

    logger.bind(**context).log(level.upper(), f"Time gate {event}")
