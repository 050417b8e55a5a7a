# ABOUTME: Utility module exports for structured logging.
# ABOUTME: Provides logging.py (loguru config and campaign event helpers).

from phasekeeper.utils.logging import (
    get_logger,
    log_gate_event,
    log_pass_event,
    log_phase_transition,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "log_phase_transition",
    "log_pass_event",
    "log_gate_event",
]
