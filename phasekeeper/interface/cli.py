# ABOUTME: Command-line interface for campaign phase, pass and time gate commands plus the gate scheduler.
# ABOUTME: Wires a Redis-backed CampaignCoordinator from settings and prints results as JSON.

import argparse
import json
import signal
import sys
from datetime import timedelta
from typing import Any

from loguru import logger
from pydantic import BaseModel

from phasekeeper.config.settings import get_settings
from phasekeeper.orchestration.coordinator import CampaignCoordinator, build_coordinator
from phasekeeper.orchestration.exceptions import PhaseCoordinationError
from phasekeeper.orchestration.time_gate import TIME_GATE_PRESETS
from phasekeeper.utils.logging import setup_logging
from phasekeeper.workers.queue_config import create_redis_connection

# Exit codes
EXIT_OK = 0
EXIT_FAILED = 1
EXIT_RETRYABLE = 75  # EX_TEMPFAIL


def _to_jsonable(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if isinstance(result, list):
        return [_to_jsonable(item) for item in result]
    return result


def print_result(result: Any) -> None:
    print(json.dumps(_to_jsonable(result), indent=2, default=str))


def gate_duration_from_args(args: argparse.Namespace) -> str | timedelta | None:
    """Turn --preset / --hours / --disable into a configure_gate argument"""
    if args.disable:
        return None
    if args.preset is not None:
        return args.preset
    return timedelta(hours=args.hours)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog="phasekeeper",
        description="Coordinate director/participant phases, passes and time gates for campaigns"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Override LOG_LEVEL from settings"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Director commands share actor/claim options
    director = argparse.ArgumentParser(add_help=False)
    director.add_argument("campaign_id", help="Campaign identifier")
    director.add_argument("--actor", required=True, help="Acting user id")
    director.add_argument(
        "--director",
        action="store_true",
        help="Claim director privilege for the actor (director commands are refused without it)"
    )

    scheduler = subparsers.add_parser("scheduler", help="Run the time gate scheduler")
    scheduler.add_argument(
        "--once",
        action="store_true",
        help="Run a single expiry sweep and warning check, then exit"
    )

    register = subparsers.add_parser("register", help="Create a campaign in director phase")
    register.add_argument("campaign_id")
    register.add_argument("--title", default="")
    register.add_argument("--preset", choices=list(TIME_GATE_PRESETS), default=None)

    status = subparsers.add_parser("status", help="Show phase, gate and pass status")
    status.add_argument("campaign_id")

    summary = subparsers.add_parser("summary", help="Show per-participant pass state")
    summary.add_argument("campaign_id")

    history = subparsers.add_parser("history", help="Show the transition audit log")
    history.add_argument("campaign_id")

    for name, help_text in (
        ("transition", "Transition to a phase (guards apply)"),
        ("force-transition", "Transition to a phase skipping guards"),
    ):
        sub = subparsers.add_parser(name, parents=[director], help=help_text)
        sub.add_argument("to_phase", choices=["director_phase", "participant_phase"])

    gate = subparsers.add_parser("configure-gate", parents=[director], help="Set or disable the time gate")
    gate_choice = gate.add_mutually_exclusive_group(required=True)
    gate_choice.add_argument("--preset", choices=list(TIME_GATE_PRESETS))
    gate_choice.add_argument("--hours", type=float)
    gate_choice.add_argument("--disable", action="store_true")

    subparsers.add_parser("pause", parents=[director], help="Pause the campaign and its gate")
    subparsers.add_parser("resume", parents=[director], help="Resume the campaign and its gate")

    set_pass = subparsers.add_parser("pass", help="Pass for a participant")
    set_pass.add_argument("participant_id")
    set_pass.add_argument("--hard", action="store_true", help="Hard pass (survives own posts)")

    clear = subparsers.add_parser("clear-pass", help="Clear a participant's pass")
    clear.add_argument("participant_id")

    return parser.parse_args(argv)


def run_command(coordinator: CampaignCoordinator, args: argparse.Namespace) -> Any:
    """Dispatch one parsed command to the coordinator"""
    command = args.command

    if command == "register":
        return coordinator.register_campaign(args.campaign_id, args.title, args.preset)
    if command == "status":
        return coordinator.get_phase_status(args.campaign_id)
    if command == "summary":
        return coordinator.pass_summary(args.campaign_id)
    if command == "history":
        return coordinator.transition_history(args.campaign_id)
    if command == "transition":
        return coordinator.transition_phase(args.campaign_id, args.to_phase, args.actor, args.director)
    if command == "force-transition":
        return coordinator.force_transition(args.campaign_id, args.to_phase, args.actor, args.director)
    if command == "configure-gate":
        return coordinator.configure_gate(
            args.campaign_id, gate_duration_from_args(args), args.actor, args.director
        )
    if command == "pause":
        return coordinator.pause_campaign(args.campaign_id, args.actor, args.director)
    if command == "resume":
        return coordinator.resume_campaign(args.campaign_id, args.actor, args.director)
    if command == "pass":
        return coordinator.set_pass(args.participant_id, hard_pass=args.hard)
    if command == "clear-pass":
        return coordinator.clear_pass(args.participant_id)

    raise ValueError(f"Unknown command: {command}")


def run_scheduler(coordinator: CampaignCoordinator, once: bool) -> None:
    scheduler = coordinator.scheduler
    if once:
        handled = scheduler.run_once()
        warned = scheduler.check_warnings()
        print_result({"expired": handled, "warnings": warned})
        return

    def _shutdown(signum, frame):
        logger.info(f"Received signal {signum}, stopping scheduler")
        scheduler.stop(timeout=None)

    signal.signal(signal.SIGTERM, _shutdown)
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        print("\nScheduler stopped by user.")


def main(argv: list[str] | None = None) -> int:
    """Entry point for the phasekeeper CLI"""
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(log_level=args.log_level or settings.log_level, log_dir=settings.log_dir)

    try:
        redis_client = create_redis_connection(settings.redis_url)
    except ConnectionError as e:
        print(f"Error: Could not connect to Redis: {e}", file=sys.stderr)
        return EXIT_FAILED

    coordinator = build_coordinator(redis_client, settings)

    if args.command == "scheduler":
        run_scheduler(coordinator, args.once)
        return EXIT_OK

    try:
        result = run_command(coordinator, args)
    except PhaseCoordinationError as e:
        print(f"Error [{e.code}]: {e}", file=sys.stderr)
        return EXIT_RETRYABLE if e.retryable else EXIT_FAILED

    print_result(result)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
