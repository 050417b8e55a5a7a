# ABOUTME: TimeGateScheduler polling campaigns with a counting gate for expiry and warning thresholds.
# ABOUTME: Runs as a background thread and goes through the same exclusive scope as manual commands.

import threading
import time
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta

from loguru import logger

from phasekeeper.models.campaign import Campaign
from phasekeeper.models.events import EventKind
from phasekeeper.orchestration.campaign_locks import CampaignLockRegistry, exclusive_scope
from phasekeeper.orchestration.collaborators import EventEmitter, emit_best_effort
from phasekeeper.orchestration.pass_tracker import PassTracker
from phasekeeper.orchestration.time_gate import (
    crossed_warning_thresholds,
    gate_remaining,
    is_gate_expired,
    utc_now,
)
from phasekeeper.storage.base import CampaignStore, ChangeSet
from phasekeeper.utils.logging import log_gate_event

DEFAULT_WARNING_THRESHOLDS_HOURS = (24, 6, 1)


class TimeGateScheduler:
    """
    Periodic time gate sweep.

    Every poll interval: campaigns whose gate has run out get the one-time
    auto-pass sweep followed by a gate_expired event. Every warning interval:
    newly crossed remaining-time thresholds are recorded on the campaign and
    announced once per gate activation. The phase is never changed here.
    """

    def __init__(
        self,
        store: CampaignStore,
        tracker: PassTracker,
        emitter: EventEmitter,
        locks: CampaignLockRegistry,
        now: Callable[[], datetime] = utc_now,
        poll_interval: float = 60.0,
        warning_interval: float = 300.0,
        warning_thresholds_hours: list[int] | tuple[int, ...] = DEFAULT_WARNING_THRESHOLDS_HOURS,
    ):
        """
        Initialize scheduler.

        Args:
            store: Campaign persistence
            tracker: Pass tracker running the expiry auto-pass
            emitter: Notification sink hand-off
            locks: Per-campaign exclusive scope registry
            now: Clock returning timezone-aware datetimes
            poll_interval: Seconds between expiry sweeps
            warning_interval: Seconds between warning checks
            warning_thresholds_hours: Remaining-time thresholds to announce
        """
        self.store = store
        self.tracker = tracker
        self.emitter = emitter
        self.locks = locks
        self.now = now
        self.poll_interval = poll_interval
        self.warning_interval = warning_interval
        self.warning_thresholds_hours = sorted(set(warning_thresholds_hours), reverse=True)

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_warning_check: float | None = None

    def _counting_campaigns(self) -> Iterator[Campaign]:
        for campaign_id in self.store.list_campaign_ids():
            campaign = self.store.get_campaign(campaign_id)
            if campaign is not None and campaign.gate_is_counting:
                yield campaign

    def run_once(self) -> list[str]:
        """
        Run one expiry sweep over every campaign with a counting gate.

        Returns:
            Campaign ids whose expiry was handled in this sweep
        """
        handled: list[str] = []
        now = self.now()

        for campaign in self._counting_campaigns():
            campaign_id = campaign.campaign_id
            if campaign.gate_expiry_handled or not is_gate_expired(campaign, now):
                continue

            try:
                auto_passed = self.tracker.auto_pass_remaining(campaign_id)
            except Exception as e:
                logger.error(f"Gate expiry sweep failed for campaign {campaign_id}: {type(e).__name__}: {e}")
                continue

            if auto_passed is None:
                logger.debug(f"Gate expiry for campaign {campaign_id} already handled or no longer due")
                continue

            handled.append(campaign_id)
            log_gate_event(
                campaign_id,
                "expired",
                remaining=gate_remaining(campaign, now),
                level="WARNING",
                auto_passed=len(auto_passed),
            )
            emit_best_effort(self.emitter, campaign_id, EventKind.GATE_EXPIRED, {
                "auto_passed": auto_passed,
                "gate_duration_seconds": (
                    int(campaign.gate_duration.total_seconds()) if campaign.gate_duration else None
                ),
            })

        return handled

    def check_warnings(self) -> dict[str, int]:
        """
        Announce remaining-time thresholds crossed since the last check.

        All newly crossed thresholds are recorded as sent; only the tightest
        one is announced, so a late check never produces a burst of warnings.

        Returns:
            Mapping of campaign id to the threshold (hours) announced
        """
        announced: dict[str, int] = {}

        for campaign in self._counting_campaigns():
            campaign_id = campaign.campaign_id
            remaining = gate_remaining(campaign, self.now())
            if remaining is None or not crossed_warning_thresholds(
                remaining, self.warning_thresholds_hours, campaign.gate_warnings_sent,
                gate_duration=campaign.gate_duration,
            ):
                continue

            try:
                result = self._record_warning(campaign_id)
            except Exception as e:
                logger.error(f"Gate warning check failed for campaign {campaign_id}: {type(e).__name__}: {e}")
                continue
            if result is None:
                continue

            threshold, remaining = result
            announced[campaign_id] = threshold
            log_gate_event(
                campaign_id, "warning", remaining=remaining, level="WARNING", threshold_hours=threshold
            )
            emit_best_effort(self.emitter, campaign_id, EventKind.GATE_WARNING, {
                "threshold_hours": threshold,
                "remaining_seconds": int(remaining.total_seconds()),
            })

        return announced

    def _record_warning(self, campaign_id: str) -> tuple[int, timedelta] | None:
        """Mark crossed thresholds as sent under the scope; returns the one to announce"""
        with exclusive_scope(self.locks, campaign_id, "gate_warning"):
            campaign = self.store.get_campaign(campaign_id)
            if campaign is None or not campaign.gate_is_counting:
                return None
            remaining = gate_remaining(campaign, self.now())
            if remaining is None:
                return None
            crossed = crossed_warning_thresholds(
                remaining, self.warning_thresholds_hours, campaign.gate_warnings_sent,
                gate_duration=campaign.gate_duration,
            )
            if not crossed:
                return None

            sent = sorted(set(campaign.gate_warnings_sent) | set(crossed), reverse=True)
            self.store.commit(ChangeSet(
                campaign_id=campaign_id,
                campaign=campaign.model_copy(update={"gate_warnings_sent": sent}),
            ))
        return crossed[-1], remaining

    def tick(self) -> None:
        """One scheduler iteration: expiry sweep, plus warnings when their interval is due"""
        self.run_once()
        current = time.monotonic()
        if self._last_warning_check is None or current - self._last_warning_check >= self.warning_interval:
            self._last_warning_check = current
            self.check_warnings()

    def run_forever(self) -> None:
        """Block running ticks until stop() is called"""
        logger.info(
            f"Time gate scheduler running (poll={self.poll_interval}s, "
            f"warnings={self.warning_interval}s, thresholds={self.warning_thresholds_hours}h)"
        )
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Time gate scheduler tick failed: {type(e).__name__}: {e}")
            self._stop_event.wait(self.poll_interval)
        logger.info("Time gate scheduler stopped")

    def start(self) -> None:
        """Run the scheduler in a daemon thread"""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Time gate scheduler already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run_forever, name="time-gate-scheduler", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the loop to exit and wait for the thread"""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
