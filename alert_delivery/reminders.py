"""
Reminder Scheduler
==================
Periodic re-delivery of unread alerts.

A sweep walks every active, reminder-enabled alert and re-sends it to each
recipient whose preference is unread, not snoozed and whose last reminder is
at least one reminder period old. ``ReminderTimer`` runs sweeps on a fixed
interval on a background thread.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .delivery import DeliveryEngine
from .errors import AlertingError
from .models import Alert, DeliveryRecord
from .preferences import PreferenceTracker
from .store import AlertRepository, UserRepository

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Outcome of one reminder sweep."""
    started_at: datetime
    alerts_checked: int = 0
    preferences_checked: int = 0
    reminders: List[DeliveryRecord] = field(default_factory=list)
    failures: int = 0
    skipped: bool = False
    duration_seconds: float = 0.0

    @property
    def reminders_sent(self) -> int:
        return len(self.reminders)

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "alerts_checked": self.alerts_checked,
            "preferences_checked": self.preferences_checked,
            "reminders_sent": self.reminders_sent,
            "failures": self.failures,
            "skipped": self.skipped,
            "duration_seconds": round(self.duration_seconds, 3),
        }


class ReminderScheduler:
    def __init__(self, alert_repository: AlertRepository, user_repository: UserRepository,
                 preferences: PreferenceTracker, delivery: DeliveryEngine,
                 overrun_after_seconds: Optional[float] = None):
        self.alert_repository = alert_repository
        self.user_repository = user_repository
        self.preferences = preferences
        self.delivery = delivery
        self.overrun_after_seconds = overrun_after_seconds
        self._sweep_lock = threading.Lock()
        self.last_result: Optional[SweepResult] = None

    def run_reminder_sweep(self, now: Optional[datetime] = None) -> SweepResult:
        now = now or datetime.now()
        result = SweepResult(started_at=now)

        # Overlapping ticks are dropped rather than queued.
        if not self._sweep_lock.acquire(blocking=False):
            logger.warning("Reminder sweep already in progress; skipping tick at %s", now.isoformat())
            result.skipped = True
            return result

        started = time.monotonic()
        try:
            for alert in self.alert_repository.find_active(now):
                if not alert.reminder_enabled:
                    continue
                result.alerts_checked += 1
                self._remind_alert(alert, now, result)
        finally:
            self._sweep_lock.release()

        result.duration_seconds = time.monotonic() - started
        if self.overrun_after_seconds and result.duration_seconds > self.overrun_after_seconds:
            logger.warning("Reminder sweep took %.1fs, longer than the %.1fs sweep interval",
                           result.duration_seconds, self.overrun_after_seconds)

        logger.info("Reminder sweep: %d alert(s), %d preference(s), %d reminder(s), %d failure(s)",
                    result.alerts_checked, result.preferences_checked,
                    result.reminders_sent, result.failures)
        self.last_result = result
        return result

    def _remind_alert(self, alert: Alert, now: datetime, result: SweepResult):
        for preference in self.preferences.preferences_for_alert(alert.id):
            result.preferences_checked += 1
            if not preference.is_due(alert, now):
                continue

            user = self.user_repository.find_by_id(preference.user_id)
            if user is None:
                logger.debug("User %s no longer exists; no reminder for alert %s",
                             preference.user_id, alert.id)
                continue

            try:
                channel = self.delivery.channels.get(alert.delivery_type)
            except AlertingError as exc:
                logger.error("Cannot remind user %s about alert %s: %s", user.id, alert.id, exc)
                result.failures += 1
                continue

            record = self.delivery.send(channel, alert, user, now, is_reminder=True)
            if record is None:
                result.failures += 1
                continue

            self.preferences.record_reminder(preference.id, now)
            result.reminders.append(record)


class ReminderTimer:
    """Runs ``scheduler.run_reminder_sweep`` every ``interval_minutes`` until stopped."""

    def __init__(self, scheduler: ReminderScheduler, interval_minutes: float = 2):
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        self.scheduler = scheduler
        self.interval_seconds = interval_minutes * 60
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.is_running:
            if self._stop.is_set():
                logger.warning("Reminder timer is still shutting down; not restarting")
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="reminder-timer", daemon=True)
        self._thread.start()
        logger.info("Reminder timer started (every %.1f minutes)", self.interval_seconds / 60)

    def stop(self, timeout: float = 5):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                # Kept so start() will not launch a second loop beside it.
                logger.warning("Reminder timer did not stop within %.1fs; a sweep is still running", timeout)
                return
            self._thread = None
            logger.info("Reminder timer stopped")

    def _loop(self):
        while not self._stop.wait(self.interval_seconds):
            try:
                self.scheduler.run_reminder_sweep()
            except Exception:
                logger.exception("Reminder sweep failed")
