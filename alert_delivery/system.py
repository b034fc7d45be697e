import logging
from datetime import datetime
from typing import List, Optional, Tuple

from .alerts import AlertManager
from .analytics import AnalyticsEngine
from .channels import ChannelRegistry
from .config import Settings
from .delivery import DeliveryEngine
from .errors import NotFound, UnknownChannel
from .models import (
    Alert,
    AlertAnalytics,
    DeliveryRecord,
    Preference,
    Team,
    User,
    UserRole,
    new_id,
)
from .preferences import PreferenceTracker
from .reminders import ReminderScheduler, ReminderTimer, SweepResult
from .store import (
    AlertRepository,
    DeliveryRepository,
    PreferenceRepository,
    TeamRepository,
    UserRepository,
    VisibilityRepository,
)
from .visibility import VisibilityResolver

logger = logging.getLogger(__name__)


class AlertingSystem:
    """Builds the stores, the channel registry and the services, and wires them together."""

    def __init__(self, settings: Optional[Settings] = None,
                 channels: Optional[ChannelRegistry] = None):
        self.settings = settings or Settings()

        self.team_repository = TeamRepository()
        self.user_repository = UserRepository()
        self.alert_repository = AlertRepository()
        self.visibility_repository = VisibilityRepository()
        self.delivery_repository = DeliveryRepository()
        self.preference_repository = PreferenceRepository()

        self.channels = channels or ChannelRegistry.default()

        self.alert_manager = AlertManager(self.alert_repository, self.visibility_repository)
        self.visibility = VisibilityResolver(
            self.user_repository, self.visibility_repository, self.alert_repository
        )
        self.preferences = PreferenceTracker(self.preference_repository)
        self.delivery = DeliveryEngine(self.channels, self.delivery_repository, self.preferences)
        self.scheduler = ReminderScheduler(
            self.alert_repository,
            self.user_repository,
            self.preferences,
            self.delivery,
            overrun_after_seconds=self.settings.REMINDER_SWEEP_INTERVAL_MINUTES * 60,
        )
        self.analytics = AnalyticsEngine(
            self.alert_repository, self.delivery_repository, self.preference_repository
        )
        self.timer = ReminderTimer(self.scheduler, self.settings.REMINDER_SWEEP_INTERVAL_MINUTES)

    # ===== ORGANIZATION =====
    def add_team(self, name: str, description: str = "") -> Team:
        team = self.team_repository.create(Team(id=new_id(), name=name, description=description))
        logger.info("Added team %s (%s)", team.name, team.id)
        return team

    def add_user(self, email: str, name: str, role: UserRole = UserRole.MEMBER,
                 team_id: Optional[str] = None) -> User:
        if self.user_repository.find_by_email(email):
            raise ValueError(f"A user with email {email} already exists")
        if team_id and self.team_repository.find_by_id(team_id) is None:
            raise NotFound("team", team_id)
        user = self.user_repository.create(
            User(id=new_id(), email=email, name=name, role=role, team_id=team_id)
        )
        logger.info("Added %s %s (%s)", user.role.value, user.email, user.id)
        return user

    # ===== ALERTS =====
    def create_alert(self, deliver: bool = True, **kwargs) -> Tuple[Alert, List[DeliveryRecord]]:
        """Create an alert and, unless ``deliver`` is False, send it to its recipients."""
        kwargs.setdefault("reminder_frequency_minutes",
                          self.settings.DEFAULT_REMINDER_FREQUENCY_MINUTES)
        self._check_channel(kwargs.get("delivery_type"))
        alert = self.alert_manager.create_alert(**kwargs)
        records = self.deliver_alert(alert.id) if deliver else []
        return alert, records

    def update_alert(self, alert_id: str, **updates) -> Alert:
        if "delivery_type" in updates:
            self._check_channel(updates["delivery_type"])
        return self.alert_manager.update_alert(alert_id, **updates)

    def _check_channel(self, delivery_type):
        if delivery_type not in self.channels:
            raise UnknownChannel(getattr(delivery_type, "value", str(delivery_type)))

    def deliver_alert(self, alert_id: str, now: Optional[datetime] = None) -> List[DeliveryRecord]:
        alert = self.alert_manager.get_alert(alert_id)
        recipients = self.visibility.resolve_for_alert(alert)
        return self.delivery.deliver(alert, recipients, now)

    def get_user_alerts(self, user_id: str,
                        now: Optional[datetime] = None) -> List[Tuple[Alert, Optional[Preference]]]:
        if self.user_repository.find_by_id(user_id) is None:
            raise NotFound("user", user_id)
        return [
            (alert, self.preferences.get(user_id, alert.id))
            for alert in self.visibility.alerts_for_user(user_id, now)
        ]

    def mark_alert_read(self, user_id: str, alert_id: str) -> Optional[Preference]:
        return self.preferences.mark_read(user_id, alert_id)

    def snooze_alert(self, user_id: str, alert_id: str) -> Optional[Preference]:
        return self.preferences.snooze(user_id, alert_id)

    # ===== REMINDERS =====
    def process_reminders(self, now: Optional[datetime] = None) -> SweepResult:
        return self.scheduler.run_reminder_sweep(now)

    def start_reminders(self):
        self.timer.start()

    def stop_reminders(self):
        self.timer.stop()

    def get_analytics(self) -> AlertAnalytics:
        return self.analytics.get_system_analytics()
