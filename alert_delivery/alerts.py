import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import NotFound
from .models import (
    Alert,
    AlertStatus,
    DeliveryType,
    Severity,
    VisibilityTarget,
    VisibilityType,
    new_id,
    to_local_naive,
)
from .store import AlertRepository, VisibilityRepository

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "title", "message", "severity", "delivery_type", "reminder_enabled",
    "reminder_frequency_minutes", "start_time", "expiry_time", "status",
}


class AlertManager:
    def __init__(self, alert_repository: AlertRepository, visibility_repository: VisibilityRepository):
        self.alert_repository = alert_repository
        self.visibility_repository = visibility_repository

    def create_alert(self, title: str, message: str, severity: Severity,
                     delivery_type: DeliveryType, visibility_type: VisibilityType,
                     created_by: str, start_time: Optional[datetime] = None,
                     expiry_time: Optional[datetime] = None,
                     reminder_enabled: bool = True,
                     reminder_frequency_minutes: int = 120,
                     target_team_ids: Sequence[str] = (),
                     target_user_ids: Sequence[str] = ()) -> Alert:
        now = datetime.now()
        start_time = to_local_naive(start_time) or now
        expiry_time = to_local_naive(expiry_time)
        team_ids = list(dict.fromkeys(target_team_ids))
        user_ids = list(dict.fromkeys(target_user_ids))

        if not title:
            raise ValueError("title is required")
        self._validate_schedule(start_time, expiry_time, reminder_frequency_minutes)
        if visibility_type == VisibilityType.TEAM and not team_ids:
            raise ValueError("Team alerts need at least one target team")
        if visibility_type == VisibilityType.USER and not user_ids:
            raise ValueError("User alerts need at least one target user")

        alert = Alert(
            id=new_id(),
            title=title,
            message=message,
            severity=severity,
            delivery_type=delivery_type,
            visibility_type=visibility_type,
            created_by=created_by,
            start_time=start_time,
            expiry_time=expiry_time,
            reminder_enabled=reminder_enabled,
            reminder_frequency_minutes=reminder_frequency_minutes,
            created_at=now,
            updated_at=now,
        )

        # Targets are built before anything is stored so a bad target leaves no partial alert.
        targets = []
        if visibility_type == VisibilityType.TEAM:
            targets = [VisibilityTarget(new_id(), alert.id, team_id=t, created_at=now) for t in team_ids]
        elif visibility_type == VisibilityType.USER:
            targets = [VisibilityTarget(new_id(), alert.id, user_id=u, created_at=now) for u in user_ids]

        with self.alert_repository.store.lock, self.visibility_repository.store.lock:
            alert = self.alert_repository.create(alert)
            for target in targets:
                self.visibility_repository.create(target)

        logger.info("Created %s alert %s (%s, %d target(s))",
                    alert.severity.value, alert.id, visibility_type.value, len(targets))
        return alert

    def update_alert(self, alert_id: str, **updates) -> Alert:
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        for key in ("start_time", "expiry_time"):
            if key in updates:
                updates[key] = to_local_naive(updates[key])
        if "start_time" in updates and updates["start_time"] is None:
            raise ValueError("start_time cannot be cleared")

        alert = self.get_alert(alert_id)
        self._validate_schedule(
            updates.get("start_time", alert.start_time),
            updates.get("expiry_time", alert.expiry_time),
            updates.get("reminder_frequency_minutes", alert.reminder_frequency_minutes),
        )
        updated = self.alert_repository.update(alert_id, updated_at=datetime.now(), **updates)
        if updated is None:
            raise NotFound("alert", alert_id)
        return updated

    def archive_alert(self, alert_id: str) -> Alert:
        return self.update_alert(alert_id, status=AlertStatus.ARCHIVED)

    def delete_alert(self, alert_id: str) -> bool:
        with self.alert_repository.store.lock, self.visibility_repository.store.lock:
            if not self.alert_repository.delete(alert_id):
                return False
            self.visibility_repository.delete_by_alert(alert_id)
        return True

    def get_alert(self, alert_id: str) -> Alert:
        alert = self.alert_repository.find_by_id(alert_id)
        if alert is None:
            raise NotFound("alert", alert_id)
        return alert

    def targets_of(self, alert_id: str) -> Tuple[List[str], List[str]]:
        targets = self.visibility_repository.find_by_alert(alert_id)
        return ([t.team_id for t in targets if t.team_id],
                [t.user_id for t in targets if t.user_id])

    def list_alerts(self, filters: Optional[Dict] = None) -> List[Alert]:
        alerts = self.alert_repository.find_all()
        if not filters:
            return alerts
        if "severity" in filters:
            alerts = [a for a in alerts if a.severity == filters["severity"]]
        if "status" in filters:
            alerts = [a for a in alerts if a.status == filters["status"]]
        if "created_by" in filters:
            alerts = [a for a in alerts if a.created_by == filters["created_by"]]
        return alerts

    def get_active_alerts(self, now: Optional[datetime] = None) -> List[Alert]:
        return self.alert_repository.find_active(now)

    @staticmethod
    def _validate_schedule(start_time: datetime, expiry_time: Optional[datetime],
                           reminder_frequency_minutes: int):
        if reminder_frequency_minutes <= 0:
            raise ValueError("reminder_frequency_minutes must be positive")
        if expiry_time is not None and expiry_time <= start_time:
            raise ValueError("expiry_time must be after start_time")
