from collections import Counter
from datetime import datetime
from typing import Optional

from .models import AlertAnalytics, AlertStatus, Severity
from .store import AlertRepository, DeliveryRepository, PreferenceRepository


class AnalyticsEngine:
    def __init__(self, alert_repository: AlertRepository, delivery_repository: DeliveryRepository,
                 preference_repository: PreferenceRepository):
        self.alert_repository = alert_repository
        self.delivery_repository = delivery_repository
        self.preference_repository = preference_repository

    def get_system_analytics(self, now: Optional[datetime] = None) -> AlertAnalytics:
        now = now or datetime.now()
        alerts = self.alert_repository.find_all()
        deliveries = self.delivery_repository.find_all()
        preferences = self.preference_repository.find_all()

        severity_counts = {severity: 0 for severity in Severity}
        for alert in alerts:
            severity_counts[alert.severity] += 1

        reminders = sum(1 for d in deliveries if d.is_reminder)
        snoozed = Counter(p.alert_id for p in preferences if not p.is_read and p.is_snoozed(now))

        return AlertAnalytics(
            total_alerts=len(alerts),
            active_alerts=sum(1 for a in alerts if a.is_active(now)),
            archived_alerts=sum(1 for a in alerts if a.status == AlertStatus.ARCHIVED),
            alerts_by_severity=severity_counts,
            delivery_stats={
                "delivered": len(deliveries),
                "initial": len(deliveries) - reminders,
                "reminders": reminders,
                "recipients": len(preferences),
                "read": sum(1 for p in preferences if p.is_read),
                "snoozed": sum(snoozed.values()),
            },
            snoozed_by_alert=dict(snoozed),
        )
