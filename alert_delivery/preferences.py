"""
Per-(alert, user) acknowledgment state.

A preference starts out unread when the Delivery Engine first reaches a user.
Reading it is terminal. Snoozing defers reminders until the end of the local
day; once that passes the preference is eligible for reminders again.
"""

import logging
from datetime import datetime
from typing import List, Optional

from .models import NotificationStatus, Preference
from .store import PreferenceRepository

logger = logging.getLogger(__name__)


def end_of_day(now: datetime) -> datetime:
    return now.replace(hour=23, minute=59, second=59, microsecond=999000)


class PreferenceTracker:
    def __init__(self, preference_repository: PreferenceRepository):
        self.preference_repository = preference_repository

    def ensure(self, alert_id: str, user_id: str, now: Optional[datetime] = None) -> Preference:
        return self.preference_repository.get_or_create(alert_id, user_id, now or datetime.now())

    def get(self, user_id: str, alert_id: str) -> Optional[Preference]:
        return self.preference_repository.find_by_user_and_alert(user_id, alert_id)

    def mark_read(self, user_id: str, alert_id: str,
                  now: Optional[datetime] = None) -> Optional[Preference]:
        preference = self.get(user_id, alert_id)
        if preference is None:
            logger.debug("mark_read ignored: alert %s was never delivered to %s", alert_id, user_id)
            return None
        return self.preference_repository.update(
            preference.id, is_read=True, updated_at=now or datetime.now()
        )

    def snooze(self, user_id: str, alert_id: str,
               now: Optional[datetime] = None) -> Optional[Preference]:
        preference = self.get(user_id, alert_id)
        if preference is None:
            logger.debug("snooze ignored: alert %s was never delivered to %s", alert_id, user_id)
            return None
        now = now or datetime.now()
        return self.preference_repository.update(
            preference.id, snoozed_until=end_of_day(now), updated_at=now
        )

    def record_reminder(self, preference_id: str, now: datetime) -> Optional[Preference]:
        # Touches only the reminder bookkeeping so concurrent read/snooze writes survive.
        return self.preference_repository.update(
            preference_id, last_reminded_at=now, updated_at=now
        )

    def preferences_for_user(self, user_id: str) -> List[Preference]:
        return self.preference_repository.find_by_user(user_id)

    def preferences_for_alert(self, alert_id: str) -> List[Preference]:
        return self.preference_repository.find_by_alert(alert_id)

    @staticmethod
    def status_of(preference: Optional[Preference], now: Optional[datetime] = None) -> NotificationStatus:
        if preference is None:
            return NotificationStatus.UNREAD
        if preference.is_read:
            return NotificationStatus.READ
        if preference.is_snoozed(now or datetime.now()):
            return NotificationStatus.SNOOZED
        return NotificationStatus.UNREAD
