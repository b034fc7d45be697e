import logging
from datetime import datetime
from typing import Iterable, List, Optional

from .channels import ChannelRegistry, NotificationChannel
from .errors import ChannelDeliveryFailure
from .models import Alert, DeliveryRecord, User, new_id
from .preferences import PreferenceTracker
from .store import DeliveryRepository

logger = logging.getLogger(__name__)


class DeliveryEngine:
    """
    Sends an alert to its recipients and records the outcome.

    The channel is looked up once per call, so an unregistered delivery type
    raises UnknownChannel before any recipient is attempted. Failures of a
    single recipient are logged and do not stop the others.
    """

    def __init__(self, channels: ChannelRegistry, delivery_repository: DeliveryRepository,
                 preferences: PreferenceTracker):
        self.channels = channels
        self.delivery_repository = delivery_repository
        self.preferences = preferences

    def deliver(self, alert: Alert, recipients: Iterable[User],
                now: Optional[datetime] = None) -> List[DeliveryRecord]:
        now = now or datetime.now()
        if not alert.is_active(now):
            logger.info("Alert %s is not active; skipping delivery", alert.id)
            return []

        channel = self.channels.get(alert.delivery_type)
        records = []
        for user in recipients:
            record = self.send(channel, alert, user, now, is_reminder=False)
            if record is not None:
                records.append(record)
            # Seeded even when the send failed, so the next reminder sweep retries it.
            self.preferences.ensure(alert.id, user.id, now)

        logger.info("Alert %s delivered to %d recipient(s) via %s",
                    alert.id, len(records), channel.get_type())
        return records

    def send(self, channel: NotificationChannel, alert: Alert, user: User,
             now: datetime, is_reminder: bool) -> Optional[DeliveryRecord]:
        """Hand one alert to one user; returns the appended record, or None on failure."""
        try:
            delivered = channel.deliver(alert, user)
        except ChannelDeliveryFailure as exc:
            logger.warning("%s", exc)
            return None
        except Exception:
            logger.exception("Channel %s raised while delivering alert %s to user %s",
                             channel.get_type(), alert.id, user.id)
            return None

        if not delivered:
            logger.warning("Channel %s could not deliver alert %s to user %s",
                           channel.get_type(), alert.id, user.id)
            return None

        return self.delivery_repository.create(DeliveryRecord(
            id=new_id(),
            alert_id=alert.id,
            user_id=user.id,
            delivery_type=alert.delivery_type,
            delivered_at=now,
            is_reminder=is_reminder,
            created_at=now,
        ))
