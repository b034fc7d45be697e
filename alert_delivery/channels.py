import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union

from .errors import UnknownChannel
from .models import Alert, DeliveryType, User

logger = logging.getLogger(__name__)


# ===== NOTIFICATION CHANNELS =====
class NotificationChannel(ABC):
    """
    A deliverer for one delivery type.

    ``deliver`` returns True once the alert has been handed to the transport.
    It returns False, or raises ChannelDeliveryFailure, when the hand-off
    could not happen.
    """

    delivery_type: DeliveryType

    @abstractmethod
    def deliver(self, alert: Alert, user: User) -> bool:
        pass

    def get_type(self) -> str:
        return self.delivery_type.value

    def format_message(self, alert: Alert, user: User) -> str:
        return (
            f"[{alert.severity.value.upper()}] {alert.title}\n\n"
            f"{alert.message}\n\n"
            f"To: {user.name} ({user.email})"
        )

class InAppChannel(NotificationChannel):
    delivery_type = DeliveryType.IN_APP

    def __init__(self):
        self._inbox: List[Tuple[Alert, User, datetime]] = []
        self._lock = threading.Lock()

    def deliver(self, alert: Alert, user: User) -> bool:
        with self._lock:
            self._inbox.append((alert, user, datetime.now()))
        logger.info("In-app notification delivered to %s: %s", user.email, alert.title)
        return True

    def notifications_for(self, user_id: str) -> List[Tuple[Alert, User, datetime]]:
        with self._lock:
            return [entry for entry in self._inbox if entry[1].id == user_id]

class EmailChannel(NotificationChannel):
    delivery_type = DeliveryType.EMAIL

    def deliver(self, alert: Alert, user: User) -> bool:
        if not user.email:
            logger.warning("User %s has no email address", user.id)
            return False
        logger.info("Email queued for %s:\n%s", user.email, self.format_message(alert, user))
        return True

class SMSChannel(NotificationChannel):
    delivery_type = DeliveryType.SMS
    max_message_length = 160

    def deliver(self, alert: Alert, user: User) -> bool:
        text = f"[{alert.severity.value.upper()}] {alert.title}: {alert.message}"
        if len(text) > self.max_message_length:
            text = text[:self.max_message_length - 3] + "..."
        logger.info("SMS queued for user %s: %s", user.id, text)
        return True


# ===== REGISTRY =====
class ChannelRegistry:
    def __init__(self, channels: Optional[List[NotificationChannel]] = None):
        self._channels: Dict[str, NotificationChannel] = {}
        for channel in channels or []:
            self.register(channel)

    @classmethod
    def default(cls) -> "ChannelRegistry":
        return cls([InAppChannel(), EmailChannel(), SMSChannel()])

    def register(self, channel: NotificationChannel):
        self._channels[channel.get_type()] = channel
        logger.debug("Registered notification channel: %s", channel.get_type())

    def get(self, delivery_type: Union[DeliveryType, str]) -> NotificationChannel:
        key = delivery_type.value if isinstance(delivery_type, DeliveryType) else delivery_type
        channel = self._channels.get(key)
        if channel is None:
            raise UnknownChannel(key)
        return channel

    def __contains__(self, delivery_type: Union[DeliveryType, str]) -> bool:
        key = delivery_type.value if isinstance(delivery_type, DeliveryType) else delivery_type
        return key in self._channels

    def types(self) -> List[str]:
        return sorted(self._channels)
