"""
Alert delivery and reminder engine.

Resolves which members an alert targets, delivers it through a registered
channel, tracks read/snooze state per recipient and re-sends reminders on a
cadence until each recipient acknowledges the alert.
"""

from .alerts import AlertManager
from .analytics import AnalyticsEngine
from .channels import (
    ChannelRegistry,
    EmailChannel,
    InAppChannel,
    NotificationChannel,
    SMSChannel,
)
from .delivery import DeliveryEngine
from .errors import AlertingError, ChannelDeliveryFailure, NotFound, UnknownChannel
from .models import (
    Alert,
    AlertStatus,
    DeliveryRecord,
    DeliveryType,
    NotificationStatus,
    Preference,
    Severity,
    Team,
    User,
    UserRole,
    VisibilityTarget,
    VisibilityType,
)
from .preferences import PreferenceTracker
from .reminders import ReminderScheduler, ReminderTimer, SweepResult
from .system import AlertingSystem
from .visibility import VisibilityResolver

__all__ = [
    # Models
    "Alert",
    "AlertStatus",
    "DeliveryRecord",
    "DeliveryType",
    "NotificationStatus",
    "Preference",
    "Severity",
    "Team",
    "User",
    "UserRole",
    "VisibilityTarget",
    "VisibilityType",
    # Errors
    "AlertingError",
    "ChannelDeliveryFailure",
    "NotFound",
    "UnknownChannel",
    # Channels
    "ChannelRegistry",
    "NotificationChannel",
    "InAppChannel",
    "EmailChannel",
    "SMSChannel",
    # Services
    "AlertManager",
    "AnalyticsEngine",
    "DeliveryEngine",
    "PreferenceTracker",
    "ReminderScheduler",
    "ReminderTimer",
    "SweepResult",
    "VisibilityResolver",
    "AlertingSystem",
]
