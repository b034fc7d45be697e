from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Optional
import uuid


def new_id() -> str:
    return str(uuid.uuid4())


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    # All engine timestamps are naive local time.
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


# ===== ENUMS =====
class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

class DeliveryType(Enum):
    IN_APP = "in_app"
    EMAIL = "email"
    SMS = "sms"

class VisibilityType(Enum):
    ORGANIZATION = "organization"
    TEAM = "team"
    USER = "user"

class AlertStatus(Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"

class UserRole(Enum):
    ADMIN = "admin"
    MEMBER = "member"

class NotificationStatus(Enum):
    UNREAD = "unread"
    READ = "read"
    SNOOZED = "snoozed"


# ===== REFERENCE ENTITIES =====
@dataclass
class Team:
    id: str
    name: str
    description: str = ""
    created_at: datetime = field(default_factory=datetime.now)

@dataclass
class User:
    id: str
    email: str
    name: str
    role: UserRole = UserRole.MEMBER
    team_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_member(self) -> bool:
        return self.role == UserRole.MEMBER


# ===== ALERTS =====
@dataclass
class Alert:
    id: str
    title: str
    message: str
    severity: Severity
    delivery_type: DeliveryType
    visibility_type: VisibilityType
    created_by: str
    start_time: datetime
    expiry_time: Optional[datetime] = None
    reminder_enabled: bool = True
    reminder_frequency_minutes: int = 120
    status: AlertStatus = AlertStatus.ACTIVE
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def reminder_frequency(self) -> timedelta:
        return timedelta(minutes=self.reminder_frequency_minutes)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        if self.status != AlertStatus.ACTIVE:
            return False
        if now < self.start_time:
            return False
        if self.expiry_time and self.expiry_time <= now:
            return False
        return True

@dataclass
class VisibilityTarget:
    """Links a team- or user-scoped alert to one team or one user."""
    id: str
    alert_id: str
    team_id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if (self.team_id is None) == (self.user_id is None):
            raise ValueError("A visibility target needs exactly one of team_id or user_id")


# ===== DELIVERY STATE =====
@dataclass
class DeliveryRecord:
    id: str
    alert_id: str
    user_id: str
    delivery_type: DeliveryType
    delivered_at: datetime
    is_reminder: bool = False
    created_at: datetime = field(default_factory=datetime.now)

@dataclass
class Preference:
    id: str
    alert_id: str
    user_id: str
    is_read: bool = False
    snoozed_until: Optional[datetime] = None
    last_reminded_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def is_snoozed(self, now: datetime) -> bool:
        return self.snoozed_until is not None and self.snoozed_until > now

    def is_due(self, alert: Alert, now: datetime) -> bool:
        if self.is_read:
            return False
        if self.is_snoozed(now):
            return False
        if not self.last_reminded_at:
            return True
        return now - self.last_reminded_at >= alert.reminder_frequency

@dataclass
class AlertAnalytics:
    total_alerts: int
    active_alerts: int
    archived_alerts: int
    alerts_by_severity: Dict[Severity, int]
    delivery_stats: Dict[str, int]
    snoozed_by_alert: Dict[str, int]
