from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from alert_delivery.channels import ChannelRegistry, InAppChannel, NotificationChannel, SMSChannel
from alert_delivery.config import Settings
from alert_delivery.errors import ChannelDeliveryFailure
from alert_delivery.models import DeliveryType, Severity, UserRole, VisibilityType
from alert_delivery.system import AlertingSystem

NOW = datetime(2026, 3, 10, 9, 30)


class FlakyEmailChannel(NotificationChannel):
    """Email channel that fails for a configurable set of user ids."""

    delivery_type = DeliveryType.EMAIL

    def __init__(self, failing_user_ids=(), raise_error=False):
        self.failing_user_ids = set(failing_user_ids)
        self.raise_error = raise_error
        self.sent = []

    def deliver(self, alert, user):
        if user.id in self.failing_user_ids:
            if self.raise_error:
                raise ChannelDeliveryFailure(self.get_type(), user.id, "smtp timeout")
            return False
        self.sent.append((alert.id, user.id))
        return True


@pytest.fixture
def settings():
    return Settings(START_REMINDER_TIMER=False, REMINDER_SWEEP_INTERVAL_MINUTES=2)


@pytest.fixture
def email_channel():
    return FlakyEmailChannel()


@pytest.fixture
def system(settings, email_channel):
    channels = ChannelRegistry([InAppChannel(), email_channel, SMSChannel()])
    return AlertingSystem(settings, channels)


@pytest.fixture
def org(system):
    """Two teams: t1 with u1, u2 and an admin; t2 with u3. u4 has no team."""
    t1 = system.add_team("Engineering")
    t2 = system.add_team("Marketing")
    return SimpleNamespace(
        t1=t1,
        t2=t2,
        admin=system.add_user("admin@example.com", "Admin", UserRole.ADMIN, t1.id),
        u1=system.add_user("u1@example.com", "User One", team_id=t1.id),
        u2=system.add_user("u2@example.com", "User Two", team_id=t1.id),
        u3=system.add_user("u3@example.com", "User Three", team_id=t2.id),
        u4=system.add_user("u4@example.com", "User Four"),
    )


@pytest.fixture
def make_alert(system, org):
    """Create (but do not deliver) an alert that started an hour before NOW."""

    def _make(**overrides):
        kwargs = dict(
            title="Database maintenance",
            message="Writes are paused tonight",
            severity=Severity.WARNING,
            delivery_type=DeliveryType.IN_APP,
            visibility_type=VisibilityType.TEAM,
            created_by=org.admin.id,
            start_time=NOW - timedelta(hours=1),
            reminder_frequency_minutes=120,
            target_team_ids=[org.t1.id],
        )
        kwargs.update(overrides)
        alert, _ = system.create_alert(deliver=False, **kwargs)
        return alert

    return _make
