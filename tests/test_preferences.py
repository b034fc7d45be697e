"""Tests for the Preference Tracker state transitions."""

from datetime import datetime, timedelta

from alert_delivery.models import NotificationStatus
from alert_delivery.preferences import end_of_day
from tests.conftest import NOW


class TestPreferenceTracker:
    """Tests for mark_read / snooze and derived status."""

    def test_mark_read(self, system, org, make_alert):
        alert = make_alert()
        system.deliver_alert(alert.id, now=NOW)

        later = NOW + timedelta(minutes=3)
        preference = system.preferences.mark_read(org.u1.id, alert.id, later)

        assert preference.is_read is True
        assert preference.updated_at == later
        assert system.preferences.status_of(preference, later) == NotificationStatus.READ

    def test_mark_read_is_idempotent(self, system, org, make_alert):
        alert = make_alert()
        system.deliver_alert(alert.id, now=NOW)

        system.preferences.mark_read(org.u1.id, alert.id, NOW)
        system.preferences.mark_read(org.u1.id, alert.id, NOW)

        assert system.preferences.get(org.u1.id, alert.id).is_read is True
        assert len(system.preference_repository.find_by_alert(alert.id)) == 2

    def test_operations_without_preference_are_noops(self, system, org, make_alert):
        alert = make_alert()

        assert system.preferences.mark_read(org.u1.id, alert.id, NOW) is None
        assert system.preferences.snooze(org.u1.id, alert.id, NOW) is None
        assert system.preference_repository.find_all() == []

    def test_snooze_until_end_of_day(self, system, org, make_alert):
        alert = make_alert()
        system.deliver_alert(alert.id, now=NOW)

        preference = system.preferences.snooze(org.u2.id, alert.id, NOW)

        assert preference.snoozed_until == datetime(2026, 3, 10, 23, 59, 59, 999000)
        assert preference.is_read is False
        assert system.preferences.status_of(preference, NOW) == NotificationStatus.SNOOZED
        next_day = NOW + timedelta(days=1)
        assert system.preferences.status_of(preference, next_day) == NotificationStatus.UNREAD

    def test_resnooze_replaces_deadline(self, system, org, make_alert):
        alert = make_alert()
        system.deliver_alert(alert.id, now=NOW)
        system.preferences.snooze(org.u2.id, alert.id, NOW)

        tomorrow = NOW + timedelta(days=1)
        preference = system.preferences.snooze(org.u2.id, alert.id, tomorrow)

        assert preference.snoozed_until == end_of_day(tomorrow)

    def test_read_after_snooze_stays_read(self, system, org, make_alert):
        alert = make_alert()
        system.deliver_alert(alert.id, now=NOW)

        system.preferences.snooze(org.u1.id, alert.id, NOW)
        preference = system.preferences.mark_read(org.u1.id, alert.id, NOW)

        assert preference.is_read is True
        assert system.preferences.status_of(preference, NOW) == NotificationStatus.READ

    def test_reminder_update_does_not_clobber_read(self, system, org, make_alert):
        alert = make_alert()
        system.deliver_alert(alert.id, now=NOW)
        stale = system.preferences.get(org.u1.id, alert.id)

        system.preferences.mark_read(org.u1.id, alert.id, NOW)
        system.preferences.record_reminder(stale.id, NOW + timedelta(minutes=1))

        current = system.preferences.get(org.u1.id, alert.id)
        assert current.is_read is True
        assert current.last_reminded_at == NOW + timedelta(minutes=1)

    def test_preferences_for_user(self, system, org, make_alert):
        first = make_alert()
        second = make_alert()
        system.deliver_alert(first.id, now=NOW)
        system.deliver_alert(second.id, now=NOW)

        alert_ids = {p.alert_id for p in system.preferences.preferences_for_user(org.u1.id)}

        assert alert_ids == {first.id, second.id}
        assert system.preferences.preferences_for_user(org.u3.id) == []
