"""Tests for recipient resolution and per-user alert visibility."""

from datetime import timedelta

from alert_delivery.models import AlertStatus, VisibilityType
from tests.conftest import NOW


def _ids(users):
    return {user.id for user in users}


class TestResolveRecipients:
    """Tests for VisibilityResolver.resolve_recipients."""

    def test_organization_targets_every_member(self, system, org, make_alert):
        alert = make_alert(visibility_type=VisibilityType.ORGANIZATION, target_team_ids=[])

        recipients = system.visibility.resolve_recipients(alert)

        assert _ids(recipients) == {org.u1.id, org.u2.id, org.u3.id, org.u4.id}

    def test_organization_picks_up_members_added_later(self, system, org, make_alert):
        alert = make_alert(visibility_type=VisibilityType.ORGANIZATION, target_team_ids=[])
        late = system.add_user("late@example.com", "Late Joiner")

        assert late.id in _ids(system.visibility.resolve_recipients(alert))

    def test_team_union_is_deduplicated(self, system, org, make_alert):
        alert = make_alert(target_team_ids=[org.t1.id, org.t2.id])

        recipients = system.visibility.resolve_recipients(alert, [org.t1.id, org.t2.id, org.t1.id])

        assert len(recipients) == 3
        assert _ids(recipients) == {org.u1.id, org.u2.id, org.u3.id}

    def test_team_excludes_admins(self, system, org, make_alert):
        alert = make_alert()

        recipients = system.visibility.resolve_recipients(alert, [org.t1.id])

        assert org.admin.id not in _ids(recipients)

    def test_unknown_team_and_user_ids_are_ignored(self, system, org, make_alert):
        team_alert = make_alert(target_team_ids=["missing-team"])
        user_alert = make_alert(visibility_type=VisibilityType.USER, target_team_ids=[],
                                target_user_ids=[org.u3.id, "ghost"])

        assert system.visibility.resolve_recipients(team_alert, ["missing-team"]) == []
        assert _ids(system.visibility.resolve_for_alert(user_alert)) == {org.u3.id}

    def test_resolve_for_alert_uses_stored_targets(self, system, org, make_alert):
        alert = make_alert(target_team_ids=[org.t2.id])

        assert _ids(system.visibility.resolve_for_alert(alert)) == {org.u3.id}


class TestIsVisibleTo:
    """Tests for VisibilityResolver.is_visible_to and alerts_for_user."""

    def test_organization_alert_visible_to_everyone(self, system, org, make_alert):
        alert = make_alert(visibility_type=VisibilityType.ORGANIZATION, target_team_ids=[])

        assert system.visibility.is_visible_to(alert, org.u4, NOW) is True

    def test_team_alert_visible_only_to_that_team(self, system, org, make_alert):
        alert = make_alert()

        assert system.visibility.is_visible_to(alert, org.u1, NOW) is True
        assert system.visibility.is_visible_to(alert, org.u3, NOW) is False
        assert system.visibility.is_visible_to(alert, org.u4, NOW) is False

    def test_user_alert_visible_only_to_listed_users(self, system, org, make_alert):
        alert = make_alert(visibility_type=VisibilityType.USER, target_team_ids=[],
                           target_user_ids=[org.u2.id])

        assert system.visibility.is_visible_to(alert, org.u2, NOW) is True
        assert system.visibility.is_visible_to(alert, org.u1, NOW) is False
        assert system.visibility.is_visible_to(alert, org.u4, NOW) is False

    def test_inactive_alert_is_not_visible(self, system, org, make_alert):
        future = make_alert(start_time=NOW + timedelta(hours=1))
        expired = make_alert(expiry_time=NOW)
        archived = make_alert()
        archived = system.alert_manager.update_alert(archived.id, status=AlertStatus.ARCHIVED)

        for alert in (future, expired, archived):
            assert system.visibility.is_visible_to(alert, org.u1, NOW) is False

    def test_alerts_for_user(self, system, org, make_alert):
        team_alert = make_alert()
        org_alert = make_alert(visibility_type=VisibilityType.ORGANIZATION, target_team_ids=[])
        make_alert(target_team_ids=[org.t2.id])

        alerts = system.visibility.alerts_for_user(org.u1.id, NOW)

        assert {a.id for a in alerts} == {team_alert.id, org_alert.id}
        assert system.visibility.alerts_for_user("ghost", NOW) == []
