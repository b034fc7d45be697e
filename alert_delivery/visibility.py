import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .models import Alert, User, UserRole, VisibilityType
from .store import AlertRepository, UserRepository, VisibilityRepository

logger = logging.getLogger(__name__)


class VisibilityResolver:
    """Maps alerts to the member users they target, and back."""

    def __init__(self, user_repository: UserRepository,
                 visibility_repository: VisibilityRepository,
                 alert_repository: AlertRepository):
        self.user_repository = user_repository
        self.visibility_repository = visibility_repository
        self.alert_repository = alert_repository

    def resolve_recipients(self, alert: Alert, target_team_ids: Iterable[str] = (),
                           target_user_ids: Iterable[str] = ()) -> List[User]:
        recipients: Dict[str, User] = {}

        if alert.visibility_type == VisibilityType.ORGANIZATION:
            for user in self.user_repository.find_by_role(UserRole.MEMBER):
                recipients[user.id] = user
        elif alert.visibility_type == VisibilityType.TEAM:
            for team_id in target_team_ids:
                for user in self.user_repository.find_by_team(team_id):
                    if user.is_member:
                        recipients[user.id] = user
        elif alert.visibility_type == VisibilityType.USER:
            for user_id in target_user_ids:
                user = self.user_repository.find_by_id(user_id)
                if user is None:
                    logger.debug("Skipping unknown target user %s for alert %s", user_id, alert.id)
                    continue
                if user.is_member:
                    recipients[user.id] = user

        return list(recipients.values())

    def resolve_for_alert(self, alert: Alert) -> List[User]:
        """Resolve recipients from the alert's stored visibility targets."""
        targets = self.visibility_repository.find_by_alert(alert.id)
        return self.resolve_recipients(
            alert,
            [t.team_id for t in targets if t.team_id],
            [t.user_id for t in targets if t.user_id],
        )

    def is_visible_to(self, alert: Alert, user: User, now: Optional[datetime] = None) -> bool:
        if not alert.is_active(now):
            return False
        if alert.visibility_type == VisibilityType.ORGANIZATION:
            return True

        targets = self.visibility_repository.find_by_alert(alert.id)
        if alert.visibility_type == VisibilityType.TEAM:
            return user.team_id is not None and any(t.team_id == user.team_id for t in targets)
        if alert.visibility_type == VisibilityType.USER:
            return any(t.user_id == user.id for t in targets)
        return False

    def alerts_for_user(self, user_id: str, now: Optional[datetime] = None) -> List[Alert]:
        user = self.user_repository.find_by_id(user_id)
        if user is None:
            return []
        now = now or datetime.now()
        return [
            alert for alert in self.alert_repository.find_active(now)
            if self.is_visible_to(alert, user, now)
        ]
