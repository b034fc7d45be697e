"""
In-memory repositories.

Every entity kind is held by one ``InMemoryStore``; the repositories below
wrap a store and add their own filtered queries. All reads hand back copies,
so callers never mutate stored rows directly, and ``update`` merges only the
fields it is given while holding the store lock.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from .models import (
    Alert,
    AlertStatus,
    DeliveryRecord,
    Preference,
    Team,
    User,
    UserRole,
    VisibilityTarget,
    new_id,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InMemoryStore(Generic[T]):
    def __init__(self):
        self._rows: Dict[str, T] = {}
        self.lock = threading.RLock()

    def find_by_id(self, entity_id: str) -> Optional[T]:
        with self.lock:
            row = self._rows.get(entity_id)
            return replace(row) if row is not None else None

    def find_all(self) -> List[T]:
        with self.lock:
            return [replace(row) for row in self._rows.values()]

    def create(self, entity: T) -> T:
        with self.lock:
            if entity.id in self._rows:
                raise ValueError(f"Duplicate id: {entity.id}")
            self._rows[entity.id] = replace(entity)
            return replace(entity)

    def update(self, entity_id: str, **fields) -> Optional[T]:
        with self.lock:
            existing = self._rows.get(entity_id)
            if existing is None:
                return None
            updated = replace(existing, **fields)
            self._rows[entity_id] = updated
            return replace(updated)

    def delete(self, entity_id: str) -> bool:
        with self.lock:
            return self._rows.pop(entity_id, None) is not None

    def filter(self, predicate: Callable[[T], bool]) -> List[T]:
        with self.lock:
            return [replace(row) for row in self._rows.values() if predicate(row)]

    def first(self, predicate: Callable[[T], bool]) -> Optional[T]:
        with self.lock:
            for row in self._rows.values():
                if predicate(row):
                    return replace(row)
            return None


class Repository(Generic[T]):
    """Uniform CRUD surface shared by all repositories."""

    def __init__(self, store: Optional[InMemoryStore] = None):
        self.store: InMemoryStore[T] = store if store is not None else InMemoryStore()

    def find_by_id(self, entity_id: str) -> Optional[T]:
        return self.store.find_by_id(entity_id)

    def find_all(self) -> List[T]:
        return self.store.find_all()

    def create(self, entity: T) -> T:
        return self.store.create(entity)

    def update(self, entity_id: str, **fields) -> Optional[T]:
        return self.store.update(entity_id, **fields)

    def delete(self, entity_id: str) -> bool:
        return self.store.delete(entity_id)


class TeamRepository(Repository[Team]):
    pass


class UserRepository(Repository[User]):
    def find_by_email(self, email: str) -> Optional[User]:
        return self.store.first(lambda user: user.email == email)

    def find_by_role(self, role: UserRole) -> List[User]:
        return self.store.filter(lambda user: user.role == role)

    def find_by_team(self, team_id: str) -> List[User]:
        return self.store.filter(lambda user: user.team_id == team_id)


class AlertRepository(Repository[Alert]):
    def find_by_status(self, status: AlertStatus) -> List[Alert]:
        return self.store.filter(lambda alert: alert.status == status)

    def find_by_creator(self, user_id: str) -> List[Alert]:
        return self.store.filter(lambda alert: alert.created_by == user_id)

    def find_active(self, now: Optional[datetime] = None) -> List[Alert]:
        now = now or datetime.now()
        return self.store.filter(lambda alert: alert.is_active(now))


class VisibilityRepository(Repository[VisibilityTarget]):
    def find_by_alert(self, alert_id: str) -> List[VisibilityTarget]:
        return self.store.filter(lambda target: target.alert_id == alert_id)

    def delete_by_alert(self, alert_id: str) -> int:
        with self.store.lock:
            targets = self.find_by_alert(alert_id)
            for target in targets:
                self.store.delete(target.id)
        return len(targets)


class DeliveryRepository(Repository[DeliveryRecord]):
    def update(self, entity_id: str, **fields) -> Optional[DeliveryRecord]:
        raise TypeError("Delivery records are append-only")

    def find_by_user(self, user_id: str) -> List[DeliveryRecord]:
        return self.store.filter(lambda record: record.user_id == user_id)

    def find_by_alert(self, alert_id: str) -> List[DeliveryRecord]:
        return self.store.filter(lambda record: record.alert_id == alert_id)


class PreferenceRepository(Repository[Preference]):
    def find_by_user(self, user_id: str) -> List[Preference]:
        return self.store.filter(lambda pref: pref.user_id == user_id)

    def find_by_alert(self, alert_id: str) -> List[Preference]:
        return self.store.filter(lambda pref: pref.alert_id == alert_id)

    def find_by_user_and_alert(self, user_id: str, alert_id: str) -> Optional[Preference]:
        return self.store.first(
            lambda pref: pref.user_id == user_id and pref.alert_id == alert_id
        )

    def get_or_create(self, alert_id: str, user_id: str, now: datetime) -> Preference:
        with self.store.lock:
            existing = self.find_by_user_and_alert(user_id, alert_id)
            if existing is not None:
                return existing
            logger.debug("Creating preference for alert %s / user %s", alert_id, user_id)
            return self.store.create(Preference(
                id=new_id(),
                alert_id=alert_id,
                user_id=user_id,
                created_at=now,
                updated_at=now,
            ))
