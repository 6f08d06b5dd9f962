"""Notification service Protocol and mock implementation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from ezfoia.core.errors import NotificationFailure
from ezfoia.notifications.models import Notification, NotificationStatus
from ezfoia.notifications.store import NotificationStore


@runtime_checkable
class NotificationService(Protocol):
    """Protocol for notification delivery services."""

    def send(self, notification: Notification) -> Notification: ...

    def get_status(self, notification_id: str) -> NotificationStatus | None: ...


class MockNotificationService:
    """Mock notification service that immediately delivers all notifications.

    Set ``fail`` to make every send raise ``NotificationFailure``.
    """

    def __init__(self, store: NotificationStore | None = None, fail: bool = False) -> None:
        self._store = store or NotificationStore()
        self.fail = fail

    @property
    def store(self) -> NotificationStore:
        return self._store

    def send(self, notification: Notification) -> Notification:
        if self.fail:
            notification.status = NotificationStatus.FAILED
            self._store.save(notification)
            raise NotificationFailure(f"Delivery to {notification.recipient} failed")
        notification.status = NotificationStatus.DELIVERED
        notification.delivered_at = datetime.now(timezone.utc)
        self._store.save(notification)
        return notification

    def get_status(self, notification_id: str) -> NotificationStatus | None:
        n = self._store.get(notification_id)
        return n.status if n else None
