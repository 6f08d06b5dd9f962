"""Notification data models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class NotificationChannel(StrEnum):
    EMAIL = "email"
    SMS = "sms"


class NotificationStatus(StrEnum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


class Notification(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    request_id: str = ""
    channel: NotificationChannel = NotificationChannel.EMAIL
    recipient: str = ""
    subject: str = ""
    body: str = ""
    status: NotificationStatus = NotificationStatus.PENDING
    template_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    delivered_at: datetime | None = None


class NotificationTemplate(BaseModel):
    id: str
    subject: str
    body: str
    channel: NotificationChannel = NotificationChannel.EMAIL


class ConfirmationRequest(BaseModel):
    """Input of the request-submitted confirmation."""

    recipient: str
    name: str
    agency_name: str
    record_type: str
    request_id: str

    @property
    def tracking_id(self) -> str:
        return self.request_id[:8].upper()
