"""Submission data models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from ezfoia.core.types import RequestStatus

AGENCY_NAME_MAX = 200
DESCRIPTION_MAX = 20_000


class RequestRecord(BaseModel):
    """A persisted request. Owned by storage; never mutated by the wizard."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    agency_name: str
    agency_type: str
    record_type: str
    record_description: str
    status: RequestStatus = RequestStatus.SUBMITTED
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PendingSubmission(BaseModel):
    """A draft deferred behind payment, stored in the ``pending_request`` slot."""

    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(min_length=1)
    reference: str = Field(default_factory=lambda: str(uuid.uuid4()))
    agency_name: str = Field(min_length=2, max_length=AGENCY_NAME_MAX)
    agency_type: str = Field(min_length=1)
    record_type: str = Field(min_length=1)
    record_description: str = Field(min_length=1, max_length=DESCRIPTION_MAX)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SubmissionStatus(StrEnum):
    SUBMITTED = "submitted"
    DEFERRED = "deferred"
    AWAITING_PAYMENT = "awaiting_payment"
    NOTHING_PENDING = "nothing_pending"


class SubmissionOutcome(BaseModel):
    """Result of a submission attempt or a pending-submission consumption."""

    status: SubmissionStatus
    record: RequestRecord | None = None
    pending: PendingSubmission | None = None
