"""Core type definitions shared across all EZFOIA modules."""

from __future__ import annotations

from enum import StrEnum


class Jurisdiction(StrEnum):
    """Level of government the request is addressed to."""

    FEDERAL = "federal"
    STATE = "state"
    LOCAL = "local"


class DateType(StrEnum):
    """How the requester describes the timeframe of the records."""

    EXACT = "exact"
    RANGE = "range"
    NOT_SURE = "not-sure"


class FormatPreference(StrEnum):
    """Delivery format the requester prefers."""

    DIGITAL = "digital"
    PHYSICAL = "physical"
    EASIEST = "easiest"


class PlanKey(StrEnum):
    """Purchasable plans."""

    SINGLE = "single"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


class BillingPeriod(StrEnum):
    MONTHLY = "monthly"
    ANNUAL = "annual"


class CheckoutMode(StrEnum):
    PAYMENT = "payment"
    SUBSCRIPTION = "subscription"


class EntitlementSourceKind(StrEnum):
    """Where an entitlement snapshot came from."""

    BILLING = "billing"
    TEST_OVERRIDE = "test_override"


class RequestStatus(StrEnum):
    """Lifecycle status of a persisted request record."""

    SUBMITTED = "submitted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DENIED = "denied"
