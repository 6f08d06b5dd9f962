"""Billing and entitlement data models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from ezfoia.core.types import BillingPeriod, CheckoutMode, EntitlementSourceKind, PlanKey

UNLIMITED = -1


class PlanPrice(BaseModel):
    price_id: str
    product_id: str


class PlanDefinition(BaseModel):
    """A purchasable plan loaded from the plan catalogue."""

    key: PlanKey
    name: str
    request_limit: int
    mode: CheckoutMode
    prices: dict[BillingPeriod, PlanPrice]
    price_label: str = ""
    period_label: str = ""

    @property
    def product_ids(self) -> set[str]:
        return {p.product_id for p in self.prices.values()}


class BillingStatus(BaseModel):
    """Raw response of the billing status service."""

    subscribed: bool = False
    product_id: str | None = None
    price_id: str | None = None
    subscription_end: datetime | None = None
    payment_type: Literal["subscription", "one_time"] | None = None


class TestOverride(BaseModel):
    """Admin-set plan override stored in the ``test_subscription`` slot."""

    __test__ = False

    product_id: str = Field(min_length=1)
    plan_name: str = ""


class EntitlementSnapshot(BaseModel):
    """Resolved subscription status for one user."""

    subscribed: bool = False
    product_id: str | None = None
    price_id: str | None = None
    subscription_end: datetime | None = None
    payment_type: str | None = None
    source: EntitlementSourceKind = EntitlementSourceKind.BILLING

    @classmethod
    def denied(cls) -> EntitlementSnapshot:
        return cls(subscribed=False)


class EntitlementStatus(BaseModel):
    """Usage counter view: snapshot plus quota arithmetic."""

    snapshot: EntitlementSnapshot
    plan_name: str
    used: int
    limit: int
    remaining: int | Literal["Unlimited"]
    can_submit: bool
    at_limit: bool


class CheckoutSession(BaseModel):
    url: str
    plan: PlanKey
    mode: CheckoutMode
