"""Entitlement resolution: who may submit a request right now.

A session is bound to exactly one ``EntitlementSource``. When an admin test
override is present (and allowed) it replaces billing entirely; otherwise
the billing status service is consulted and any failure resolves to "not
subscribed".
"""

from __future__ import annotations

import logging
import time
from typing import Literal, Protocol, runtime_checkable

from ezfoia.auth.models import AuthenticatedUser
from ezfoia.billing.catalog import PlanCatalog
from ezfoia.billing.models import (
    UNLIMITED,
    EntitlementSnapshot,
    EntitlementStatus,
    TestOverride,
)
from ezfoia.billing.override import TestOverrideStore
from ezfoia.billing.service import BillingStatusService
from ezfoia.core.types import EntitlementSourceKind
from ezfoia.repositories import resolve
from ezfoia.repositories.protocols import RequestRepository

logger = logging.getLogger(__name__)

FREE_PLAN_NAME = "Free"
ACTIVE_PLAN_NAME = "Active Plan"


@runtime_checkable
class EntitlementSource(Protocol):
    """Where a session's entitlement snapshot comes from."""

    kind: EntitlementSourceKind

    async def snapshot(self, user: AuthenticatedUser) -> EntitlementSnapshot: ...


class BillingEntitlementSource:
    """Billing-backed source with a short per-user cache.

    The cache is a fallback; the billing webhook calls ``invalidate``.
    Failures are not cached.
    """

    kind = EntitlementSourceKind.BILLING

    def __init__(self, service: BillingStatusService, cache_ttl_seconds: int = 60) -> None:
        self._service = service
        self._ttl = cache_ttl_seconds
        self._cache: dict[str, tuple[float, EntitlementSnapshot]] = {}

    async def snapshot(self, user: AuthenticatedUser) -> EntitlementSnapshot:
        cached = self._cache.get(user.user_id)
        if cached is not None and time.monotonic() - cached[0] < self._ttl:
            return cached[1]

        status = await self._service.fetch_status(user)
        snap = EntitlementSnapshot(
            subscribed=status.subscribed,
            product_id=status.product_id,
            price_id=status.price_id,
            subscription_end=status.subscription_end,
            payment_type=status.payment_type,
            source=EntitlementSourceKind.BILLING,
        )
        if self._ttl > 0:
            self._cache[user.user_id] = (time.monotonic(), snap)
        return snap

    def invalidate(self, user_id: str | None = None) -> None:
        """Drop the cached snapshot for one user, or for everyone."""
        if user_id is None:
            self._cache.clear()
        else:
            self._cache.pop(user_id, None)


class TestOverrideEntitlementSource:
    """Source that reports the admin override as an active subscription."""

    __test__ = False
    kind = EntitlementSourceKind.TEST_OVERRIDE

    def __init__(self, override: TestOverride) -> None:
        self.override = override

    async def snapshot(self, user: AuthenticatedUser) -> EntitlementSnapshot:
        return EntitlementSnapshot(
            subscribed=True,
            product_id=self.override.product_id,
            source=EntitlementSourceKind.TEST_OVERRIDE,
        )


class EntitlementResolver:
    """Combines a snapshot, the plan catalogue and the usage count."""

    def __init__(
        self,
        source: EntitlementSource,
        catalog: PlanCatalog,
        requests: RequestRepository | None = None,
    ) -> None:
        self.source = source
        self._catalog = catalog
        self._requests = requests

    async def resolve(self, user: AuthenticatedUser) -> EntitlementSnapshot:
        """Return the user's snapshot. Never raises; fails closed."""
        try:
            return await self.source.snapshot(user)
        except Exception:
            logger.exception(
                "Entitlement check failed for user %s; treating as unsubscribed",
                user.user_id,
            )
            return EntitlementSnapshot.denied()

    def plan_limit(self, product_id: str | None) -> int:
        plan = self._catalog.plan_for_product(product_id)
        if plan is None:
            if product_id:
                logger.warning("Unrecognized product id %s has no request allowance", product_id)
            return 0
        return plan.request_limit

    def can_submit(self, snapshot: EntitlementSnapshot, used: int) -> bool:
        if not snapshot.subscribed:
            return False
        limit = self.plan_limit(snapshot.product_id)
        return limit == UNLIMITED or used < limit

    @staticmethod
    def remaining(limit: int, used: int) -> int | Literal["Unlimited"]:
        if limit == UNLIMITED:
            return "Unlimited"
        return max(0, limit - used)

    def plan_name(self, product_id: str | None, subscribed: bool = True) -> str:
        if not subscribed or not product_id:
            return FREE_PLAN_NAME
        plan = self._catalog.plan_for_product(product_id)
        return plan.name if plan is not None else ACTIVE_PLAN_NAME

    async def usage(self, user_id: str) -> int:
        if self._requests is None:
            return 0
        return await resolve(self._requests.count_for_user(user_id))

    async def status(self, user: AuthenticatedUser, used: int | None = None) -> EntitlementStatus:
        """Usage-counter view for the dashboard."""
        snap = await self.resolve(user)
        if used is None:
            used = await self.usage(user.user_id)
        limit = self.plan_limit(snap.product_id) if snap.subscribed else 0
        can_submit = self.can_submit(snap, used)

        plan_name = self.plan_name(snap.product_id, snap.subscribed)
        if isinstance(self.source, TestOverrideEntitlementSource) and self.source.override.plan_name:
            plan_name = self.source.override.plan_name

        return EntitlementStatus(
            snapshot=snap,
            plan_name=plan_name,
            used=used,
            limit=limit,
            remaining=self.remaining(limit, used),
            can_submit=can_submit,
            at_limit=snap.subscribed and not can_submit,
        )


class EntitlementService:
    """Builds one resolver per session and routes cache invalidation."""

    def __init__(
        self,
        billing: BillingEntitlementSource,
        overrides: TestOverrideStore,
        catalog: PlanCatalog,
        requests: RequestRepository | None = None,
        allow_test_override: bool = False,
    ) -> None:
        self.billing = billing
        self.overrides = overrides
        self.catalog = catalog
        self._requests = requests
        self.allow_test_override = allow_test_override

    async def source_for(self, user: AuthenticatedUser) -> EntitlementSource:
        if self.allow_test_override:
            override = await self.overrides.read(user.user_id)
            if override is not None:
                logger.info(
                    "Using test subscription override for user %s: product=%s",
                    user.user_id, override.product_id,
                )
                return TestOverrideEntitlementSource(override)
        return self.billing

    async def resolver_for(self, user: AuthenticatedUser) -> EntitlementResolver:
        source = await self.source_for(user)
        return EntitlementResolver(source, self.catalog, self._requests)

    def invalidate(self, user_id: str | None = None) -> None:
        self.billing.invalidate(user_id)
