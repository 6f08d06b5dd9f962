"""Tests for entitlement resolution and quota arithmetic."""

from __future__ import annotations

import pytest

from ezfoia.billing.entitlement import (
    BillingEntitlementSource,
    EntitlementResolver,
    EntitlementService,
    TestOverrideEntitlementSource,
)
from ezfoia.billing.models import UNLIMITED, BillingStatus, EntitlementSnapshot, TestOverride
from ezfoia.billing.override import TestOverrideStore
from ezfoia.billing.service import MockBillingStatusService
from ezfoia.core.types import BillingPeriod, EntitlementSourceKind, PlanKey
from ezfoia.storage.slots import TEST_SUBSCRIPTION_KEY, SlotStore
from ezfoia.submission.models import RequestRecord
from ezfoia.submission.store import RequestStore

from tests.conftest import JANE, product_id, subscribed

UNKNOWN_PRODUCT = "prod_unknown"


@pytest.fixture
def billing() -> MockBillingStatusService:
    return MockBillingStatusService()


@pytest.fixture
def resolver(billing, catalog) -> EntitlementResolver:
    return EntitlementResolver(BillingEntitlementSource(billing, cache_ttl_seconds=0), catalog)


def _snapshot(catalog, plan: PlanKey | None, subscribed_: bool = True) -> EntitlementSnapshot:
    pid = product_id(catalog, plan) if plan is not None else UNKNOWN_PRODUCT
    return EntitlementSnapshot(subscribed=subscribed_, product_id=pid)


class TestPlanLimit:
    def test_known_products(self, resolver, catalog):
        assert resolver.plan_limit(product_id(catalog, PlanKey.SINGLE)) == 1
        assert resolver.plan_limit(product_id(catalog, PlanKey.PROFESSIONAL)) == 5
        assert resolver.plan_limit(product_id(catalog, PlanKey.ENTERPRISE)) == UNLIMITED

    def test_annual_products_map_to_same_plan(self, resolver, catalog):
        annual = product_id(catalog, PlanKey.PROFESSIONAL, BillingPeriod.ANNUAL)
        assert resolver.plan_limit(annual) == 5

    def test_unknown_product_has_no_allowance(self, resolver, caplog):
        assert resolver.plan_limit(UNKNOWN_PRODUCT) == 0
        assert "Unrecognized product id" in caplog.text

    def test_missing_product(self, resolver):
        assert resolver.plan_limit(None) == 0
        assert resolver.plan_limit("") == 0


class TestCanSubmit:
    @pytest.mark.parametrize(
        "plan", [PlanKey.SINGLE, PlanKey.PROFESSIONAL, PlanKey.ENTERPRISE, None]
    )
    @pytest.mark.parametrize("is_subscribed", [True, False])
    def test_grid(self, resolver, catalog, plan, is_subscribed):
        snap = _snapshot(catalog, plan, is_subscribed)
        limit = resolver.plan_limit(snap.product_id)
        top = (limit if limit != UNLIMITED else 5) + 2
        for used in range(top + 1):
            expected = is_subscribed and (limit == UNLIMITED or used < limit)
            assert resolver.can_submit(snap, used) is expected, (plan, used)

    def test_professional_with_one_left(self, resolver, catalog):
        snap = _snapshot(catalog, PlanKey.PROFESSIONAL)
        assert resolver.can_submit(snap, 4)
        assert resolver.remaining(5, 4) == 1

    def test_professional_at_limit(self, resolver, catalog):
        snap = _snapshot(catalog, PlanKey.PROFESSIONAL)
        assert not resolver.can_submit(snap, 5)
        assert resolver.remaining(5, 5) == 0

    def test_enterprise_is_unlimited(self, resolver, catalog):
        snap = _snapshot(catalog, PlanKey.ENTERPRISE)
        assert resolver.can_submit(snap, 1000)
        assert resolver.remaining(UNLIMITED, 1000) == "Unlimited"

    @pytest.mark.parametrize("plan", [PlanKey.SINGLE, PlanKey.ENTERPRISE, None])
    def test_unsubscribed_never_submits(self, resolver, catalog, plan):
        assert not resolver.can_submit(_snapshot(catalog, plan, subscribed_=False), 0)

    def test_unrecognized_subscribed_product(self, resolver, catalog):
        snap = _snapshot(catalog, None)
        assert resolver.plan_limit(snap.product_id) == 0
        assert not resolver.can_submit(snap, 0)

    def test_remaining_never_negative(self, resolver):
        assert resolver.remaining(1, 3) == 0


class TestResolve:
    async def test_reads_billing(self, billing, resolver, catalog):
        billing.set_status(JANE.user_id, subscribed(catalog, PlanKey.SINGLE))
        snap = await resolver.resolve(JANE)
        assert snap.subscribed
        assert snap.product_id == product_id(catalog, PlanKey.SINGLE)
        assert snap.source == EntitlementSourceKind.BILLING

    async def test_fails_closed(self, billing, resolver):
        billing.fail_for(JANE.user_id)
        snap = await resolver.resolve(JANE)
        assert snap == EntitlementSnapshot.denied()

    async def test_unknown_user_is_unsubscribed(self, resolver):
        snap = await resolver.resolve(JANE)
        assert not snap.subscribed


class TestBillingCache:
    async def test_snapshot_cached(self, billing, catalog):
        source = BillingEntitlementSource(billing, cache_ttl_seconds=300)
        await source.snapshot(JANE)
        await source.snapshot(JANE)
        assert billing.calls == 1

    async def test_invalidate_refetches(self, billing, catalog):
        source = BillingEntitlementSource(billing, cache_ttl_seconds=300)
        first = await source.snapshot(JANE)
        billing.set_status(JANE.user_id, subscribed(catalog, PlanKey.ENTERPRISE))

        assert (await source.snapshot(JANE)) == first
        source.invalidate(JANE.user_id)
        assert (await source.snapshot(JANE)).subscribed
        assert billing.calls == 2

    async def test_invalidate_everyone(self, billing):
        source = BillingEntitlementSource(billing, cache_ttl_seconds=300)
        await source.snapshot(JANE)
        source.invalidate()
        await source.snapshot(JANE)
        assert billing.calls == 2

    async def test_failures_not_cached(self, billing, catalog):
        source = BillingEntitlementSource(billing, cache_ttl_seconds=300)
        resolver = EntitlementResolver(source, catalog)
        billing.fail_for(JANE.user_id)
        assert not (await resolver.resolve(JANE)).subscribed

        billing.set_status(JANE.user_id, subscribed(catalog, PlanKey.SINGLE))
        assert (await resolver.resolve(JANE)).subscribed


class TestOverrides:
    @pytest.fixture
    def slots(self) -> SlotStore:
        return SlotStore()

    def _service(self, billing, slots, catalog, allow: bool) -> EntitlementService:
        return EntitlementService(
            billing=BillingEntitlementSource(billing, cache_ttl_seconds=0),
            overrides=TestOverrideStore(slots),
            catalog=catalog,
            allow_test_override=allow,
        )

    async def test_override_replaces_billing(self, billing, slots, catalog):
        billing.fail_for(JANE.user_id)
        service = self._service(billing, slots, catalog, allow=True)
        await service.overrides.write(
            JANE.user_id,
            TestOverride(product_id=product_id(catalog, PlanKey.ENTERPRISE), plan_name="QA"),
        )

        resolver = await service.resolver_for(JANE)
        snap = await resolver.resolve(JANE)

        assert isinstance(resolver.source, TestOverrideEntitlementSource)
        assert snap.subscribed
        assert snap.source == EntitlementSourceKind.TEST_OVERRIDE
        assert billing.calls == 0

    async def test_override_ignored_when_disabled(self, billing, slots, catalog):
        service = self._service(billing, slots, catalog, allow=False)
        await service.overrides.write(
            JANE.user_id, TestOverride(product_id=product_id(catalog, PlanKey.ENTERPRISE))
        )
        resolver = await service.resolver_for(JANE)
        assert not (await resolver.resolve(JANE)).subscribed
        assert billing.calls == 1

    async def test_malformed_override_dropped(self, billing, slots, catalog):
        slots.put(JANE.user_id, TEST_SUBSCRIPTION_KEY, '{"plan_name": 3')
        service = self._service(billing, slots, catalog, allow=True)
        resolver = await service.resolver_for(JANE)
        assert resolver.source is service.billing
        assert slots.get(JANE.user_id, TEST_SUBSCRIPTION_KEY) is None

    async def test_override_is_per_user(self, billing, slots, catalog):
        service = self._service(billing, slots, catalog, allow=True)
        await service.overrides.write(
            "someone-else", TestOverride(product_id=product_id(catalog, PlanKey.SINGLE))
        )
        resolver = await service.resolver_for(JANE)
        assert resolver.source is service.billing


class TestStatus:
    async def test_plan_names(self, resolver, catalog):
        assert resolver.plan_name(None) == "Free"
        assert resolver.plan_name(product_id(catalog, PlanKey.SINGLE), subscribed=False) == "Free"
        assert resolver.plan_name(product_id(catalog, PlanKey.PROFESSIONAL)) == "Professional"
        assert resolver.plan_name(UNKNOWN_PRODUCT) == "Active Plan"

    async def test_status_counts_usage(self, billing, catalog):
        requests = RequestStore()
        for _ in range(2):
            requests.insert_within_quota(
                RequestRecord(
                    user_id=JANE.user_id,
                    agency_name="FBI",
                    agency_type="federal",
                    record_type="other",
                    record_description="x" * 20,
                ),
                None,
            )
        billing.set_status(JANE.user_id, subscribed(catalog, PlanKey.PROFESSIONAL))
        resolver = EntitlementResolver(
            BillingEntitlementSource(billing, cache_ttl_seconds=0), catalog, requests
        )

        status = await resolver.status(JANE)

        assert status.plan_name == "Professional"
        assert status.used == 2
        assert status.limit == 5
        assert status.remaining == 3
        assert status.can_submit
        assert not status.at_limit

    async def test_status_at_limit(self, billing, catalog, resolver):
        billing.set_status(JANE.user_id, subscribed(catalog, PlanKey.SINGLE))
        status = await resolver.status(JANE, used=1)
        assert status.at_limit
        assert status.remaining == 0

    async def test_status_unsubscribed(self, resolver):
        status = await resolver.status(JANE, used=3)
        assert status.plan_name == "Free"
        assert status.limit == 0
        assert not status.can_submit
        assert not status.at_limit

    async def test_status_uses_override_plan_name(self, catalog):
        source = TestOverrideEntitlementSource(
            TestOverride(product_id=product_id(catalog, PlanKey.ENTERPRISE), plan_name="QA Plan")
        )
        status = await EntitlementResolver(source, catalog).status(JANE, used=0)
        assert status.plan_name == "QA Plan"
        assert status.remaining == "Unlimited"

    async def test_unknown_subscribed_product_status(self, billing, catalog, resolver):
        billing.set_status(JANE.user_id, BillingStatus(subscribed=True, product_id=UNKNOWN_PRODUCT))
        status = await resolver.status(JANE, used=0)
        assert status.plan_name == "Active Plan"
        assert status.limit == 0
        assert status.at_limit
