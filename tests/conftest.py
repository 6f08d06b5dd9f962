"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from ezfoia.auth.models import AuthenticatedUser
from ezfoia.billing.catalog import PlanCatalog
from ezfoia.billing.checkout import MockCheckoutSessionService, PaymentHandoff
from ezfoia.billing.entitlement import BillingEntitlementSource, EntitlementService
from ezfoia.billing.models import BillingStatus
from ezfoia.billing.override import TestOverrideStore
from ezfoia.billing.service import MockBillingStatusService
from ezfoia.core.config import SubmissionConfig
from ezfoia.core.errors import GenerationFailure
from ezfoia.core.types import BillingPeriod, DateType, FormatPreference, Jurisdiction, PlanKey
from ezfoia.generation.service import TemplateGenerationService
from ezfoia.notifications.engine import ConfirmationNotifier
from ezfoia.notifications.service import MockNotificationService
from ezfoia.storage.slots import SlotStore
from ezfoia.submission.pending import PendingSubmissionPersistence
from ezfoia.submission.pipeline import SubmissionPipeline
from ezfoia.submission.store import RequestStore
from ezfoia.wizard.controller import WizardController
from ezfoia.wizard.models import GeneratedRequest, WizardState, WizardStep
from ezfoia.wizard.store import RequestDraftStore
from ezfoia.wizard.validation import StepValidator

JANE = AuthenticatedUser(user_id="jane", email="jane@example.com", display_name="Jane Doe")
BOB = AuthenticatedUser(user_id="bob", email="bob@example.com")


def complete_state(**overrides: Any) -> WizardState:
    """A draft whose required steps all pass validation."""
    data: dict[str, Any] = {
        "agency_name": "Federal Bureau of Investigation (FBI)",
        "jurisdiction": Jurisdiction.FEDERAL,
        "records_description": "All emails about the 2019 field office budget audit",
        "date_type": DateType.NOT_SURE,
        "format_preference": FormatPreference.DIGITAL,
    }
    data.update(overrides)
    return WizardState(**data)


def product_id(
    catalog: PlanCatalog, plan: PlanKey, period: BillingPeriod = BillingPeriod.MONTHLY
) -> str:
    return catalog.get(plan).prices[period].product_id


def subscribed(
    catalog: PlanCatalog, plan: PlanKey, period: BillingPeriod = BillingPeriod.MONTHLY
) -> BillingStatus:
    price = catalog.get(plan).prices[period]
    return BillingStatus(subscribed=True, product_id=price.product_id, price_id=price.price_id)


class FailingGenerator:
    def __init__(self, message: str = "Service is busy. Please try again in a moment.") -> None:
        self.message = message
        self.calls = 0

    async def generate(self, state: WizardState) -> GeneratedRequest:
        self.calls += 1
        raise GenerationFailure(self.message)


class MutatingGenerator:
    """Tampers with the state it is given, then fails."""

    async def generate(self, state: WizardState) -> GeneratedRequest:
        state.agency_name = "tampered"
        state.records_description = ""
        raise GenerationFailure()


class BlockingGenerator:
    """Waits until released, so tests can act while generation is in flight."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.cancelled = False

    async def generate(self, state: WizardState) -> GeneratedRequest:
        self.started.set()
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return GeneratedRequest(letter="Late letter", estimated_response_time="soon")


class Harness:
    """Every collaborator of the wizard wired with in-memory stores."""

    def __init__(
        self,
        generator: Any = None,
        submission_config: SubmissionConfig | None = None,
        allow_test_override: bool = False,
    ) -> None:
        self.catalog = PlanCatalog.load()
        self.requests = RequestStore()
        self.slots = SlotStore()
        self.billing = MockBillingStatusService()
        self.billing_source = BillingEntitlementSource(self.billing, cache_ttl_seconds=0)
        self.overrides = TestOverrideStore(self.slots)
        self.entitlements = EntitlementService(
            billing=self.billing_source,
            overrides=self.overrides,
            catalog=self.catalog,
            requests=self.requests,
            allow_test_override=allow_test_override,
        )
        self.notifications = MockNotificationService()
        self.notifier = ConfirmationNotifier(self.notifications)
        self.pending = PendingSubmissionPersistence(self.slots)
        self.pipeline = SubmissionPipeline(
            requests=self.requests,
            pending=self.pending,
            notifier=self.notifier,
            config=submission_config,
        )
        self.checkout = MockCheckoutSessionService()
        self.handoff = PaymentHandoff(self.catalog, self.checkout)
        self.generator = generator or TemplateGenerationService()
        self.drafts = RequestDraftStore()
        self.controller = WizardController(
            store=self.drafts,
            validator=StepValidator(),
            generator=self.generator,
            pipeline=self.pipeline,
            entitlements=self.entitlements,
            handoff=self.handoff,
        )

    def subscribe(self, user: AuthenticatedUser, plan: PlanKey) -> None:
        self.billing.set_status(user.user_id, subscribed(self.catalog, plan))

    async def at_preview(self, user: AuthenticatedUser | None = JANE, **overrides: Any):
        """Open a wizard and drive it to the preview with a complete draft."""
        session = await self.controller.open(user)
        self.drafts.get(session.id).state = complete_state(**overrides)
        self.drafts.get(session.id).step = WizardStep.CONTEXT
        return await self.controller.generate(session.id)


@pytest.fixture
def catalog() -> PlanCatalog:
    return PlanCatalog.load()


@pytest.fixture
def harness() -> Harness:
    return Harness()
