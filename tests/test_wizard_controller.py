"""Tests for the wizard controller state machine."""

from __future__ import annotations

import asyncio

import pytest

from ezfoia.core.config import SubmissionConfig
from ezfoia.core.errors import IllegalTransition, WizardBusy
from ezfoia.core.types import BillingPeriod, DateType, FormatPreference, Jurisdiction, PlanKey
from ezfoia.submission.models import DESCRIPTION_MAX, RequestRecord
from ezfoia.submission.store import RequestStore
from ezfoia.wizard.models import WizardState, WizardStep

from tests.conftest import (
    BOB,
    JANE,
    BlockingGenerator,
    FailingGenerator,
    Harness,
    MutatingGenerator,
    complete_state,
)


def _fill_requests(store: RequestStore, user_id: str, n: int) -> None:
    for i in range(n):
        store.insert_within_quota(
            RequestRecord(
                user_id=user_id,
                agency_name=f"Agency {i}",
                agency_type="local",
                record_type="other",
                record_description="earlier request",
            ),
            None,
        )


class _BrokenRequestStore(RequestStore):
    def insert_within_quota(self, record, limit):
        raise RuntimeError("database is down")


class TestFormNavigation:
    async def test_open_starts_at_agency(self, harness):
        session = await harness.controller.open()
        assert session.step == WizardStep.AGENCY
        assert session.state == WizardState()

    async def test_invalid_step_stays_with_errors(self, harness):
        session = await harness.controller.open()
        session = await harness.controller.next(session.id)
        assert session.step == WizardStep.AGENCY
        assert session.step_errors is not None
        assert "jurisdiction" in session.step_errors.errors

    async def test_back_then_forward_restores_values(self, harness):
        c = harness.controller
        session = await c.open(JANE)
        c.update(session.id, {"agency_name": "City of Springfield Police", "jurisdiction": "local"})
        await c.next(session.id)
        c.update(session.id, {"records_description": "Use of force reports for 2022"})
        await c.next(session.id)
        c.update(session.id, {"date_type": "exact", "exact_date": "2022-06-01"})
        before = c.get(session.id).state.model_copy(deep=True)

        c.back(session.id)
        c.back(session.id)
        assert c.get(session.id).step == WizardStep.AGENCY
        assert c.get(session.id).state == before

        await c.next(session.id)
        session = await c.next(session.id)
        assert session.step == WizardStep.TIMEFRAME
        assert session.state == before

    async def test_back_from_first_step_is_illegal(self, harness):
        session = await harness.controller.open()
        with pytest.raises(IllegalTransition):
            harness.controller.back(session.id)

    async def test_completed_steps_tracked(self, harness):
        c = harness.controller
        session = await c.open()
        c.update(session.id, {"agency_name": "FBI", "jurisdiction": "federal"})
        session = await c.next(session.id)
        assert session.completed_steps == [WizardStep.AGENCY]

    async def test_agency_name_detects_jurisdiction(self, harness):
        c = harness.controller
        session = await c.open()
        session = c.update(session.id, {"agency_name": "Department of Justice (DOJ)"})
        assert session.state.jurisdiction == Jurisdiction.FEDERAL

    async def test_explicit_jurisdiction_not_overridden(self, harness):
        c = harness.controller
        session = await c.open()
        c.update(session.id, {"jurisdiction": "state"})
        session = c.update(session.id, {"agency_name": "Federal Reserve"})
        assert session.state.jurisdiction == Jurisdiction.STATE

    async def test_timeframe_branch_switch_clears_dates(self, harness):
        c = harness.controller
        session = await c.open()
        c.update(session.id, {"date_type": "exact", "exact_date": "2020-01-01"})
        session = c.update(session.id, {"date_type": "range"})
        assert session.state.exact_date == ""
        assert session.state.date_type == DateType.RANGE

    async def test_skip_clears_optional_fields(self, harness):
        c = harness.controller
        session = await c.open()
        harness.drafts.get(session.id).state = complete_state(case_number="ABC-1")
        harness.drafts.get(session.id).step = WizardStep.IDENTIFIERS
        session = await c.skip(session.id)
        assert session.step == WizardStep.FORMAT
        assert session.state.case_number == ""

    async def test_skip_required_step_rejected(self, harness):
        session = await harness.controller.open()
        with pytest.raises(IllegalTransition):
            await harness.controller.skip(session.id)

    async def test_skip_context_generates(self, harness):
        c = harness.controller
        session = await c.open()
        harness.drafts.get(session.id).state = complete_state(additional_context="ignore me")
        harness.drafts.get(session.id).step = WizardStep.CONTEXT
        session = await c.skip(session.id)
        assert session.step == WizardStep.PREVIEW
        assert "ignore me" not in session.generated.letter

    async def test_full_walk_to_preview(self, harness):
        c = harness.controller
        session = await c.open(JANE)
        c.update(session.id, {"agency_name": "Springfield County Sheriff", "jurisdiction": "local"})
        await c.next(session.id)
        c.update(session.id, {"records_description": "Jail booking logs for March 2023"})
        await c.next(session.id)
        c.update(session.id, {"date_type": "range", "date_range_start": "2023-03-01"})
        await c.next(session.id)
        await c.skip(session.id)
        c.update(session.id, {"format_preference": FormatPreference.DIGITAL})
        await c.next(session.id)
        session = await c.next(session.id)
        assert session.step == WizardStep.PREVIEW
        assert session.generated.estimated_response_time == "7-14 business days"
        assert "Springfield County Sheriff" in session.generated.letter

    async def test_generate_with_incomplete_draft(self, harness):
        c = harness.controller
        session = await c.open()
        harness.drafts.get(session.id).state = complete_state(records_description="short")
        harness.drafts.get(session.id).step = WizardStep.CONTEXT
        session = await c.generate(session.id)
        assert session.step == WizardStep.CONTEXT
        assert session.step_errors.step == WizardStep.RECORDS

    async def test_update_outside_form_steps_rejected(self, harness):
        session = await harness.at_preview()
        with pytest.raises(IllegalTransition):
            harness.controller.update(session.id, {"agency_name": "Other"})

    async def test_unknown_session(self, harness):
        with pytest.raises(KeyError):
            harness.controller.get("missing")


class TestGeneration:
    async def test_failure_returns_to_context_with_state_intact(self):
        generator = FailingGenerator()
        harness = Harness(generator=generator)
        session = await harness.controller.open(JANE)
        harness.drafts.get(session.id).state = complete_state(case_number="F-77")
        harness.drafts.get(session.id).step = WizardStep.CONTEXT
        before = harness.drafts.get(session.id).state.model_copy(deep=True)

        session = await harness.controller.generate(session.id)

        assert session.step == WizardStep.CONTEXT
        assert session.state == before
        assert session.generated is None
        assert session.last_error == generator.message
        assert not session.busy

        # Retrying is allowed.
        await harness.controller.generate(session.id)
        assert generator.calls == 2

    async def test_generator_cannot_mutate_draft(self):
        harness = Harness(generator=MutatingGenerator())
        session = await harness.controller.open()
        harness.drafts.get(session.id).state = complete_state()
        harness.drafts.get(session.id).step = WizardStep.CONTEXT

        session = await harness.controller.generate(session.id)

        assert session.state == complete_state()

    async def test_back_from_preview_discards_letter(self, harness):
        session = await harness.at_preview()
        assert session.generated is not None
        session = harness.controller.back(session.id)
        assert session.step == WizardStep.CONTEXT
        assert session.generated is None
        assert session.state == complete_state()

    async def test_edit_letter(self, harness):
        session = await harness.at_preview()
        session = harness.controller.edit_letter(session.id, "My own wording")
        assert session.generated.letter == "My own wording"

    async def test_busy_blocks_other_moves(self):
        generator = BlockingGenerator()
        harness = Harness(generator=generator)
        session = await harness.controller.open()
        harness.drafts.get(session.id).state = complete_state()
        harness.drafts.get(session.id).step = WizardStep.CONTEXT

        task = asyncio.create_task(harness.controller.generate(session.id))
        await generator.started.wait()

        with pytest.raises(WizardBusy):
            await harness.controller.next(session.id)
        with pytest.raises(WizardBusy):
            harness.controller.update(session.id, {"agency_name": "x"})

        generator.release.set()
        session = await task
        assert session.step == WizardStep.PREVIEW
        assert session.generated.letter == "Late letter"

    async def test_close_cancels_generation(self):
        generator = BlockingGenerator()
        harness = Harness(generator=generator)
        session = await harness.controller.open()
        harness.drafts.get(session.id).state = complete_state()
        harness.drafts.get(session.id).step = WizardStep.CONTEXT

        task = asyncio.create_task(harness.controller.generate(session.id))
        await generator.started.wait()
        assert await harness.controller.close(session.id)

        session = await task
        assert session.closed
        assert session.generated is None
        assert generator.cancelled
        assert harness.drafts.get(session.id) is None
        with pytest.raises(KeyError):
            harness.controller.get(session.id)

    async def test_cancelled_caller_returns_to_context(self):
        generator = BlockingGenerator()
        harness = Harness(generator=generator)
        session = await harness.controller.open()
        harness.drafts.get(session.id).state = complete_state()
        harness.drafts.get(session.id).step = WizardStep.CONTEXT

        task = asyncio.create_task(harness.controller.generate(session.id))
        await generator.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        session = harness.controller.get(session.id)
        assert generator.cancelled
        assert session.step == WizardStep.CONTEXT
        assert not session.busy
        assert session.state == complete_state()
        assert session.last_error

        # The wizard is usable again.
        session = harness.controller.back(session.id)
        assert session.step == WizardStep.FORMAT

    async def test_edit_letter_over_limit_shows_inline_error(self, harness):
        session = await harness.at_preview()
        original = session.generated.letter

        session = harness.controller.edit_letter(session.id, "x" * (DESCRIPTION_MAX + 1))

        assert session.step == WizardStep.PREVIEW
        assert session.generated.letter == original
        assert session.step_errors.step == WizardStep.PREVIEW
        assert "letter" in session.step_errors.errors

        session = harness.controller.edit_letter(session.id, "Shorter wording")
        assert session.generated.letter == "Shorter wording"
        assert session.step_errors is None


class TestSubmission:
    async def test_entitled_user_reaches_success(self, harness):
        harness.subscribe(JANE, PlanKey.PROFESSIONAL)
        _fill_requests(harness.requests, JANE.user_id, 4)
        session = await harness.at_preview()

        session = await harness.controller.submit(session.id, JANE)

        assert session.step == WizardStep.SUCCESS
        record = harness.requests.get(session.request_id)
        assert record.user_id == JANE.user_id
        assert record.record_type == "other"
        assert record.agency_type == "federal"
        assert record.record_description == session.generated.letter
        await harness.notifier.drain()

    async def test_request_over_limit_routes_to_plan_selection(self, harness):
        harness.subscribe(JANE, PlanKey.PROFESSIONAL)
        _fill_requests(harness.requests, JANE.user_id, 5)
        session = await harness.at_preview()

        session = await harness.controller.submit(session.id, JANE)

        assert session.step == WizardStep.PLAN_SELECTION
        assert harness.requests.count_for_user(JANE.user_id) == 5
        assert harness.checkout.sessions == []
        pending = await harness.pending.read(JANE.user_id)
        assert pending is not None
        assert pending.reference == session.pending_reference

    async def test_single_plan_second_request_routes_to_plan_selection(self, harness):
        harness.subscribe(JANE, PlanKey.SINGLE)
        first = await harness.at_preview()
        first = await harness.controller.submit(first.id, JANE)
        assert first.step == WizardStep.SUCCESS

        second = await harness.at_preview()
        second = await harness.controller.submit(second.id, JANE)
        assert second.step == WizardStep.PLAN_SELECTION
        await harness.notifier.drain()

    async def test_unsubscribed_user_deferred(self, harness):
        session = await harness.at_preview()
        session = await harness.controller.submit(session.id, JANE)
        assert session.step == WizardStep.PLAN_SELECTION
        assert harness.requests.count == 0

    async def test_long_letter_submits_without_pending_slot(self, harness):
        harness.subscribe(JANE, PlanKey.ENTERPRISE)
        session = await harness.at_preview()
        letter = "x" * (DESCRIPTION_MAX + 1)
        harness.drafts.get(session.id).generated = session.generated.model_copy(
            update={"letter": letter}
        )

        session = await harness.controller.submit(session.id, JANE)

        assert session.step == WizardStep.SUCCESS
        assert harness.requests.get(session.request_id).record_description == letter
        assert await harness.pending.read(JANE.user_id) is None
        await harness.notifier.drain()

    async def test_long_letter_that_cannot_be_deferred_stays_on_preview(self, harness):
        session = await harness.at_preview()
        harness.drafts.get(session.id).generated = session.generated.model_copy(
            update={"letter": "x" * (DESCRIPTION_MAX + 1)}
        )

        session = await harness.controller.submit(session.id, JANE)

        assert session.step == WizardStep.PREVIEW
        assert session.last_error
        assert not session.busy
        assert await harness.pending.read(JANE.user_id) is None

    async def test_first_request_free(self):
        harness = Harness(submission_config=SubmissionConfig(first_request_free=True))
        first = await harness.at_preview()
        first = await harness.controller.submit(first.id, JANE)
        assert first.step == WizardStep.SUCCESS

        second = await harness.at_preview()
        second = await harness.controller.submit(second.id, JANE)
        assert second.step == WizardStep.PLAN_SELECTION
        await harness.notifier.drain()

    async def test_anonymous_submit_goes_to_auth_gate(self, harness):
        harness.subscribe(JANE, PlanKey.ENTERPRISE)
        session = await harness.at_preview(user=None)
        session = await harness.controller.submit(session.id, None)
        assert session.step == WizardStep.AUTH_GATE
        assert session.state == complete_state()
        assert session.generated is not None

        session = await harness.controller.resume(session.id, JANE)
        assert session.step == WizardStep.SUCCESS
        assert session.user_id == JANE.user_id
        await harness.notifier.drain()

    async def test_resume_outside_auth_gate_rejected(self, harness):
        session = await harness.at_preview()
        with pytest.raises(IllegalTransition):
            await harness.controller.resume(session.id, JANE)

    async def test_submit_before_preview_rejected(self, harness):
        session = await harness.controller.open(JANE)
        with pytest.raises(IllegalTransition):
            await harness.controller.submit(session.id, JANE)

    async def test_persistence_failure_stays_in_preview(self, harness):
        harness.subscribe(JANE, PlanKey.ENTERPRISE)
        broken = _BrokenRequestStore()
        harness.pipeline._requests = broken
        session = await harness.at_preview()

        session = await harness.controller.submit(session.id, JANE)

        assert session.step == WizardStep.PREVIEW
        assert session.last_error
        assert session.generated is not None
        assert not session.busy
        assert await harness.pending.read(JANE.user_id) is None

    async def test_checkout_hands_off_and_closes(self, harness):
        session = await harness.at_preview()
        session = await harness.controller.submit(session.id, JANE)

        session = await harness.controller.checkout(
            session.id, JANE, PlanKey.PROFESSIONAL, BillingPeriod.ANNUAL
        )

        assert session.checkout_url
        assert session.closed
        price = harness.catalog.get(PlanKey.PROFESSIONAL).prices[BillingPeriod.ANNUAL]
        assert harness.checkout.sessions == [
            {"user_id": JANE.user_id, "price_id": price.price_id, "mode": "subscription"}
        ]
        # The pending submission outlives the wizard.
        assert await harness.pending.read(JANE.user_id) is not None

    async def test_checkout_single_plan_uses_payment_mode(self, harness):
        session = await harness.at_preview()
        session = await harness.controller.submit(session.id, JANE)
        await harness.controller.checkout(session.id, JANE, PlanKey.SINGLE)
        assert harness.checkout.sessions[0]["mode"] == "payment"

    async def test_sessions_are_per_user(self, harness):
        harness.subscribe(JANE, PlanKey.ENTERPRISE)
        session = await harness.at_preview(user=BOB)
        session = await harness.controller.submit(session.id, BOB)
        assert session.step == WizardStep.PLAN_SELECTION
