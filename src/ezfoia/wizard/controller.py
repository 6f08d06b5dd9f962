"""Request builder wizard: the state machine driving one open wizard.

Form steps advance only when their checks pass. Generation and submission
set ``busy`` on the session, which blocks every other move until they
resolve. Closing a wizard cancels any generation still in flight and its
result is thrown away.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ezfoia.auth.models import AuthenticatedUser
from ezfoia.billing.checkout import PaymentHandoff
from ezfoia.billing.entitlement import EntitlementResolver, EntitlementService
from ezfoia.core.errors import (
    GenerationFailure,
    IllegalTransition,
    SubmissionPersistenceFailure,
    WizardBusy,
)
from ezfoia.core.types import BillingPeriod, PlanKey
from ezfoia.generation.service import GenerationService
from ezfoia.submission.models import DESCRIPTION_MAX, SubmissionStatus
from ezfoia.submission.pipeline import SubmissionPipeline
from ezfoia.wizard.agencies import detect_jurisdiction
from ezfoia.wizard.machine import PROGRESS_STEPS, check_transition, next_form_step, previous_step
from ezfoia.wizard.models import (
    FORM_STEPS,
    OPTIONAL_STEPS,
    StepErrors,
    WizardSession,
    WizardStep,
)
from ezfoia.wizard.store import RequestDraftStore
from ezfoia.wizard.validation import StepValidator

logger = logging.getLogger(__name__)


class WizardController:
    """Drives wizard sessions through the transition table."""

    def __init__(
        self,
        store: RequestDraftStore,
        validator: StepValidator,
        generator: GenerationService,
        pipeline: SubmissionPipeline,
        entitlements: EntitlementService,
        handoff: PaymentHandoff,
    ) -> None:
        self._store = store
        self._validator = validator
        self._generator = generator
        self._pipeline = pipeline
        self._entitlements = entitlements
        self._handoff = handoff
        self._generations: dict[str, asyncio.Task[Any]] = {}
        self._resolvers: dict[str, tuple[str, EntitlementResolver]] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self, user: AuthenticatedUser | None = None) -> WizardSession:
        """Open a new wizard with an empty draft."""
        session = WizardSession(user_id=user.user_id if user else None)
        self._store.save(session)
        if user is not None:
            # Refresh entitlement on open so the first submit sees current data.
            resolver = await self._resolver_for(session, user)
            await resolver.resolve(user)
        logger.info("Wizard %s opened (user=%s)", session.id, session.user_id)
        return session

    def get(self, session_id: str) -> WizardSession:
        """Return an open session.

        Raises:
            KeyError: If the session does not exist or was closed.
        """
        session = self._store.get(session_id)
        if session is None or session.closed:
            raise KeyError(f"Wizard session {session_id!r} not found")
        return session

    async def close(self, session_id: str) -> bool:
        """Tear down a session, cancelling any generation in flight."""
        session = self._store.get(session_id)
        if session is None:
            return False
        session.closed = True
        session.touch()

        task = self._generations.pop(session_id, None)
        if task is not None and not task.done():
            task.cancel()
            logger.info("Cancelled in-flight generation for wizard %s", session_id)

        self._resolvers.pop(session_id, None)
        self._store.delete(session_id)
        return True

    # ------------------------------------------------------------------
    # Form steps
    # ------------------------------------------------------------------

    def update(self, session_id: str, fields: dict[str, Any]) -> WizardSession:
        """Apply field edits to the draft.

        An agency name typed before a jurisdiction is chosen pre-selects
        the jurisdiction it implies.
        """
        session = self.get(session_id)
        self._ensure_idle(session)
        if session.step not in FORM_STEPS:
            raise IllegalTransition(session.step.value, "update")

        updates = dict(fields)
        if (
            "agency_name" in updates
            and "jurisdiction" not in updates
            and session.state.jurisdiction is None
        ):
            detected = detect_jurisdiction(updates["agency_name"] or "")
            if detected is not None:
                updates["jurisdiction"] = detected

        session.state = session.state.merged(updates)
        session.touch()
        self._store.save(session)
        return session

    async def next(self, session_id: str) -> WizardSession:
        """Advance from the current form step if its data is valid.

        Invalid data leaves the session on the same step with
        ``step_errors`` populated. Advancing from the last form step
        starts generation.
        """
        session = self.get(session_id)
        self._ensure_idle(session)

        step = session.step
        if step not in FORM_STEPS:
            raise IllegalTransition(step.value, "next")

        result = self._validator.validate(step, session.state)
        if not result.valid:
            session.step_errors = StepErrors(step=step, errors=result.errors)
            session.touch()
            self._store.save(session)
            return session

        session.step_errors = None
        self._mark_completed(session, step)

        target = next_form_step(step)
        if target is None:
            self._store.save(session)
            return await self.generate(session_id)

        self._move(session, target)
        return session

    async def skip(self, session_id: str) -> WizardSession:
        """Skip an optional step: clear its fields and continue."""
        session = self.get(session_id)
        self._ensure_idle(session)
        if session.step not in OPTIONAL_STEPS:
            raise IllegalTransition(session.step.value, "skip")

        session.state = session.state.cleared(session.step)
        self._store.save(session)
        return await self.next(session_id)

    def back(self, session_id: str) -> WizardSession:
        """Go back one step. Entered data is kept.

        Leaving the preview discards the generated letter.
        """
        session = self.get(session_id)
        self._ensure_idle(session)

        target = previous_step(session.step)
        if target is None:
            raise IllegalTransition(session.step.value, "back")

        if session.step == WizardStep.PREVIEW:
            session.generated = None
        session.step_errors = None
        session.last_error = None
        self._move(session, target)
        return session

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(self, session_id: str) -> WizardSession:
        """Generate the letter from the current draft.

        On failure the session returns to ``context`` with the draft
        untouched and ``last_error`` set; generating again is allowed.
        """
        session = self.get(session_id)
        self._ensure_idle(session)
        check_transition(session.step, WizardStep.GENERATING)

        invalid = self._validator.first_invalid_step(session.state)
        if invalid is not None:
            result = self._validator.validate(invalid, session.state)
            session.step_errors = StepErrors(step=invalid, errors=result.errors)
            session.last_error = "Please complete the earlier steps before generating."
            session.touch()
            self._store.save(session)
            return session

        self._mark_completed(session, session.step)
        session.last_error = None
        session.busy = True
        self._move(session, WizardStep.GENERATING)

        draft = session.state.model_copy(deep=True)
        task = asyncio.ensure_future(self._generator.generate(draft))
        self._generations[session_id] = task
        try:
            generated = await task
        except asyncio.CancelledError:
            if session.closed:
                logger.info("Generation for closed wizard %s discarded", session_id)
                return session
            self._generation_failed(session, GenerationFailure().user_message)
            raise
        except GenerationFailure as exc:
            return self._generation_failed(session, exc.user_message)
        except Exception:
            logger.exception("Unexpected generation error for wizard %s", session_id)
            return self._generation_failed(session, GenerationFailure().user_message)
        finally:
            self._generations.pop(session_id, None)

        if session.closed:
            logger.info("Generation for closed wizard %s discarded", session_id)
            return session

        session.busy = False
        session.generated = generated
        self._move(session, WizardStep.PREVIEW)
        return session

    def _generation_failed(self, session: WizardSession, message: str) -> WizardSession:
        session.busy = False
        if session.closed:
            return session
        session.last_error = message
        self._move(session, WizardStep.CONTEXT)
        logger.info("Generation failed for wizard %s: %s", session.id, message)
        return session

    def edit_letter(self, session_id: str, letter: str) -> WizardSession:
        """Replace the generated letter text before submission."""
        session = self.get(session_id)
        self._ensure_idle(session)
        if session.step != WizardStep.PREVIEW or session.generated is None:
            raise IllegalTransition(session.step.value, "edit letter")
        if len(letter) > DESCRIPTION_MAX:
            session.step_errors = StepErrors(
                step=WizardStep.PREVIEW,
                errors={"letter": [f"Letter must be less than {DESCRIPTION_MAX:,} characters."]},
            )
            session.touch()
            self._store.save(session)
            return session
        session.step_errors = None
        session.generated = session.generated.model_copy(update={"letter": letter})
        session.touch()
        self._store.save(session)
        return session

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(
        self, session_id: str, user: AuthenticatedUser | None
    ) -> WizardSession:
        """Submit from the preview.

        Anonymous users are sent to the auth gate. Entitled users land on
        ``success``; everyone else on ``plan-selection`` with the draft
        stored as a pending submission.
        """
        session = self.get(session_id)
        self._ensure_idle(session)
        if session.step != WizardStep.PREVIEW:
            raise IllegalTransition(session.step.value, WizardStep.SUCCESS.value)

        if user is None:
            self._move(session, WizardStep.AUTH_GATE)
            return session

        session.user_id = user.user_id
        session.last_error = None
        session.busy = True
        self._store.save(session)
        try:
            resolver = await self._resolver_for(session, user)
            snapshot = await resolver.resolve(user)
            outcome = await self._pipeline.attempt_submit(
                user, session.state, session.generated, snapshot, resolver
            )
        except SubmissionPersistenceFailure as exc:
            session.last_error = str(exc)
            session.touch()
            self._store.save(session)
            return session
        finally:
            session.busy = False

        if outcome.status == SubmissionStatus.SUBMITTED and outcome.record is not None:
            session.request_id = outcome.record.id
            self._move(session, WizardStep.SUCCESS)
        else:
            session.pending_reference = outcome.pending.reference if outcome.pending else None
            self._move(session, WizardStep.PLAN_SELECTION)
        return session

    async def resume(self, session_id: str, user: AuthenticatedUser) -> WizardSession:
        """Continue from the auth gate once the user has signed in."""
        session = self.get(session_id)
        self._ensure_idle(session)
        if session.step != WizardStep.AUTH_GATE:
            raise IllegalTransition(session.step.value, WizardStep.PREVIEW.value)

        self._resolvers.pop(session_id, None)
        session.user_id = user.user_id
        self._move(session, WizardStep.PREVIEW)
        return await self.submit(session_id, user)

    async def checkout(
        self,
        session_id: str,
        user: AuthenticatedUser,
        plan: PlanKey,
        period: BillingPeriod = BillingPeriod.MONTHLY,
    ) -> WizardSession:
        """Hand off to payment. The wizard is closed once the redirect URL exists."""
        session = self.get(session_id)
        self._ensure_idle(session)
        if session.step != WizardStep.PLAN_SELECTION:
            raise IllegalTransition(session.step.value, "checkout")

        checkout = await self._handoff.start_checkout(user, plan, period)
        session.checkout_url = checkout.url
        await self.close(session_id)
        return session

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _resolver_for(
        self, session: WizardSession, user: AuthenticatedUser
    ) -> EntitlementResolver:
        cached = self._resolvers.get(session.id)
        if cached is not None and cached[0] == user.user_id:
            return cached[1]
        resolver = await self._entitlements.resolver_for(user)
        self._resolvers[session.id] = (user.user_id, resolver)
        return resolver

    def _move(self, session: WizardSession, target: WizardStep) -> None:
        check_transition(session.step, target)
        logger.debug("Wizard %s: %s -> %s", session.id, session.step, target)
        session.step = target
        session.touch()
        self._store.save(session)

    @staticmethod
    def _mark_completed(session: WizardSession, step: WizardStep) -> None:
        if step in PROGRESS_STEPS and step not in session.completed_steps:
            session.completed_steps.append(step)

    @staticmethod
    def _ensure_idle(session: WizardSession) -> None:
        if session.busy:
            raise WizardBusy(f"Wizard {session.id} is busy")
