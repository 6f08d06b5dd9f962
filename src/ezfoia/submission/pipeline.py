"""Submission pipeline: persist an eligible request or defer it behind payment."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from pydantic import ValidationError

from ezfoia.auth.models import AuthenticatedUser
from ezfoia.billing.entitlement import EntitlementResolver
from ezfoia.billing.models import EntitlementSnapshot
from ezfoia.core.config import NotificationConfig, SubmissionConfig
from ezfoia.core.errors import SubmissionPersistenceFailure
from ezfoia.notifications.engine import ConfirmationNotifier
from ezfoia.notifications.models import ConfirmationRequest
from ezfoia.repositories import resolve
from ezfoia.repositories.protocols import RequestRepository
from ezfoia.submission.models import (
    PendingSubmission,
    RequestRecord,
    SubmissionOutcome,
    SubmissionStatus,
)
from ezfoia.submission.pending import PendingSubmissionPersistence
from ezfoia.wizard.models import GeneratedRequest, WizardState

logger = logging.getLogger(__name__)

_PERSIST_ERROR = "Something went wrong. Please try again."


class SubmissionPipeline:
    """Turns an approved draft into a ``RequestRecord``.

    All work for one user runs under that user's lock, so a double click or
    a reloaded payment-return page cannot insert twice.
    """

    def __init__(
        self,
        requests: RequestRepository,
        pending: PendingSubmissionPersistence,
        notifier: ConfirmationNotifier,
        config: SubmissionConfig | None = None,
        notification_config: NotificationConfig | None = None,
    ) -> None:
        self._requests = requests
        self._pending = pending
        self._notifier = notifier
        self._config = config or SubmissionConfig()
        self._notification_config = notification_config or NotificationConfig()
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def pending(self) -> PendingSubmissionPersistence:
        return self._pending

    def build_pending(
        self,
        user: AuthenticatedUser,
        state: WizardState,
        generated: GeneratedRequest | None,
    ) -> PendingSubmission:
        return PendingSubmission(
            user_id=user.user_id,
            agency_name=state.agency_name.strip(),
            agency_type=str(state.jurisdiction) if state.jurisdiction else "",
            record_type=self._config.record_type,
            record_description=self._description(state, generated),
        )

    async def attempt_submit(
        self,
        user: AuthenticatedUser,
        state: WizardState,
        generated: GeneratedRequest | None,
        snapshot: EntitlementSnapshot,
        resolver: EntitlementResolver,
    ) -> SubmissionOutcome:
        """Persist now when entitled, otherwise store a pending submission.

        Raises ``SubmissionPersistenceFailure`` when storage fails; nothing
        is written in that case.
        """
        async with self._locks[user.user_id]:
            used = await resolve(self._requests.count_for_user(user.user_id))
            limit = self._insert_limit(resolver, snapshot, used)

            if limit is not None:
                record = await self._insert(self._record_for(user, state, generated), limit)
                if record is not None:
                    self._notify(user, record)
                    logger.info(
                        "Request %s submitted by user %s (%d used before)",
                        record.id, user.user_id, used,
                    )
                    return SubmissionOutcome(status=SubmissionStatus.SUBMITTED, record=record)
                logger.info("Quota reached during insert for user %s; deferring", user.user_id)

            try:
                draft = self.build_pending(user, state, generated)
            except ValidationError as exc:
                logger.warning("Draft for user %s cannot be deferred: %s", user.user_id, exc)
                raise SubmissionPersistenceFailure(_PERSIST_ERROR) from exc
            try:
                await self._pending.write(draft)
            except Exception as exc:
                logger.exception("Storing pending submission failed for user %s", user.user_id)
                raise SubmissionPersistenceFailure(_PERSIST_ERROR) from exc

        return SubmissionOutcome(status=SubmissionStatus.DEFERRED, pending=draft)

    async def consume_pending(
        self,
        user: AuthenticatedUser,
        resolver: EntitlementResolver | None = None,
        reference: str | None = None,
    ) -> SubmissionOutcome:
        """Submit the user's pending draft after payment, at most once.

        Absent, malformed or foreign payloads are a no-op. When entitlement
        verification is on and the payment has not registered yet, the
        draft stays in place and ``awaiting_payment`` is returned.
        """
        async with self._locks[user.user_id]:
            pending = await self._pending.read(user.user_id, reference)
            if pending is None:
                return SubmissionOutcome(status=SubmissionStatus.NOTHING_PENDING)

            limit: int | None = None
            if self._config.verify_entitlement_on_return and resolver is not None:
                snapshot = await resolver.resolve(user)
                used = await resolve(self._requests.count_for_user(user.user_id))
                limit = self._insert_limit(resolver, snapshot, used)
                if limit is None:
                    logger.info(
                        "Payment not yet reflected for user %s; keeping pending %s",
                        user.user_id, pending.reference,
                    )
                    return SubmissionOutcome(
                        status=SubmissionStatus.AWAITING_PAYMENT, pending=pending
                    )

            record = await self._insert(self._record_from(pending), limit)
            if record is None:
                return SubmissionOutcome(status=SubmissionStatus.AWAITING_PAYMENT, pending=pending)

            await self._pending.clear(user.user_id)
            self._notify(user, record)
            logger.info(
                "Pending submission %s consumed as request %s", pending.reference, record.id
            )
            return SubmissionOutcome(status=SubmissionStatus.SUBMITTED, record=record)

    def _insert_limit(
        self,
        resolver: EntitlementResolver,
        snapshot: EntitlementSnapshot,
        used: int,
    ) -> int | None:
        """Quota to enforce on insert, or None when the user may not submit."""
        if resolver.can_submit(snapshot, used):
            return resolver.plan_limit(snapshot.product_id)
        if self._config.first_request_free and used == 0:
            return 1
        return None

    async def _insert(self, record: RequestRecord, limit: int | None) -> RequestRecord | None:
        try:
            return await resolve(self._requests.insert_within_quota(record, limit))
        except Exception as exc:
            logger.exception("Persisting request for user %s failed", record.user_id)
            raise SubmissionPersistenceFailure(_PERSIST_ERROR) from exc

    def _notify(self, user: AuthenticatedUser, record: RequestRecord) -> None:
        if not user.email:
            logger.info("No email for user %s; skipping confirmation", user.user_id)
            return
        self._notifier.dispatch_confirmation(
            ConfirmationRequest(
                recipient=user.email,
                name=user.display_name or self._notification_config.default_name,
                agency_name=record.agency_name,
                record_type=self._config.confirmation_record_type,
                request_id=record.id,
            )
        )

    def _record_for(
        self,
        user: AuthenticatedUser,
        state: WizardState,
        generated: GeneratedRequest | None,
    ) -> RequestRecord:
        return RequestRecord(
            user_id=user.user_id,
            agency_name=state.agency_name.strip(),
            agency_type=str(state.jurisdiction) if state.jurisdiction else "",
            record_type=self._config.record_type,
            record_description=self._description(state, generated),
        )

    @staticmethod
    def _record_from(pending: PendingSubmission) -> RequestRecord:
        return RequestRecord(
            user_id=pending.user_id,
            agency_name=pending.agency_name,
            agency_type=pending.agency_type,
            record_type=pending.record_type,
            record_description=pending.record_description,
        )

    @staticmethod
    def _description(state: WizardState, generated: GeneratedRequest | None) -> str:
        if generated is not None and generated.letter.strip():
            return generated.letter
        return state.records_description.strip()
