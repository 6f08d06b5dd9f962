"""Durable handoff of a deferred submission across the payment redirect."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from ezfoia.core.errors import PendingSubmissionCorruption
from ezfoia.repositories import resolve
from ezfoia.repositories.protocols import SlotRepository
from ezfoia.storage.slots import PENDING_REQUEST_KEY
from ezfoia.submission.models import PendingSubmission

logger = logging.getLogger(__name__)


def parse_pending(raw: str) -> PendingSubmission:
    """Validate a stored payload, raising ``PendingSubmissionCorruption``."""
    try:
        return PendingSubmission.model_validate_json(raw)
    except ValidationError as exc:
        raise PendingSubmissionCorruption(str(exc)) from exc


class PendingSubmissionPersistence:
    """The ``pending_request`` slot of each user.

    One pending submission per user; a new write replaces the old one.
    Reads never raise: anything that does not validate, or that belongs to
    another user, is reported as absent.
    """

    def __init__(self, slots: SlotRepository) -> None:
        self._slots = slots

    async def write(self, pending: PendingSubmission) -> None:
        await resolve(
            self._slots.put(pending.user_id, PENDING_REQUEST_KEY, pending.model_dump_json())
        )
        logger.info(
            "Stored pending submission %s for user %s", pending.reference, pending.user_id
        )

    async def read(self, user_id: str, reference: str | None = None) -> PendingSubmission | None:
        raw = await resolve(self._slots.get(user_id, PENDING_REQUEST_KEY))
        if raw is None:
            return None

        try:
            pending = parse_pending(raw)
        except PendingSubmissionCorruption:
            logger.warning("Dropping malformed pending submission for user %s", user_id)
            await self.clear(user_id)
            return None

        if pending.user_id != user_id:
            logger.warning(
                "Dropping pending submission owned by %s found in slot of %s",
                pending.user_id, user_id,
            )
            await self.clear(user_id)
            return None

        if reference is not None and pending.reference != reference:
            logger.info(
                "Pending submission reference mismatch for user %s: %s != %s",
                user_id, reference, pending.reference,
            )
            return None
        return pending

    async def clear(self, user_id: str) -> bool:
        return await resolve(self._slots.delete(user_id, PENDING_REQUEST_KEY))
