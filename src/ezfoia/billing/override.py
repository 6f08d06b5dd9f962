"""Storage of the admin test-subscription override."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from ezfoia.billing.models import TestOverride
from ezfoia.repositories import resolve
from ezfoia.repositories.protocols import SlotRepository
from ezfoia.storage.slots import TEST_SUBSCRIPTION_KEY

logger = logging.getLogger(__name__)


class TestOverrideStore:
    """Reads and writes the ``test_subscription`` slot for a user.

    A payload that does not parse is removed and reported as absent.
    """

    __test__ = False

    def __init__(self, slots: SlotRepository) -> None:
        self._slots = slots

    async def read(self, user_id: str) -> TestOverride | None:
        raw = await resolve(self._slots.get(user_id, TEST_SUBSCRIPTION_KEY))
        if raw is None:
            return None
        try:
            return TestOverride.model_validate_json(raw)
        except ValidationError:
            logger.warning("Dropping malformed test subscription override for user %s", user_id)
            await resolve(self._slots.delete(user_id, TEST_SUBSCRIPTION_KEY))
            return None

    async def write(self, user_id: str, override: TestOverride) -> None:
        await resolve(self._slots.put(user_id, TEST_SUBSCRIPTION_KEY, override.model_dump_json()))

    async def clear(self, user_id: str) -> bool:
        return await resolve(self._slots.delete(user_id, TEST_SUBSCRIPTION_KEY))
