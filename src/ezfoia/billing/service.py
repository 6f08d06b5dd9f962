"""Billing status service: HTTP client and mock implementation."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from ezfoia.auth.models import AuthenticatedUser
from ezfoia.billing.models import BillingStatus
from ezfoia.core.config import BillingConfig
from ezfoia.core.errors import EntitlementCheckFailure

logger = logging.getLogger(__name__)


@runtime_checkable
class BillingStatusService(Protocol):
    """Protocol for looking up a user's subscription status."""

    async def fetch_status(self, user: AuthenticatedUser) -> BillingStatus: ...


class HttpBillingStatusService:
    """Queries the billing status endpoint on behalf of a user.

    Every transport, HTTP or shape error is raised as
    ``EntitlementCheckFailure``.
    """

    def __init__(
        self,
        config: BillingConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        headers: dict[str, str] = {}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        self._client = client or httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(config.timeout_seconds),
        )

    async def fetch_status(self, user: AuthenticatedUser) -> BillingStatus:
        try:
            resp = await self._client.get(
                self._config.status_url,
                headers={"X-User-Id": user.user_id, "X-User-Email": user.email},
            )
            resp.raise_for_status()
            return BillingStatus.model_validate(resp.json())
        except httpx.HTTPStatusError as exc:
            raise EntitlementCheckFailure(
                f"Billing status returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise EntitlementCheckFailure(f"Billing status request failed: {exc}") from exc
        except (ValueError, ValidationError) as exc:
            raise EntitlementCheckFailure("Billing status response was malformed") from exc

    async def close(self) -> None:
        await self._client.aclose()


class MockBillingStatusService:
    """In-memory billing status keyed by user id."""

    def __init__(self) -> None:
        self._statuses: dict[str, BillingStatus] = {}
        self._failing: set[str] = set()
        self.calls = 0

    def set_status(self, user_id: str, status: BillingStatus) -> None:
        self._statuses[user_id] = status
        self._failing.discard(user_id)

    def fail_for(self, user_id: str) -> None:
        self._failing.add(user_id)

    async def fetch_status(self, user: AuthenticatedUser) -> BillingStatus:
        self.calls += 1
        if user.user_id in self._failing:
            raise EntitlementCheckFailure(f"Billing unavailable for {user.user_id}")
        return self._statuses.get(user.user_id, BillingStatus())


def create_billing_status_service(config: BillingConfig) -> BillingStatusService:
    if config.provider == "mock":
        return MockBillingStatusService()
    return HttpBillingStatusService(config)
