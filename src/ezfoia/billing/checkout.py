"""Checkout session creation and the payment handoff."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx

from ezfoia.auth.models import AuthenticatedUser
from ezfoia.billing.catalog import PlanCatalog
from ezfoia.billing.models import CheckoutSession
from ezfoia.core.config import BillingConfig
from ezfoia.core.errors import CheckoutFailure
from ezfoia.core.types import BillingPeriod, CheckoutMode, PlanKey

logger = logging.getLogger(__name__)


@runtime_checkable
class CheckoutSessionService(Protocol):
    """Protocol for creating a hosted checkout session."""

    async def create_session(
        self, user: AuthenticatedUser, price_id: str, mode: CheckoutMode
    ) -> str: ...


class HttpCheckoutSessionService:
    """POSTs ``{price_id, mode}`` to the checkout endpoint and returns its ``url``."""

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

    async def create_session(
        self, user: AuthenticatedUser, price_id: str, mode: CheckoutMode
    ) -> str:
        payload = {
            "price_id": price_id,
            "mode": str(mode),
            "success_url": self._config.success_url,
            "cancel_url": self._config.cancel_url,
        }
        try:
            resp = await self._client.post(
                self._config.checkout_url,
                json=payload,
                headers={"X-User-Id": user.user_id, "X-User-Email": user.email},
            )
            resp.raise_for_status()
            url = resp.json().get("url")
        except httpx.HTTPStatusError as exc:
            raise CheckoutFailure(
                f"Checkout service returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise CheckoutFailure(f"Checkout request failed: {exc}") from exc
        except (ValueError, AttributeError) as exc:
            raise CheckoutFailure("Checkout response was malformed") from exc

        if not url:
            raise CheckoutFailure("Checkout response did not include a redirect URL")
        return url

    async def close(self) -> None:
        await self._client.aclose()


class MockCheckoutSessionService:
    """Returns a deterministic fake checkout URL and records each call."""

    def __init__(self, base_url: str = "https://checkout.example.com/session") -> None:
        self._base_url = base_url
        self.sessions: list[dict[str, str]] = []

    async def create_session(
        self, user: AuthenticatedUser, price_id: str, mode: CheckoutMode
    ) -> str:
        self.sessions.append({"user_id": user.user_id, "price_id": price_id, "mode": str(mode)})
        return f"{self._base_url}/{price_id}?mode={mode}"


def create_checkout_service(config: BillingConfig) -> CheckoutSessionService:
    if config.provider == "mock":
        return MockCheckoutSessionService()
    return HttpCheckoutSessionService(config)


class PaymentHandoff:
    """Turns a plan choice into a checkout redirect."""

    def __init__(self, catalog: PlanCatalog, service: CheckoutSessionService) -> None:
        self._catalog = catalog
        self._service = service

    async def start_checkout(
        self,
        user: AuthenticatedUser,
        plan_key: PlanKey,
        period: BillingPeriod = BillingPeriod.MONTHLY,
    ) -> CheckoutSession:
        try:
            plan = self._catalog.get(plan_key)
        except KeyError as exc:
            raise CheckoutFailure(f"Unknown plan: {plan_key}") from exc

        price = plan.prices.get(period) or plan.prices.get(BillingPeriod.MONTHLY)
        if price is None:
            raise CheckoutFailure(f"Plan {plan_key} has no price for {period}")

        url = await self._service.create_session(user, price.price_id, plan.mode)
        logger.info(
            "Checkout started for user %s: plan=%s period=%s mode=%s",
            user.user_id, plan.key, period, plan.mode,
        )
        return CheckoutSession(url=url, plan=plan.key, mode=plan.mode)
