"""FastAPI router for plans, entitlement, the billing webhook and payment return."""

from __future__ import annotations

import hmac
import logging
from typing import Any

from fastapi import APIRouter, Header, HTTPException, Request
from pydantic import BaseModel, Field

from ezfoia.auth.middleware import require_admin, require_user
from ezfoia.auth.models import AuthenticatedUser
from ezfoia.billing.entitlement import EntitlementService
from ezfoia.billing.models import EntitlementStatus, TestOverride
from ezfoia.submission.models import SubmissionStatus

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Request/Response models ---


class PlanResponse(BaseModel):
    key: str
    name: str
    request_limit: int
    mode: str
    price_label: str
    period_label: str
    price_ids: dict[str, str]


class OverrideRequest(BaseModel):
    product_id: str = Field(min_length=1)
    plan_name: str = ""
    user_id: str | None = None


class WebhookEvent(BaseModel):
    type: str = ""
    user_id: str | None = None


class PaymentReturnRequest(BaseModel):
    reference: str | None = None


class PaymentReturnResponse(BaseModel):
    status: SubmissionStatus
    request_id: str | None = None
    agency_name: str | None = None
    tracking_id: str | None = None


def _entitlements(request: Request) -> EntitlementService:
    return request.app.state.entitlements


# --- Billing endpoints ---


@router.get("/api/billing/plans", response_model=list[PlanResponse])
async def list_plans(request: Request) -> list[PlanResponse]:
    return [
        PlanResponse(
            key=plan.key.value,
            name=plan.name,
            request_limit=plan.request_limit,
            mode=plan.mode.value,
            price_label=plan.price_label,
            period_label=plan.period_label,
            price_ids={period.value: price.price_id for period, price in plan.prices.items()},
        )
        for plan in request.app.state.catalog.plans
    ]


@router.get("/api/billing/entitlement", response_model=EntitlementStatus)
async def entitlement(
    request: Request, user: AuthenticatedUser = require_user()
) -> EntitlementStatus:
    """Usage counter: plan, used, limit and whether another request is allowed."""
    resolver = await _entitlements(request).resolver_for(user)
    return await resolver.status(user)


@router.post("/api/billing/test-override")
async def set_test_override(
    body: OverrideRequest,
    request: Request,
    admin: AuthenticatedUser = require_admin(),
) -> dict[str, Any]:
    service = _entitlements(request)
    if not service.allow_test_override:
        raise HTTPException(status_code=404, detail="Test overrides are disabled")
    target = body.user_id or admin.user_id
    await service.overrides.write(
        target, TestOverride(product_id=body.product_id, plan_name=body.plan_name)
    )
    logger.info("Admin %s set test override for %s: %s", admin.user_id, target, body.product_id)
    return {"user_id": target, "product_id": body.product_id, "plan_name": body.plan_name}


@router.delete("/api/billing/test-override")
async def clear_test_override(
    request: Request,
    user_id: str | None = None,
    admin: AuthenticatedUser = require_admin(),
) -> dict[str, bool]:
    service = _entitlements(request)
    if not service.allow_test_override:
        raise HTTPException(status_code=404, detail="Test overrides are disabled")
    cleared = await service.overrides.clear(user_id or admin.user_id)
    return {"cleared": cleared}


@router.post("/api/billing/webhook")
async def billing_webhook(
    body: WebhookEvent,
    request: Request,
    x_webhook_secret: str | None = Header(default=None),
) -> dict[str, str]:
    """Drop cached entitlement when the billing provider reports a change."""
    secret = request.app.state.settings.billing.webhook_secret
    if secret and not hmac.compare_digest(x_webhook_secret or "", secret):
        raise HTTPException(status_code=401, detail="Invalid webhook secret")
    _entitlements(request).invalidate(body.user_id)
    logger.info(
        "Billing webhook %r invalidated entitlement for %s",
        body.type, body.user_id or "all users",
    )
    return {"status": "ok"}


# --- Payment return ---


@router.post("/api/payments/return", response_model=PaymentReturnResponse)
async def payment_return(
    request: Request,
    body: PaymentReturnRequest | None = None,
    user: AuthenticatedUser = require_user(),
) -> PaymentReturnResponse:
    """Submit the request that was waiting on payment, if there is one.

    Safe to call repeatedly: after the first successful call there is
    nothing left to submit.
    """
    service = _entitlements(request)
    service.invalidate(user.user_id)
    resolver = await service.resolver_for(user)
    outcome = await request.app.state.pipeline.consume_pending(
        user, resolver, body.reference if body else None
    )
    record = outcome.record
    return PaymentReturnResponse(
        status=outcome.status,
        request_id=record.id if record else None,
        agency_name=record.agency_name if record else None,
        tracking_id=record.id[:8].upper() if record else None,
    )
