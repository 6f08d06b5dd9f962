"""FastAPI application for the EZFOIA request builder.

Provides the wizard, billing and payment-return endpoints plus auth and
health checks. All services are built once in ``create_app`` and stored on
``app.state`` for the routers.

Run with::

    uvicorn ezfoia.web.app:create_app --factory --port 8080
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from ezfoia.auth.middleware import AuthMiddleware, require_user
from ezfoia.auth.models import AuthCredentials, AuthenticatedUser
from ezfoia.auth.provider import MockAuthProvider
from ezfoia.billing.catalog import PlanCatalog
from ezfoia.billing.checkout import PaymentHandoff, create_checkout_service
from ezfoia.billing.entitlement import BillingEntitlementSource, EntitlementService
from ezfoia.billing.override import TestOverrideStore
from ezfoia.billing.service import create_billing_status_service
from ezfoia.core.config import Settings
from ezfoia.generation.service import create_generation_service
from ezfoia.notifications.engine import ConfirmationNotifier
from ezfoia.notifications.service import MockNotificationService
from ezfoia.notifications.store import NotificationStore
from ezfoia.repositories import resolve
from ezfoia.storage.slots import SlotStore
from ezfoia.submission.pending import PendingSubmissionPersistence
from ezfoia.submission.pipeline import SubmissionPipeline
from ezfoia.submission.store import RequestStore
from ezfoia.web.billing_router import router as billing_router
from ezfoia.web.wizard_router import router as wizard_router
from ezfoia.wizard.controller import WizardController
from ezfoia.wizard.store import RequestDraftStore
from ezfoia.wizard.validation import StepValidator

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


# --- Request/Response models ---


class LoginResponse(BaseModel):
    success: bool
    token: str | None = None
    user: AuthenticatedUser | None = None


class LogoutBody(BaseModel):
    token: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str = VERSION
    storage: str = "memory"


class RequestSummary(BaseModel):
    id: str
    agency_name: str
    agency_type: str
    record_type: str
    record_description: str
    status: str
    created_at: str


# --- Application factory ---


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Uses the factory pattern so tests can create isolated app instances.
    With ``settings.storage.database_url`` set, requests and slots are kept
    in SQL through SQLAlchemy; otherwise in-memory stores are used.
    """
    if settings is None:
        settings = Settings()

    logging.getLogger("ezfoia").setLevel(settings.log_level.upper())

    db_manager = None
    if settings.storage.database_url:
        from ezfoia.db.engine import DatabaseManager
        from ezfoia.repositories.postgres import PostgresRequestRepository, PostgresSlotRepository

        db_manager = DatabaseManager(
            settings.storage.database_url,
            echo=settings.storage.echo,
            pool_size=settings.storage.pool_size,
        )
        request_repo = PostgresRequestRepository(db_manager)
        slot_repo = PostgresSlotRepository(db_manager)
    else:
        request_repo = RequestStore()
        slot_repo = SlotStore()

    catalog = PlanCatalog.load(settings.billing.plans_path)

    billing_service = create_billing_status_service(settings.billing)
    billing_source = BillingEntitlementSource(
        billing_service,
        cache_ttl_seconds=settings.entitlement.cache_ttl_seconds,
    )
    override_store = TestOverrideStore(slot_repo)
    entitlements = EntitlementService(
        billing=billing_source,
        overrides=override_store,
        catalog=catalog,
        requests=request_repo,
        allow_test_override=settings.entitlement.allow_test_override,
    )

    notification_store = NotificationStore()
    notification_service = MockNotificationService(store=notification_store)
    notifier = ConfirmationNotifier(
        service=notification_service,
        templates_path=settings.notification.templates_path,
    )

    pipeline = SubmissionPipeline(
        requests=request_repo,
        pending=PendingSubmissionPersistence(slot_repo),
        notifier=notifier,
        config=settings.submission,
        notification_config=settings.notification,
    )
    checkout_service = create_checkout_service(settings.billing)
    handoff = PaymentHandoff(catalog, checkout_service)
    generator = create_generation_service(settings.generation)

    controller = WizardController(
        store=RequestDraftStore(),
        validator=StepValidator(),
        generator=generator,
        pipeline=pipeline,
        entitlements=entitlements,
        handoff=handoff,
    )

    auth_provider = MockAuthProvider(
        fixtures_path=settings.auth.fixtures_path,
        token_expiry_minutes=settings.auth.token_expiry_minutes,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if db_manager is not None and db_manager.dialect == "sqlite":
            await db_manager.create_all()
        yield
        await notifier.drain()
        for client in (generator, billing_service, checkout_service):
            close = getattr(client, "close", None)
            if close is not None:
                await close()
        if db_manager is not None:
            await db_manager.close()

    app = FastAPI(
        title="EZFOIA Request Builder",
        description="Guided public-records request builder with plan-gated submission",
        version=VERSION,
        lifespan=lifespan,
    )

    # CORS for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(AuthMiddleware)

    # Store on app state for access in route handlers
    app.state.settings = settings
    app.state.db_manager = db_manager
    app.state.request_repo = request_repo
    app.state.slot_repo = slot_repo
    app.state.catalog = catalog
    app.state.billing_service = billing_service
    app.state.entitlements = entitlements
    app.state.override_store = override_store
    app.state.notification_store = notification_store
    app.state.notification_service = notification_service
    app.state.notifier = notifier
    app.state.pipeline = pipeline
    app.state.handoff = handoff
    app.state.controller = controller
    app.state.auth_provider = auth_provider

    app.include_router(wizard_router)
    app.include_router(billing_router)

    # --- Routes ---

    @app.post("/api/auth/login", response_model=LoginResponse)
    async def login(body: AuthCredentials) -> LoginResponse:
        result = auth_provider.authenticate(body)
        if not result.success:
            raise HTTPException(status_code=401, detail=result.error or "Sign in failed")
        return LoginResponse(success=True, token=result.token, user=result.user)

    @app.post("/api/auth/logout")
    async def logout(body: LogoutBody) -> dict[str, bool]:
        return {"revoked": auth_provider.revoke_token(body.token)}

    @app.get("/api/requests", response_model=list[RequestSummary])
    async def list_requests(user: AuthenticatedUser = require_user()) -> list[RequestSummary]:
        """The signed-in user's submitted requests, newest first."""
        records = await resolve(request_repo.list_for_user(user.user_id))
        return [
            RequestSummary(
                id=r.id,
                agency_name=r.agency_name,
                agency_type=r.agency_type,
                record_type=r.record_type,
                record_description=r.record_description,
                status=r.status.value,
                created_at=r.created_at.isoformat(),
            )
            for r in records
        ]

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            service="ezfoia-request-builder",
            storage="sql" if request.app.state.db_manager is not None else "memory",
        )

    return app
