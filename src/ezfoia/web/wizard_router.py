"""FastAPI router for the request builder wizard."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

from ezfoia.auth.middleware import current_user, require_user
from ezfoia.auth.models import AuthenticatedUser
from ezfoia.core.errors import CheckoutFailure, IllegalTransition, WizardBusy
from ezfoia.core.types import BillingPeriod, Jurisdiction, PlanKey
from ezfoia.submission.models import DESCRIPTION_MAX
from ezfoia.wizard.agencies import suggest_agencies
from ezfoia.wizard.controller import WizardController
from ezfoia.wizard.models import FORM_STEPS, WizardSession

router = APIRouter()


# --- Request/Response models ---


class UpdateFieldsRequest(BaseModel):
    fields: dict[str, Any] = Field(default_factory=dict)


class EditLetterRequest(BaseModel):
    letter: str = Field(min_length=1, max_length=DESCRIPTION_MAX)


class CheckoutRequest(BaseModel):
    plan: PlanKey
    period: BillingPeriod = BillingPeriod.MONTHLY


class WizardResponse(BaseModel):
    id: str
    step: str
    state: dict[str, Any]
    generated: dict[str, Any] | None = None
    completed_steps: list[str]
    progress: int
    step_errors: dict[str, list[str]] = Field(default_factory=dict)
    last_error: str | None = None
    busy: bool
    request_id: str | None = None
    pending_reference: str | None = None
    checkout_url: str | None = None


def _to_response(session: WizardSession) -> WizardResponse:
    done = sum(1 for s in FORM_STEPS if s in session.completed_steps)
    return WizardResponse(
        id=session.id,
        step=session.step.value,
        state=session.state.model_dump(mode="json"),
        generated=session.generated.model_dump(mode="json") if session.generated else None,
        completed_steps=[s.value for s in session.completed_steps],
        progress=round(100 * done / len(FORM_STEPS)),
        step_errors=session.step_errors.errors if session.step_errors else {},
        last_error=session.last_error,
        busy=session.busy,
        request_id=session.request_id,
        pending_reference=session.pending_reference,
        checkout_url=session.checkout_url,
    )


def _controller(request: Request) -> WizardController:
    return request.app.state.controller


def _session(request: Request, session_id: str) -> WizardSession:
    """Look up an open session the caller may act on."""
    try:
        session = _controller(request).get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Wizard {session_id!r} not found")
    user = current_user(request)
    if session.user_id is not None and (user is None or user.user_id != session.user_id):
        raise HTTPException(status_code=404, detail=f"Wizard {session_id!r} not found")
    return session


def _conflict(exc: Exception) -> HTTPException:
    return HTTPException(status_code=409, detail=str(exc))


# --- Wizard endpoints ---


@router.get("/api/wizard/agencies/suggest")
async def suggest(q: str = "", jurisdiction: Jurisdiction | None = None) -> list[str]:
    return suggest_agencies(q, jurisdiction)


@router.post("/api/wizard", response_model=WizardResponse)
async def open_wizard(request: Request) -> WizardResponse:
    session = await _controller(request).open(current_user(request))
    return _to_response(session)


@router.get("/api/wizard/{session_id}", response_model=WizardResponse)
async def get_wizard(session_id: str, request: Request) -> WizardResponse:
    return _to_response(_session(request, session_id))


@router.patch("/api/wizard/{session_id}", response_model=WizardResponse)
async def update_wizard(
    session_id: str, body: UpdateFieldsRequest, request: Request
) -> WizardResponse:
    _session(request, session_id)
    try:
        session = _controller(request).update(session_id, body.fields)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422, detail=exc.errors(include_url=False, include_context=False)
        )
    except (IllegalTransition, WizardBusy) as exc:
        raise _conflict(exc)
    return _to_response(session)


@router.post("/api/wizard/{session_id}/next", response_model=WizardResponse)
async def next_step(session_id: str, request: Request) -> WizardResponse:
    _session(request, session_id)
    try:
        session = await _controller(request).next(session_id)
    except (IllegalTransition, WizardBusy) as exc:
        raise _conflict(exc)
    return _to_response(session)


@router.post("/api/wizard/{session_id}/back", response_model=WizardResponse)
async def previous(session_id: str, request: Request) -> WizardResponse:
    _session(request, session_id)
    try:
        session = _controller(request).back(session_id)
    except (IllegalTransition, WizardBusy) as exc:
        raise _conflict(exc)
    return _to_response(session)


@router.post("/api/wizard/{session_id}/skip", response_model=WizardResponse)
async def skip_step(session_id: str, request: Request) -> WizardResponse:
    _session(request, session_id)
    try:
        session = await _controller(request).skip(session_id)
    except (IllegalTransition, WizardBusy) as exc:
        raise _conflict(exc)
    return _to_response(session)


@router.post("/api/wizard/{session_id}/generate", response_model=WizardResponse)
async def generate(session_id: str, request: Request) -> WizardResponse:
    _session(request, session_id)
    try:
        session = await _controller(request).generate(session_id)
    except (IllegalTransition, WizardBusy) as exc:
        raise _conflict(exc)
    return _to_response(session)


@router.put("/api/wizard/{session_id}/letter", response_model=WizardResponse)
async def edit_letter(
    session_id: str, body: EditLetterRequest, request: Request
) -> WizardResponse:
    _session(request, session_id)
    try:
        session = _controller(request).edit_letter(session_id, body.letter)
    except (IllegalTransition, WizardBusy) as exc:
        raise _conflict(exc)
    return _to_response(session)


@router.post("/api/wizard/{session_id}/submit", response_model=WizardResponse)
async def submit(session_id: str, request: Request) -> WizardResponse:
    _session(request, session_id)
    try:
        session = await _controller(request).submit(session_id, current_user(request))
    except (IllegalTransition, WizardBusy) as exc:
        raise _conflict(exc)
    return _to_response(session)


@router.post("/api/wizard/{session_id}/resume", response_model=WizardResponse)
async def resume(
    session_id: str, request: Request, user: AuthenticatedUser = require_user()
) -> WizardResponse:
    _session(request, session_id)
    try:
        session = await _controller(request).resume(session_id, user)
    except (IllegalTransition, WizardBusy) as exc:
        raise _conflict(exc)
    return _to_response(session)


@router.post("/api/wizard/{session_id}/checkout", response_model=WizardResponse)
async def checkout(
    session_id: str,
    body: CheckoutRequest,
    request: Request,
    user: AuthenticatedUser = require_user(),
) -> WizardResponse:
    _session(request, session_id)
    try:
        session = await _controller(request).checkout(session_id, user, body.plan, body.period)
    except (IllegalTransition, WizardBusy) as exc:
        raise _conflict(exc)
    except CheckoutFailure as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return _to_response(session)


@router.delete("/api/wizard/{session_id}")
async def close_wizard(session_id: str, request: Request) -> dict[str, bool]:
    _session(request, session_id)
    closed = await _controller(request).close(session_id)
    return {"closed": closed}
