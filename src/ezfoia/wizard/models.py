"""Shared models for the request builder wizard."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ezfoia.core.types import DateType, FormatPreference, Jurisdiction


class WizardStep(StrEnum):
    """States of the request builder wizard."""

    AGENCY = "agency"
    RECORDS = "records"
    TIMEFRAME = "timeframe"
    IDENTIFIERS = "identifiers"
    FORMAT = "format"
    CONTEXT = "context"
    GENERATING = "generating"
    PREVIEW = "preview"
    AUTH_GATE = "auth-gate"
    PLAN_SELECTION = "plan-selection"
    SUCCESS = "success"


# Form steps in order; the wizard's progress bar covers exactly these.
FORM_STEPS: tuple[WizardStep, ...] = (
    WizardStep.AGENCY,
    WizardStep.RECORDS,
    WizardStep.TIMEFRAME,
    WizardStep.IDENTIFIERS,
    WizardStep.FORMAT,
    WizardStep.CONTEXT,
)

OPTIONAL_STEPS: frozenset[WizardStep] = frozenset({WizardStep.IDENTIFIERS, WizardStep.CONTEXT})

# Fields owned by each form step. Skipping an optional step clears these.
STEP_FIELDS: dict[WizardStep, tuple[str, ...]] = {
    WizardStep.AGENCY: ("agency_name", "agency_city", "agency_state", "jurisdiction"),
    WizardStep.RECORDS: ("records_description",),
    WizardStep.TIMEFRAME: ("date_type", "exact_date", "date_range_start", "date_range_end"),
    WizardStep.IDENTIFIERS: ("related_names", "case_number", "related_address"),
    WizardStep.FORMAT: ("format_preference",),
    WizardStep.CONTEXT: ("additional_context",),
}


class WizardState(BaseModel):
    """The accumulated answers of one wizard run."""

    model_config = ConfigDict(extra="forbid")

    # Agency
    agency_name: str = ""
    agency_city: str = ""
    agency_state: str = ""
    jurisdiction: Jurisdiction | None = None

    # Records
    records_description: str = ""

    # Timeframe
    date_type: DateType | None = None
    exact_date: str = ""
    date_range_start: str = ""
    date_range_end: str = ""

    # Identifiers (optional)
    related_names: str = ""
    case_number: str = ""
    related_address: str = ""

    # Format
    format_preference: FormatPreference | None = None

    # Context (optional)
    additional_context: str = ""

    def merged(self, updates: dict[str, Any]) -> WizardState:
        """Return a copy with ``updates`` applied.

        Switching the timeframe type clears the date fields of the other
        branches, so only one branch is ever populated.
        """
        data = self.model_dump()
        data.update(updates)
        state = WizardState.model_validate(data)

        if "date_type" in updates:
            if state.date_type != DateType.EXACT:
                state.exact_date = ""
            if state.date_type != DateType.RANGE:
                state.date_range_start = ""
                state.date_range_end = ""
        return state

    def cleared(self, step: WizardStep) -> WizardState:
        """Return a copy with every field owned by ``step`` reset to its default."""
        defaults = WizardState()
        updates = {name: getattr(defaults, name) for name in STEP_FIELDS.get(step, ())}
        data = self.model_dump()
        data.update(updates)
        return WizardState.model_validate(data)


class GeneratedRequest(BaseModel):
    """A generated request letter with response estimate and filing tips."""

    letter: str
    estimated_response_time: str
    tips: list[str] = Field(default_factory=list)


class StepErrors(BaseModel):
    """Inline validation messages for the step currently shown."""

    step: WizardStep
    errors: dict[str, list[str]] = Field(default_factory=dict)


class WizardSession(BaseModel):
    """Runtime state of one open wizard."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str | None = None
    step: WizardStep = WizardStep.AGENCY
    state: WizardState = Field(default_factory=WizardState)
    generated: GeneratedRequest | None = None
    completed_steps: list[WizardStep] = Field(default_factory=list)
    step_errors: StepErrors | None = None
    last_error: str | None = None
    busy: bool = False
    closed: bool = False
    request_id: str | None = None
    pending_reference: str | None = None
    checkout_url: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)
