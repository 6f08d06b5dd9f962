"""Per-step validation for the request builder wizard.

Every check is a pure function of the current ``WizardState``: no network
or storage access. A check returns a mapping of field name to error
messages; an empty mapping means the step may advance.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Callable

from pydantic import BaseModel, Field

from ezfoia.core.types import DateType
from ezfoia.wizard.models import OPTIONAL_STEPS, WizardState, WizardStep

AGENCY_NAME_MIN = 2
AGENCY_NAME_MAX = 200
DESCRIPTION_MIN = 10
DESCRIPTION_MAX = 2000

_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")

StepCheck = Callable[[WizardState], dict[str, list[str]]]

# Registry of step checks: step -> callable(state) -> errors
STEP_CHECKS: dict[WizardStep, StepCheck] = {}


def register(step: WizardStep):
    """Decorator to register the check for a wizard step."""
    def decorator(fn: StepCheck) -> StepCheck:
        STEP_CHECKS[step] = fn
        return fn
    return decorator


class ValidationResult(BaseModel):
    """Result of validating a step."""

    valid: bool
    errors: dict[str, list[str]] = Field(default_factory=dict)


def _parse_date(value: str) -> date | None:
    if not _DATE_RE.fullmatch(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


@register(WizardStep.AGENCY)
def check_agency(state: WizardState) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    if state.jurisdiction is None:
        errors["jurisdiction"] = ["Please select a jurisdiction."]
    name = state.agency_name.strip()
    if len(name) < AGENCY_NAME_MIN:
        errors["agency_name"] = [
            f"Agency name must be at least {AGENCY_NAME_MIN} characters."
        ]
    elif len(name) > AGENCY_NAME_MAX:
        errors["agency_name"] = [
            f"Agency name must be less than {AGENCY_NAME_MAX} characters."
        ]
    return errors


@register(WizardStep.RECORDS)
def check_records(state: WizardState) -> dict[str, list[str]]:
    description = state.records_description.strip()
    if len(description) < DESCRIPTION_MIN:
        return {
            "records_description": [
                f"Please describe the records in at least {DESCRIPTION_MIN} characters."
            ]
        }
    if len(description) > DESCRIPTION_MAX:
        return {
            "records_description": [
                f"Description must be less than {DESCRIPTION_MAX} characters."
            ]
        }
    return {}


@register(WizardStep.TIMEFRAME)
def check_timeframe(state: WizardState) -> dict[str, list[str]]:
    if state.date_type is None:
        return {"date_type": ["Please choose how you'd like to describe the timeframe."]}

    errors: dict[str, list[str]] = {}
    if state.date_type == DateType.EXACT:
        if not state.exact_date.strip():
            errors["exact_date"] = ["Please enter the date."]
        elif _parse_date(state.exact_date) is None:
            errors["exact_date"] = ["Please enter a valid date in YYYY-MM-DD format."]

    elif state.date_type == DateType.RANGE:
        start_raw = state.date_range_start.strip()
        end_raw = state.date_range_end.strip()
        if not start_raw and not end_raw:
            errors["date_range_start"] = ["Please enter a start date, an end date, or both."]
            return errors
        start = _parse_date(start_raw) if start_raw else None
        end = _parse_date(end_raw) if end_raw else None
        if start_raw and start is None:
            errors["date_range_start"] = ["Please enter a valid date in YYYY-MM-DD format."]
        if end_raw and end is None:
            errors["date_range_end"] = ["Please enter a valid date in YYYY-MM-DD format."]
        if start and end and start > end:
            errors["date_range_end"] = ["The end date must not be before the start date."]

    return errors


@register(WizardStep.FORMAT)
def check_format(state: WizardState) -> dict[str, list[str]]:
    if state.format_preference is None:
        return {"format_preference": ["Please choose a format."]}
    return {}


class StepValidator:
    """Registry-based validator for wizard steps.

    Optional steps and non-form states have no registered check and are
    always valid.
    """

    def __init__(self) -> None:
        self._checks: dict[WizardStep, StepCheck] = dict(STEP_CHECKS)

    def register(self, step: WizardStep, fn: StepCheck) -> None:
        self._checks[step] = fn

    def validate(self, step: WizardStep, state: WizardState) -> ValidationResult:
        fn = self._checks.get(step)
        if fn is None or step in OPTIONAL_STEPS:
            return ValidationResult(valid=True)
        errors = fn(state)
        return ValidationResult(valid=not errors, errors=errors)

    def is_valid(self, step: WizardStep, state: WizardState) -> bool:
        return self.validate(step, state).valid

    def first_invalid_step(self, state: WizardState) -> WizardStep | None:
        """Return the first required step whose data is incomplete, if any."""
        for step, fn in self._checks.items():
            if step in OPTIONAL_STEPS:
                continue
            if fn(state):
                return step
        return None
