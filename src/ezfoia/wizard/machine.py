"""Transition table for the request builder wizard.

Every state change goes through ``check_transition``; a move that is not
an edge in ``TRANSITIONS`` raises ``IllegalTransition``. In particular
``success`` is only reachable from ``preview`` (an eligible submission)
and ``plan-selection`` is terminal apart from going back to the preview.
"""

from __future__ import annotations

from ezfoia.core.errors import IllegalTransition
from ezfoia.wizard.models import FORM_STEPS, WizardStep

S = WizardStep

TRANSITIONS: dict[WizardStep, frozenset[WizardStep]] = {
    S.AGENCY: frozenset({S.RECORDS}),
    S.RECORDS: frozenset({S.AGENCY, S.TIMEFRAME}),
    S.TIMEFRAME: frozenset({S.RECORDS, S.IDENTIFIERS}),
    S.IDENTIFIERS: frozenset({S.TIMEFRAME, S.FORMAT}),
    S.FORMAT: frozenset({S.IDENTIFIERS, S.CONTEXT, S.GENERATING}),
    S.CONTEXT: frozenset({S.FORMAT, S.GENERATING}),
    S.GENERATING: frozenset({S.PREVIEW, S.CONTEXT}),
    S.PREVIEW: frozenset({S.CONTEXT, S.AUTH_GATE, S.PLAN_SELECTION, S.SUCCESS}),
    S.AUTH_GATE: frozenset({S.PREVIEW}),
    S.PLAN_SELECTION: frozenset({S.PREVIEW}),
    S.SUCCESS: frozenset(),
}

# States whose completion is tracked for the progress indicator.
PROGRESS_STEPS: frozenset[WizardStep] = frozenset(FORM_STEPS)


def can_transition(current: WizardStep, target: WizardStep) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def check_transition(current: WizardStep, target: WizardStep) -> None:
    if not can_transition(current, target):
        raise IllegalTransition(current.value, target.value)


def next_form_step(step: WizardStep) -> WizardStep | None:
    """Return the form step after ``step``, or None for the last one."""
    if step not in FORM_STEPS:
        return None
    index = FORM_STEPS.index(step)
    if index + 1 < len(FORM_STEPS):
        return FORM_STEPS[index + 1]
    return None


def previous_step(step: WizardStep) -> WizardStep | None:
    """Return where "back" leads from ``step``, or None when there is no way back."""
    if step in FORM_STEPS:
        index = FORM_STEPS.index(step)
        return FORM_STEPS[index - 1] if index > 0 else None
    if step == S.PREVIEW:
        return S.CONTEXT
    if step in (S.AUTH_GATE, S.PLAN_SELECTION):
        return S.PREVIEW
    return None
