"""Prompt construction and deterministic extras for request letters."""

from __future__ import annotations

from ezfoia.core.types import DateType, FormatPreference, Jurisdiction
from ezfoia.wizard.models import WizardState

SYSTEM_PROMPT = """\
You are an expert FOIA (Freedom of Information Act) request specialist. Your task is to \
generate a clear, professional records request message for electronic form submission.

CRITICAL RULES - FOLLOW THESE EXACTLY:
1. ONLY use information explicitly provided by the user - NEVER invent, assume, or hallucinate ANY details
2. DO NOT include any placeholders like [YOUR NAME], [YOUR ADDRESS], [DATE], [AGENCY NAME], etc.
3. DO NOT format as a letter - no salutations, no signatures, no closings
4. DO NOT make up names, dates, case numbers, addresses, or any specifics not provided
5. Write in first person as a direct request suitable for pasting into an online form
6. Be specific about what records are being requested based on the user's description
7. Include timeframe information ONLY if the user provided it
8. Include identifiers (names, case numbers, addresses) ONLY if the user provided them
9. Use the EXACT agency name provided - never say "the agency" or "your agency"

The request should: cite the Freedom of Information Act (or the applicable public records \
law), state the subject, any case or reference number and the relevant dates, cover any \
responsive records in the possession, custody, or control of the named agency, state that \
the request is reasonably limited in scope, state the format preference, ask not to incur \
costs exceeding $100 without approval, ask for all reasonably segregable non-exempt \
portions with the legal basis for any withholding, and ask to be contacted before the \
request is closed or denied.

Output ONLY the request message text, no JSON, no markdown formatting."""

_FORMAT_PHRASES: dict[FormatPreference | None, str] = {
    FormatPreference.DIGITAL: "electronic format",
    FormatPreference.PHYSICAL: "physical copies",
    FormatPreference.EASIEST: "whatever format is most convenient",
    None: "whatever format is most convenient",
}

_RESPONSE_TIMES: dict[Jurisdiction | None, str] = {
    Jurisdiction.FEDERAL: "20-30 business days",
    Jurisdiction.STATE: "10-15 business days",
    Jurisdiction.LOCAL: "7-14 business days",
}
_DEFAULT_RESPONSE_TIME = "10-20 business days"


def format_phrase(state: WizardState) -> str:
    return _FORMAT_PHRASES[state.format_preference]


def timeframe_phrase(state: WizardState) -> str | None:
    """Describe the timeframe, or None when the requester did not give one."""
    if state.date_type == DateType.EXACT and state.exact_date:
        return f"Specific date - {state.exact_date}"
    if state.date_type == DateType.RANGE and (state.date_range_start or state.date_range_end):
        start = state.date_range_start or "earliest available"
        end = state.date_range_end or "present"
        return f"{start} to {end}"
    return None


def build_user_prompt(state: WizardState) -> str:
    """Build the user prompt from the wizard answers.

    Only fields the requester actually filled in are mentioned.
    """
    parts: list[str] = [
        "Generate a FOIA request message based on the following user input:",
        "",
        f"AGENCY NAME: {state.agency_name.strip()}",
        f"RECORDS REQUESTED: {state.records_description.strip()}",
        f"FORMAT PREFERENCE: {format_phrase(state)}",
    ]

    timeframe = timeframe_phrase(state)
    if timeframe:
        parts.append(f"TIMEFRAME: {timeframe}")
    if state.related_names.strip():
        parts.append(f"RELATED NAMES/ORGANIZATIONS: {state.related_names.strip()}")
    if state.case_number.strip():
        parts.append(f"CASE/REFERENCE NUMBER: {state.case_number.strip()}")
    if state.related_address.strip():
        parts.append(f"RELATED ADDRESS: {state.related_address.strip()}")
    if state.additional_context.strip():
        parts.append(f"ADDITIONAL CONTEXT: {state.additional_context.strip()}")

    parts.append("")
    parts.append(
        "Remember: Output ONLY the request message. No placeholders, "
        "no letter formatting, no made-up details."
    )
    return "\n".join(parts)


def estimated_response_time(jurisdiction: Jurisdiction | None) -> str:
    return _RESPONSE_TIMES.get(jurisdiction, _DEFAULT_RESPONSE_TIME)


def filing_tips(state: WizardState) -> list[str]:
    tips = [
        "Keep a copy of this request for your records",
        "You have the right to appeal if your request is denied or partially fulfilled",
    ]
    if state.jurisdiction == Jurisdiction.FEDERAL:
        tips.append("Federal agencies must respond within 20 working days under FOIA")
    else:
        tips.append(
            "Response times vary by state - check your state's open records law for specifics"
        )
    return tips
