"""Agency name helpers: federal suggestions and jurisdiction detection."""

from __future__ import annotations

from ezfoia.core.types import Jurisdiction

FEDERAL_AGENCIES: tuple[str, ...] = (
    "Federal Bureau of Investigation (FBI)",
    "Central Intelligence Agency (CIA)",
    "Department of Defense (DOD)",
    "Department of Justice (DOJ)",
    "Department of State",
    "Department of Homeland Security (DHS)",
    "Environmental Protection Agency (EPA)",
    "Internal Revenue Service (IRS)",
    "National Security Agency (NSA)",
    "Securities and Exchange Commission (SEC)",
    "Federal Communications Commission (FCC)",
    "Federal Trade Commission (FTC)",
    "Department of Education",
    "Department of Health and Human Services (HHS)",
    "Department of Transportation (DOT)",
    "Department of Veterans Affairs (VA)",
    "Immigration and Customs Enforcement (ICE)",
    "Customs and Border Protection (CBP)",
    "National Archives and Records Administration (NARA)",
    "Office of Personnel Management (OPM)",
)

_FEDERAL_KEYWORDS = ("fbi", "cia", "federal", "department of", "national")
_LOCAL_KEYWORDS = ("city of", "county")


def detect_jurisdiction(agency_name: str) -> Jurisdiction | None:
    """Guess the jurisdiction from an agency name, or None if unclear."""
    lower = agency_name.strip().lower()
    if not lower:
        return None
    if any(k in lower for k in _FEDERAL_KEYWORDS):
        return Jurisdiction.FEDERAL
    if any(lower in agency.lower() for agency in FEDERAL_AGENCIES):
        return Jurisdiction.FEDERAL
    if any(k in lower for k in _LOCAL_KEYWORDS):
        return Jurisdiction.LOCAL
    return None


def suggest_agencies(query: str, jurisdiction: Jurisdiction | None) -> list[str]:
    """Return known federal agencies matching ``query``.

    Suggestions are only offered for federal requests and queries of at
    least two characters.
    """
    if jurisdiction != Jurisdiction.FEDERAL or len(query.strip()) < 2:
        return []
    lower = query.strip().lower()
    return [agency for agency in FEDERAL_AGENCIES if lower in agency.lower()]
