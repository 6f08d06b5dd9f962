"""In-memory store for open wizard sessions."""

from __future__ import annotations

from ezfoia.wizard.models import WizardSession


class RequestDraftStore:
    """In-memory dict store for wizard sessions.

    Drafts live only as long as the wizard is open, so a single-instance
    dict is sufficient.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, WizardSession] = {}

    def save(self, session: WizardSession) -> None:
        self._sessions[session.id] = session

    def get(self, session_id: str) -> WizardSession | None:
        return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    @property
    def count(self) -> int:
        return len(self._sessions)
