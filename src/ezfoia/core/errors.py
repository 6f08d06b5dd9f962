"""Exception taxonomy for the request builder.

User-facing failures (generation, persistence, checkout, illegal wizard
moves) propagate to the caller. Entitlement, notification and corrupt-slot
failures are logged and swallowed where they occur.
"""

from __future__ import annotations


class EzfoiaError(Exception):
    """Base class for all EZFOIA errors."""


class IllegalTransition(EzfoiaError):
    """A wizard move that the transition table does not allow."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move from {current!r} to {target!r}")
        self.current = current
        self.target = target


class WizardBusy(EzfoiaError):
    """A forward move was attempted while generation or submission is in flight."""


class GenerationFailure(EzfoiaError):
    """Letter generation failed. Always retryable from the context step."""

    def __init__(self, message: str = "Failed to generate your request. Please try again.") -> None:
        super().__init__(message)
        self.user_message = message


class EntitlementCheckFailure(EzfoiaError):
    """The billing status lookup failed. Never escapes the resolver."""


class SubmissionPersistenceFailure(EzfoiaError):
    """Inserting the request record failed. Nothing was written."""


class NotificationFailure(EzfoiaError):
    """Confirmation delivery failed. Logged only."""


class PendingSubmissionCorruption(EzfoiaError):
    """A stored pending submission did not match its schema."""


class CheckoutFailure(EzfoiaError):
    """The checkout session could not be created."""
