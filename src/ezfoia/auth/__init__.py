"""Authentication for EZFOIA: bearer tokens resolved to users."""

from ezfoia.auth.models import AuthenticatedUser
from ezfoia.auth.provider import AuthProvider, MockAuthProvider

__all__ = ["AuthenticatedUser", "AuthProvider", "MockAuthProvider"]
