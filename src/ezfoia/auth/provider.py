"""Authentication provider Protocol and mock implementation.

Only the pass/fail contract matters to the request builder: a bearer token
either resolves to an ``AuthenticatedUser`` or it does not.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml

from ezfoia.auth.models import AuthCredentials, AuthenticatedUser, AuthResult, TokenValidation
from ezfoia.core.config import resolve_config_path

_DEFAULT_FIXTURES_PATH = "config/auth_fixtures.yml"


@runtime_checkable
class AuthProvider(Protocol):
    """Protocol for authentication providers."""

    def authenticate(self, credentials: AuthCredentials) -> AuthResult: ...

    def validate_token(self, token: str) -> TokenValidation: ...

    def revoke_token(self, token: str) -> bool: ...


class MockAuthProvider:
    """Mock auth provider with fixture users from YAML.

    Any non-empty code is accepted unless the fixture pins one.
    """

    def __init__(
        self,
        fixtures_path: str | Path | None = None,
        token_expiry_minutes: int = 60,
    ) -> None:
        self._users: dict[str, dict[str, Any]] = {}
        self._tokens: dict[str, dict[str, Any]] = {}
        self._token_expiry = timedelta(minutes=token_expiry_minutes)
        self._load_fixtures(resolve_config_path(fixtures_path or _DEFAULT_FIXTURES_PATH))

    def _load_fixtures(self, path: Path) -> None:
        if not path.exists():
            return
        with open(path) as fh:
            data = yaml.safe_load(fh) or {}
        for user in data.get("users", []):
            self._users[user["username"]] = user

    @property
    def users(self) -> dict[str, dict[str, Any]]:
        return dict(self._users)

    def add_user(
        self, username: str, email: str, display_name: str = "", is_admin: bool = False
    ) -> None:
        self._users[username] = {
            "username": username,
            "email": email,
            "display_name": display_name,
            "admin": is_admin,
        }

    def issue_token(self, username: str) -> str:
        """Issue a token for a known user without a code check."""
        user = self._users[username]
        token = str(uuid.uuid4())
        self._tokens[token] = {
            "user": self._to_user(user),
            "expires_at": datetime.now(timezone.utc) + self._token_expiry,
        }
        return token

    def authenticate(self, credentials: AuthCredentials) -> AuthResult:
        user = self._users.get(credentials.username)
        if user is None:
            return AuthResult(success=False, error="User not found")

        expected_code = str(user.get("code", ""))
        if not credentials.code or not credentials.code.strip():
            return AuthResult(success=False, error="Verification code is required")
        if expected_code and credentials.code != expected_code:
            return AuthResult(success=False, error="Invalid verification code")

        token = self.issue_token(credentials.username)
        return AuthResult(success=True, token=token, user=self._tokens[token]["user"])

    def validate_token(self, token: str) -> TokenValidation:
        info = self._tokens.get(token)
        if info is None:
            return TokenValidation(valid=False)

        if datetime.now(timezone.utc) > info["expires_at"]:
            del self._tokens[token]
            return TokenValidation(valid=False)

        return TokenValidation(valid=True, user=info["user"], expires_at=info["expires_at"])

    def revoke_token(self, token: str) -> bool:
        return self._tokens.pop(token, None) is not None

    @staticmethod
    def _to_user(data: dict[str, Any]) -> AuthenticatedUser:
        return AuthenticatedUser(
            user_id=data.get("user_id", data["username"]),
            email=data.get("email", ""),
            display_name=data.get("display_name", ""),
            is_admin=bool(data.get("admin", False)),
        )
