"""Authentication middleware and dependencies."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from ezfoia.auth.models import AuthenticatedUser


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that resolves a Bearer token into ``request.state.user``."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request.state.user = None

        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
            provider = getattr(request.app.state, "auth_provider", None)
            if provider is not None:
                validation = provider.validate_token(token)
                if validation.valid:
                    request.state.user = validation.user

        return await call_next(request)


def current_user(request: Request) -> AuthenticatedUser | None:
    return getattr(request.state, "user", None)


def _require_user(request: Request) -> AuthenticatedUser:
    user = current_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="Sign in to continue.")
    return user


def _require_admin(request: Request) -> AuthenticatedUser:
    user = _require_user(request)
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required.")
    return user


def require_user():
    """FastAPI dependency that requires a signed-in user."""
    return Depends(_require_user)


def require_admin():
    """FastAPI dependency that requires a signed-in admin."""
    return Depends(_require_admin)
