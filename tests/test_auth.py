"""Tests for the mock auth provider and the auth dependencies."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from ezfoia.auth.models import AuthCredentials
from ezfoia.auth.provider import AuthProvider, MockAuthProvider


@pytest.fixture
def provider() -> MockAuthProvider:
    return MockAuthProvider()


class TestMockAuthProvider:
    def test_satisfies_protocol(self, provider):
        assert isinstance(provider, AuthProvider)

    def test_fixture_users_loaded(self, provider):
        assert {"jane", "reporter", "admin"} <= set(provider.users)

    def test_any_code_accepted(self, provider):
        result = provider.authenticate(AuthCredentials(username="jane", code="424242"))
        assert result.success
        assert result.token
        assert result.user.user_id == "jane"
        assert result.user.email == "jane@example.com"
        assert not result.user.is_admin

    def test_empty_code_rejected(self, provider):
        result = provider.authenticate(AuthCredentials(username="jane", code="  "))
        assert not result.success
        assert result.error == "Verification code is required"

    def test_pinned_code(self, provider):
        wrong = provider.authenticate(AuthCredentials(username="admin", code="123456"))
        right = provider.authenticate(AuthCredentials(username="admin", code="000000"))
        assert not wrong.success
        assert right.success
        assert right.user.is_admin

    def test_unknown_user(self, provider):
        result = provider.authenticate(AuthCredentials(username="nobody", code="1"))
        assert not result.success
        assert result.error == "User not found"

    def test_validate_and_revoke(self, provider):
        token = provider.issue_token("reporter")
        validation = provider.validate_token(token)
        assert validation.valid
        assert validation.user.display_name == "Newsroom Reporter"

        assert provider.revoke_token(token)
        assert not provider.validate_token(token).valid
        assert not provider.revoke_token(token)

    def test_expired_token(self, provider):
        token = provider.issue_token("jane")
        provider._tokens[token]["expires_at"] = datetime.now(timezone.utc) - timedelta(seconds=1)
        assert not provider.validate_token(token).valid
        assert token not in provider._tokens

    def test_added_user(self, provider):
        provider.add_user("ops", "ops@example.com", is_admin=True)
        token = provider.issue_token("ops")
        user = provider.validate_token(token).user
        assert user.user_id == "ops"
        assert user.is_admin

    def test_missing_fixtures_file(self, tmp_path):
        provider = MockAuthProvider(fixtures_path=tmp_path / "none.yml")
        assert provider.users == {}
