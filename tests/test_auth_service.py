"""
tests/test_auth_service.py -- Unit tests for auth/service.py.

Covers:
  - validate_credentials: success, wrong password, unknown email, no password
    (all failures share one message)
  - login: token pair shape, stored hash, overwrite of an earlier session
  - refresh: rotation, rotated-out token denied, no session, lost race
  - logout: idempotent, refresh afterwards denied
  - audit: events recorded, a failing sink never breaks the operation
"""

from __future__ import annotations

import pytest

from auth.errors import AccessDenied, ConfigurationError, InvalidCredentials, Unauthorized
from auth.hashing import verify_refresh_token
from auth.models import CredentialRecord, UserSummary
from auth.service import AuthService
from auth.store import CredentialStore
from auth.tokens import TokenService


def _login(service: AuthService):
    user = service.validate_credentials("a@b.com", "secret1")
    return service.login(user)


class TestValidateCredentials:
    def test_valid_pair_returns_summary(self, service: AuthService) -> None:
        user = service.validate_credentials("a@b.com", "secret1")
        assert user == UserSummary(id="u1", email="a@b.com", name="A")

    def test_email_match_is_case_insensitive(self, service: AuthService) -> None:
        assert service.validate_credentials("A@B.com", "secret1").id == "u1"

    def test_failures_are_indistinguishable(self, service: AuthService) -> None:
        """Unknown email and wrong password must produce the same error."""
        with pytest.raises(InvalidCredentials) as wrong_password:
            service.validate_credentials("a@b.com", "wrong-password")
        with pytest.raises(InvalidCredentials) as unknown_email:
            service.validate_credentials("nobody@b.com", "secret1")
        assert wrong_password.value.message == unknown_email.value.message
        assert wrong_password.value.status_code == unknown_email.value.status_code == 401

    def test_record_without_password_cannot_log_in(self, service: AuthService, store: CredentialStore) -> None:
        store.create_user(CredentialRecord(email="sso@b.com", name="S"))
        with pytest.raises(InvalidCredentials):
            service.validate_credentials("sso@b.com", "anything")

    def test_failed_attempt_is_audited_without_the_address(self, service: AuthService, audit) -> None:
        with pytest.raises(InvalidCredentials):
            service.validate_credentials("a@b.com", "wrong-password")
        event, user_id, details = audit.events[-1]
        assert event == "login_failed"
        assert user_id is None
        assert details == {"domain": "b.com"}


class TestLogin:
    def test_login_issues_pair_and_stores_hash(self, service: AuthService, store: CredentialStore) -> None:
        result = _login(service)
        assert result.user == UserSummary(id="u1", email="a@b.com", name="A")
        assert result.tokens.expires_in == 3600
        assert result.tokens.access_token != result.tokens.refresh_token

        stored = store.get_by_id("u1").hashed_refresh_token
        assert stored is not None
        assert verify_refresh_token(result.tokens.refresh_token, stored)

    def test_second_login_ends_first_session(self, service: AuthService) -> None:
        first = _login(service)
        _login(service)
        with pytest.raises(AccessDenied):
            service.refresh("u1", first.tokens.refresh_token)

    def test_login_for_deleted_user_is_unauthorized(self, service: AuthService) -> None:
        ghost = UserSummary(id="ghost", email="ghost@b.com", name="G")
        with pytest.raises(Unauthorized):
            service.login(ghost)

    def test_bad_ttl_surfaces_configuration_error(self, store: CredentialStore) -> None:
        tokens = TokenService("a" * 40, "b" * 40, access_ttl="5")
        service = AuthService(store, tokens)
        with pytest.raises(ConfigurationError):
            service.login(UserSummary(id="u1", email="a@b.com", name="A"))
        assert store.get_by_id("u1").hashed_refresh_token is None, "No session may start on misconfiguration"


class TestRefresh:
    def test_refresh_rotates_tokens(self, service: AuthService, store: CredentialStore, audit) -> None:
        first = _login(service)
        second = service.refresh("u1", first.tokens.refresh_token)

        assert second.refresh_token != first.tokens.refresh_token
        assert second.expires_in == 3600
        assert verify_refresh_token(second.refresh_token, store.get_by_id("u1").hashed_refresh_token)
        assert "token_refreshed" in audit.names()

    def test_rotated_out_token_is_denied(self, service: AuthService) -> None:
        first = _login(service)
        second = service.refresh("u1", first.tokens.refresh_token)
        with pytest.raises(AccessDenied):
            service.refresh("u1", first.tokens.refresh_token)
        # the current token still works
        service.refresh("u1", second.refresh_token)

    def test_no_session_is_denied(self, service: AuthService, token_service: TokenService) -> None:
        token = token_service.issue_refresh_token("u1", "a@b.com")
        with pytest.raises(AccessDenied):
            service.refresh("u1", token)

    def test_unknown_user_is_denied(self, service: AuthService, token_service: TokenService) -> None:
        token = token_service.issue_refresh_token("ghost", "ghost@b.com")
        with pytest.raises(AccessDenied):
            service.refresh("ghost", token)

    def test_concurrent_rotation_loses(self, store: CredentialStore, token_service: TokenService, audit) -> None:
        """Another refresh rotates the hash between our read and our write."""

        class RacingStore:
            def __init__(self, inner: CredentialStore) -> None:
                self.inner = inner
                self.raced = False

            def get_by_email(self, email):
                return self.inner.get_by_email(email)

            def get_by_id(self, user_id):
                return self.inner.get_by_id(user_id)

            def set_refresh_token_hash(self, user_id, hashed, **kwargs):
                if "expected" in kwargs and not self.raced:
                    self.raced = True
                    self.inner.set_refresh_token_hash(user_id, "rotated-by-someone-else")
                return self.inner.set_refresh_token_hash(user_id, hashed, **kwargs)

        racing = RacingStore(store)
        service = AuthService(racing, token_service, audit=audit)
        first = _login(service)

        with pytest.raises(AccessDenied):
            service.refresh("u1", first.tokens.refresh_token)
        assert store.get_by_id("u1").hashed_refresh_token == "rotated-by-someone-else"
        assert audit.events[-1] == ("refresh_denied", "u1", {"reason": "concurrent_rotation"})


class TestLogout:
    def test_logout_clears_session_and_is_idempotent(self, service: AuthService, store: CredentialStore) -> None:
        first = _login(service)
        service.logout("u1")
        service.logout("u1")
        assert store.get_by_id("u1").hashed_refresh_token is None
        with pytest.raises(AccessDenied):
            service.refresh("u1", first.tokens.refresh_token)

    def test_logout_without_session(self, service: AuthService, audit) -> None:
        service.logout("u1")
        assert audit.names() == ["logout"]


class TestAudit:
    def test_login_refresh_logout_events(self, service: AuthService, audit) -> None:
        first = _login(service)
        service.refresh("u1", first.tokens.refresh_token)
        service.logout("u1")
        assert audit.names() == ["login", "token_refreshed", "logout"]

    def test_failing_sink_does_not_break_login(self, store: CredentialStore, token_service: TokenService) -> None:
        class BrokenSink:
            def record(self, event, user_id, **details):
                raise RuntimeError("sink down")

        service = AuthService(store, token_service, audit=BrokenSink())
        result = _login(service)
        assert result.tokens.access_token
        service.logout("u1")
