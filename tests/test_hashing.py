"""
tests/test_hashing.py -- Unit tests for auth/hashing.py.

Covers:
  - password hash/verify match and mismatch
  - malformed stored hash fails closed (False, no exception)
  - dummy verification for missing hashes returns False
  - refresh-token hashing distinguishes JWTs that share a long prefix
  - HashingFailure on bcrypt library errors
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from auth.errors import HashingFailure
from auth.hashing import (
    hash_password,
    hash_refresh_token,
    verify_password,
    verify_password_or_dummy,
    verify_refresh_token,
)


class TestPasswords:
    def test_hash_is_salted_and_verifies(self) -> None:
        first = hash_password("secret1")
        second = hash_password("secret1")
        assert first != second, "Two hashes of the same password must differ (salt)"
        assert first.startswith("$2")
        assert verify_password("secret1", first)
        assert verify_password("secret1", second)

    def test_wrong_password_is_false(self) -> None:
        hashed = hash_password("secret1")
        assert verify_password("secret2", hashed) is False

    def test_malformed_hash_fails_closed(self) -> None:
        """A corrupt stored hash must read as 'no match', never raise."""
        assert verify_password("secret1", "not-a-bcrypt-hash") is False

    def test_dummy_path_returns_false(self) -> None:
        assert verify_password_or_dummy("secret1", None) is False

    def test_dummy_path_delegates_when_hash_present(self) -> None:
        hashed = hash_password("secret1")
        assert verify_password_or_dummy("secret1", hashed) is True

    def test_library_error_raises_hashing_failure(self) -> None:
        with patch("auth.hashing.bcrypt.hashpw", side_effect=ValueError("boom")):
            with pytest.raises(HashingFailure):
                hash_password("secret1")


class TestRefreshTokens:
    def test_tokens_with_shared_prefix_do_not_collide(self) -> None:
        """bcrypt reads 72 bytes; two JWTs for one user share far more than that."""
        prefix = "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9." + "x" * 80
        old_token = prefix + ".old-signature"
        new_token = prefix + ".new-signature"
        stored = hash_refresh_token(new_token)
        assert verify_refresh_token(new_token, stored)
        assert verify_refresh_token(old_token, stored) is False

    def test_malformed_stored_hash_fails_closed(self) -> None:
        assert verify_refresh_token("any.token.value", "garbage") is False
