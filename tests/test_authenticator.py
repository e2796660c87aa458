"""
tests/test_authenticator.py -- Unit tests for password authentication.

Coverage:
  - Success returns the item and "Authentication successful"
  - Each failure code: notFound, multipleFound, secret notSet, mismatch
  - protect_identities: one generic message for every failure, never on success
  - protect_identities defaults to on; an explicit AuthConfig value wins
  - Timing equalization: the dummy hash runs on lookup failures when protected,
    and not when protection is off
  - Setup: a secret field without compare()/generate_hash() is rejected

The store-backed tests run against a real in-memory Database (see conftest).
The timing tests swap the secret field for a fixed-latency fake so the
assertions do not depend on bcrypt speed.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from unittest.mock import MagicMock

import pytest

from auth.models import AuthConfig
from auth.service import (
    DUMMY_PLAINTEXT,
    IDENTITY_MULTIPLE_FOUND,
    IDENTITY_NOT_FOUND,
    SECRET_MISMATCH,
    SECRET_NOT_SET,
    AuthConfigError,
    Authenticator,
    resolve_protect_identities,
)
from core.config import Settings
from conftest import FixedLatencySecret, mock_store, seed_user

GENERIC = "[passwordAuth:failure] Authentication failed"


class TestAuthenticatorOutcomes:
    def test_success(self, auth, users) -> None:
        user = seed_user(users, "Ada", "ada@example.com", "correct horse")
        result = asyncio.run(Authenticator(auth.config, users).attempt("ada@example.com", "correct horse"))
        assert result.success is True
        assert result.message == "Authentication successful"
        assert result.item["id"] == user["id"]
        assert result.code is None

    def test_unknown_identity(self, auth, users) -> None:
        result = asyncio.run(Authenticator(auth.config, users).attempt("nobody@example.com", "pw"))
        assert result.success is False
        assert result.code == IDENTITY_NOT_FOUND
        assert result.message == (
            "[passwordAuth:identity:notFound] The email value provided didn't identify any Users"
        )

    def test_duplicate_identity(self, auth, users) -> None:
        seed_user(users, "One", "dup@example.com", "pw1")
        seed_user(users, "Two", "dup@example.com", "pw2")
        result = asyncio.run(Authenticator(auth.config, users).attempt("dup@example.com", "pw1"))
        assert result.success is False
        assert result.code == IDENTITY_MULTIPLE_FOUND
        assert "identified more than one User" in result.message

    def test_secret_not_set(self, auth, users) -> None:
        seed_user(users, "NoPw", "nopw@example.com")
        result = asyncio.run(Authenticator(auth.config, users).attempt("nopw@example.com", "anything"))
        assert result.success is False
        assert result.code == SECRET_NOT_SET
        assert result.message == (
            "[passwordAuth:secret:notSet] The User identified has no password set so can not be authenticated"
        )

    def test_wrong_secret(self, auth, users) -> None:
        seed_user(users, "Ada", "ada@example.com", "correct horse")
        result = asyncio.run(Authenticator(auth.config, users).attempt("ada@example.com", "wrong"))
        assert result.success is False
        assert result.code == SECRET_MISMATCH
        assert result.message == "[passwordAuth:secret:mismatch] The password provided is incorrect"


class TestProtectIdentities:
    """With protection on, every failure reads the same; codes stay available for logs."""

    def test_protection_is_on_by_default(self) -> None:
        config = AuthConfig(list_key="User", identity_field="email", secret_field="password")
        assert config.protect_identities is None
        assert Settings.model_fields["protect_identities"].default is True
        assert resolve_protect_identities(config) is True

    def test_explicit_setting_wins(self) -> None:
        config = AuthConfig(
            list_key="User", identity_field="email", secret_field="password", protect_identities=False
        )
        assert resolve_protect_identities(config) is False

    def test_failures_are_indistinguishable(self, auth, users) -> None:
        config = dataclasses.replace(auth.config, protect_identities=True)
        seed_user(users, "Ada", "ada@example.com", "pw")
        seed_user(users, "NoPw", "nopw@example.com")
        seed_user(users, "One", "dup@example.com", "pw")
        seed_user(users, "Two", "dup@example.com", "pw")
        authenticator = Authenticator(config, users)

        attempts = [
            ("nobody@example.com", "pw"),
            ("dup@example.com", "pw"),
            ("nopw@example.com", "pw"),
            ("ada@example.com", "wrong"),
        ]
        results = [asyncio.run(authenticator.attempt(i, s)) for i, s in attempts]
        assert {r.message for r in results} == {GENERIC}
        assert [r.code for r in results] == [
            IDENTITY_NOT_FOUND,
            IDENTITY_MULTIPLE_FOUND,
            SECRET_NOT_SET,
            SECRET_MISMATCH,
        ]

    def test_success_is_never_masked(self, auth, users) -> None:
        config = dataclasses.replace(auth.config, protect_identities=True)
        seed_user(users, "Ada", "ada@example.com", "pw")
        result = asyncio.run(Authenticator(config, users).attempt("ada@example.com", "pw"))
        assert result.success is True
        assert result.message == "Authentication successful"


class TestTimingEqualization:
    def _config(self, auth, protect: bool):
        return dataclasses.replace(auth.config, protect_identities=protect)

    def test_dummy_hash_on_unknown_identity(self, auth) -> None:
        secret = FixedLatencySecret()
        store = mock_store(secret, [])
        asyncio.run(Authenticator(self._config(auth, True), store).attempt("x@example.com", "pw"))
        assert secret.hashed == [DUMMY_PLAINTEXT]
        assert secret.compared == []

    def test_dummy_hash_on_secret_not_set(self, auth) -> None:
        secret = FixedLatencySecret()
        store = mock_store(secret, [{"id": 1, "email": "a@example.com", "password": None}])
        asyncio.run(Authenticator(self._config(auth, True), store).attempt("a@example.com", "pw"))
        assert secret.hashed == [DUMMY_PLAINTEXT]

    def test_no_dummy_hash_without_protection(self, auth) -> None:
        secret = FixedLatencySecret()
        store = mock_store(secret, [])
        asyncio.run(Authenticator(self._config(auth, False), store).attempt("x@example.com", "pw"))
        assert secret.hashed == []

    def test_unknown_identity_and_mismatch_cost_the_same(self, auth) -> None:
        """notFound and mismatch each spend exactly one secret operation.

        Wall-clock time must differ by less than one operation; the counted
        operations pin the same property without depending on the clock.
        """
        delay = 0.05
        config = self._config(auth, True)

        unknown_secret = FixedLatencySecret(delay)
        start = time.perf_counter()
        asyncio.run(Authenticator(config, mock_store(unknown_secret, [])).attempt("x@example.com", "pw"))
        unknown = time.perf_counter() - start

        known = [{"id": 1, "email": "a@example.com", "password": "hashed:right"}]
        mismatch_secret = FixedLatencySecret(delay)
        start = time.perf_counter()
        result = asyncio.run(
            Authenticator(config, mock_store(mismatch_secret, known)).attempt("a@example.com", "wrong")
        )
        mismatch = time.perf_counter() - start

        assert result.code == SECRET_MISMATCH
        assert unknown_secret.operations == mismatch_secret.operations == 1
        # asyncio timers may fire a clock tick early
        assert unknown >= delay * 0.9
        assert mismatch >= delay * 0.9
        assert abs(unknown - mismatch) < delay


class TestSecretFieldCapabilities:
    def test_field_without_compare_is_rejected(self, auth) -> None:
        store = MagicMock()
        store.config.fields = {"password": object()}
        with pytest.raises(AuthConfigError, match="does not provide the required compare"):
            Authenticator(auth.config, store)

    def test_missing_secret_field_is_rejected(self, auth) -> None:
        store = MagicMock()
        store.config.fields = {}
        with pytest.raises(AuthConfigError, match="no such field"):
            Authenticator(auth.config, store)
