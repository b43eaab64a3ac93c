"""Unit tests for auth/passwords.py -- Argon2id hashing and verification.

Covers:
- hash/verify round trip, wrong password rejected
- salting: two hashes of the same password differ and both verify
- credential string embeds the Argon2id parameters (64 MiB, t=3, p=2)
- invalid stored credential verifies False instead of raising
- library failure surfaces as HashError, for hashing and for verification
- needs_rehash() flags credentials made with weaker parameters, and
  stored values that are not Argon2 hashes at all
- authenticate_password() runs Argon2 even for unknown emails
"""

from __future__ import annotations

import pytest
from argon2 import PasswordHasher
from argon2.exceptions import HashingError, VerificationError

from auth import passwords
from auth.errors import HashError
from auth.models import User
from auth.passwords import authenticate_password, hash_password, needs_rehash, verify_password


class TestHashAndVerify:
    def test_round_trip(self) -> None:
        hashed = hash_password("correct horse battery staple")
        assert verify_password("correct horse battery staple", hashed) is True

    def test_wrong_password_rejected(self) -> None:
        hashed = hash_password("password")
        assert verify_password("passw0rd", hashed) is False

    def test_same_password_hashes_differ(self) -> None:
        """Fresh salt per call: identical input, different credential, both verify."""
        first = hash_password("password")
        second = hash_password("password")
        assert first != second
        assert verify_password("password", first)
        assert verify_password("password", second)

    def test_credential_embeds_parameters(self) -> None:
        hashed = hash_password("password")
        assert hashed.startswith("$argon2id$v=19$m=65536,t=3,p=2$")

    def test_plaintext_not_in_credential(self) -> None:
        hashed = hash_password("hunter2hunter2")
        assert "hunter2" not in hashed

    def test_empty_and_unicode_passwords_hash(self) -> None:
        """Password content never causes an error."""
        for plain in ("", "pässwörd-密码-🔑"):
            assert verify_password(plain, hash_password(plain))

    def test_invalid_stored_hash_returns_false(self) -> None:
        assert verify_password("password", "not-an-argon2-hash") is False


class TestHashErrors:
    def test_hashing_failure_raises_hash_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        class _BrokenHasher:
            def hash(self, password: str) -> str:
                raise HashingError("allocation failed")

        monkeypatch.setattr(passwords, "_hasher", _BrokenHasher())
        with pytest.raises(HashError):
            hash_password("password")

    def test_verification_failure_raises_hash_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A library failure other than a plain mismatch is not reported as a wrong password."""

        class _BrokenHasher:
            def verify(self, hash: str, password: str) -> bool:
                raise VerificationError("decoding failed")

        monkeypatch.setattr(passwords, "_hasher", _BrokenHasher())
        with pytest.raises(HashError):
            verify_password("password", "$argon2id$v=19$m=65536,t=3,p=2$c2FsdHNhbHQ$ZGlnZXN0")


class TestNeedsRehash:
    def test_current_parameters_do_not_need_rehash(self) -> None:
        assert needs_rehash(hash_password("password")) is False

    def test_weaker_parameters_need_rehash(self) -> None:
        weak = PasswordHasher(time_cost=1, memory_cost=8, parallelism=1).hash("password")
        assert needs_rehash(weak) is True
        # Old credentials still verify with the parameters they carry.
        assert verify_password("password", weak) is True

    def test_non_argon2_value_needs_rehash(self) -> None:
        assert needs_rehash("not-an-argon2-hash") is True
        assert needs_rehash("") is True


class TestAuthenticatePassword:
    def test_valid_credentials_return_user(self, store) -> None:
        user = store.create_user(User(email="a@example.com", hashed_password=hash_password("pw-a")))
        found = authenticate_password(store, "a@example.com", "pw-a")
        assert found is not None
        assert found.id == user.id

    def test_wrong_password_returns_none(self, store) -> None:
        store.create_user(User(email="a@example.com", hashed_password=hash_password("pw-a")))
        assert authenticate_password(store, "a@example.com", "pw-b") is None

    def test_unknown_email_still_runs_argon2(self, store, monkeypatch: pytest.MonkeyPatch) -> None:
        """Timing equalization: a verification happens even when no user exists."""
        calls: list[str] = []
        real_verify = passwords.verify_password

        def _spy(plain: str, hashed: str) -> bool:
            calls.append(hashed)
            return real_verify(plain, hashed)

        monkeypatch.setattr(passwords, "verify_password", _spy)
        assert authenticate_password(store, "ghost@example.com", "pw") is None
        assert calls == [passwords._DUMMY_HASH]
