"""
auth/passwords.py -- Argon2id password hashing and verification.

Security design decisions:
  Argon2id via argon2-cffi's PasswordHasher. Argon2 is memory-hard: each
  guess costs 64 MiB of RAM as well as CPU time, which makes GPU/ASIC
  brute-force and precomputed tables uneconomical for low-entropy secrets.

  Parameters: memory_cost=64 MiB, time_cost=3, parallelism=2, 16-byte salt,
  32-byte digest. They are embedded in the PHC string the hasher produces
  ($argon2id$v=19$m=65536,t=3,p=2$<salt>$<digest>), so verification always
  uses the parameters the credential was created with and old credentials
  keep verifying after the defaults change (see needs_rehash()).

  Verification is constant-time inside libargon2.

  Only library failures (argon2.exceptions.HashingError / VerificationError
  other than a plain mismatch) surface as HashError. The plaintext content
  never causes an error, and it is never logged or returned.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from argon2 import PasswordHasher, Type
from argon2.exceptions import HashingError, InvalidHashError, VerificationError, VerifyMismatchError

from auth.errors import HashError

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import AuthStore

logger = logging.getLogger("chirpy.auth")

MEMORY_COST_KIB = 64 * 1024
TIME_COST = 3
PARALLELISM = 2
SALT_LEN = 16
HASH_LEN = 32

_hasher = PasswordHasher(
    time_cost=TIME_COST,
    memory_cost=MEMORY_COST_KIB,
    parallelism=PARALLELISM,
    hash_len=HASH_LEN,
    salt_len=SALT_LEN,
    type=Type.ID,
)


def hash_password(plain: str) -> str:
    """Return an Argon2id PHC string for the given plaintext password.

    Two calls with the same password return different strings (fresh random
    salt each time); both verify.
    """
    try:
        return _hasher.hash(plain)
    except HashingError as exc:
        logger.error("Argon2 hashing failed: %s", type(exc).__name__)
        raise HashError() from exc


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the Argon2 credential.

    A mismatch, or a stored value that is not an Argon2 hash at all, returns
    False. Library failures raise HashError.
    """
    try:
        return _hasher.verify(hashed, plain)
    except VerifyMismatchError:
        return False
    except InvalidHashError:
        logger.warning("Stored password credential is not a valid Argon2 hash")
        return False
    except VerificationError as exc:
        logger.error("Argon2 verification failed: %s", type(exc).__name__)
        raise HashError() from exc


def needs_rehash(hashed: str) -> bool:
    """Return True if the credential should be replaced by a fresh hash_password() result.

    That is the case when it was made with different parameters than the
    current ones, or when it is not an Argon2 hash at all.
    """
    try:
        return _hasher.check_needs_rehash(hashed)
    except InvalidHashError:
        return True


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("chirpy_timing_dummy")


def authenticate_password(store: AuthStore, email: str, plain: str) -> User | None:
    """Look up a user by email and check the password with timing equalization.

    Always runs one Argon2 verification whether or not the email exists:
    - Unknown email: verify against _DUMMY_HASH (same cost as a real check)
    - Wrong password: verify against the real credential (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_user_by_email(email)
    if user is None:
        verify_password(plain, _DUMMY_HASH)
        return None
    if not verify_password(plain, user.hashed_password):
        return None
    return user
