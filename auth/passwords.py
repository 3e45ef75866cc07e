"""
auth/passwords.py -- One-way password hashing and verification (bcrypt).

Security design decisions:
  bcrypt directly, no passlib wrapper. The salt and cost factor are embedded
  in the digest, so verify_password() needs nothing but the stored string.

  Cost factor: 10 rounds by default (Settings.bcrypt_rounds), which puts a
  single verification in the tens of milliseconds on current hardware.
  Tests pass rounds=4 to keep the suite fast.

  72-byte limit: bcrypt only looks at the first 72 bytes of input, and
  bcrypt>=4.1 rejects longer input outright. hash_password() treats longer
  input as malformed instead of silently truncating, so two passwords that
  share a 72-byte prefix can never verify against each other.

  dummy_hash() enables timing equalization: signin always runs one bcrypt
  comparison, even when the username or phone does not exist. The dummy
  digest is built at the same cost as real digests, one per cost factor.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

from functools import lru_cache

import bcrypt

from auth.errors import AuthError, ErrorKind

BCRYPT_ROUNDS = 10
_BCRYPT_MAX_BYTES = 72


def hash_password(plain: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Return a salted bcrypt digest of the plaintext password.

    Raises AuthError(INVALID_INPUT) for empty, non-string or over-long input.
    """
    if not isinstance(plain, str) or not plain:
        raise AuthError(ErrorKind.INVALID_INPUT, "Password is required.")
    encoded = plain.encode("utf-8")
    if len(encoded) > _BCRYPT_MAX_BYTES:
        raise AuthError(ErrorKind.INVALID_INPUT, "Password is too long.")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext matches the digest.

    Any mismatch, malformed digest or malformed candidate returns False; the
    caller cannot tell which.
    """
    if not isinstance(plain, str) or not isinstance(hashed, str) or not hashed:
        return False
    encoded = plain.encode("utf-8")
    if len(encoded) > _BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


@lru_cache(maxsize=None)
def dummy_hash(rounds: int = BCRYPT_ROUNDS) -> str:
    """Return a throwaway digest at the given cost, computed once per cost."""
    return hash_password("runshop_timing_dummy", rounds=rounds)


def burn_verification(plain: str, rounds: int = BCRYPT_ROUNDS) -> None:
    """Run one bcrypt comparison against the dummy hash and discard the result.

    Called on lookup misses so response time does not reveal whether an
    account exists. `rounds` must match the cost of the stored digests.
    """
    verify_password(plain if isinstance(plain, str) else "", dummy_hash(rounds))
