"""
auth/validation.py -- Input checks for account lifecycle operations.

Every check raises AuthError(INVALID_INPUT) with a client-safe message,
except password_violations(), which returns the full list so the signup
response can enumerate each missing character class independently.

classify_login() turns the polymorphic "username or phone" signin field
into a tagged value before any store lookup happens.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from auth.errors import AuthError, ErrorKind

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 64
SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'

_PHONE_RE = re.compile(r"^(0|\+?\d{1,3})[0-9]{9,14}$")
_LOGIN_PHONE_RE = re.compile(r"^[0-9]{10,15}$")
_USERNAME_RE = re.compile(r"^[A-Za-z0-9]{3,30}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_SPECIAL_RE = re.compile("[" + re.escape(SPECIAL_CHARACTERS) + "]")

# (code, message) pairs, checked in this order.
PASSWORD_RULES: list[tuple[str, str]] = [
    ("min_length", f"Password must be at least {PASSWORD_MIN_LENGTH} characters long."),
    ("uppercase", "Password must contain at least one uppercase letter."),
    ("lowercase", "Password must contain at least one lowercase letter."),
    ("digit", "Password must contain at least one digit."),
    ("special", "Password must contain at least one special character (!@#$%^&*...)."),
]
_RULE_MESSAGES = dict(PASSWORD_RULES)


def password_violations(password: str) -> list[str]:
    """Return the codes of every strength rule the password breaks (empty if strong)."""
    failed: list[str] = []
    if len(password) < PASSWORD_MIN_LENGTH:
        failed.append("min_length")
    if not re.search(r"[A-Z]", password):
        failed.append("uppercase")
    if not re.search(r"[a-z]", password):
        failed.append("lowercase")
    if not re.search(r"[0-9]", password):
        failed.append("digit")
    if not _SPECIAL_RE.search(password):
        failed.append("special")
    return failed


def check_password_strength(password: str) -> None:
    failed = password_violations(password)
    if failed:
        raise AuthError(
            ErrorKind.INVALID_INPUT,
            "Password does not meet the strength requirements.",
            errors=[_RULE_MESSAGES[code] for code in failed],
        )
    if len(password) > PASSWORD_MAX_LENGTH:
        raise AuthError(
            ErrorKind.INVALID_INPUT,
            f"Password must be at most {PASSWORD_MAX_LENGTH} characters long.",
        )


def require_fields(**fields: str | None) -> None:
    """Raise for the first field that is missing or blank."""
    for name, value in fields.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            raise AuthError(ErrorKind.INVALID_INPUT, f"{name} is required.")


def is_valid_phone(phone: str) -> bool:
    return bool(_PHONE_RE.match(phone))


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def check_phone(phone: str) -> None:
    if not is_valid_phone(phone):
        raise AuthError(ErrorKind.INVALID_INPUT, "Phone number is invalid.")


def check_username(username: str) -> None:
    if not _USERNAME_RE.match(username):
        raise AuthError(
            ErrorKind.INVALID_INPUT,
            "Username must be 3-30 characters, letters and digits only.",
        )


def check_full_name(full_name: str) -> None:
    if not 3 <= len(full_name.strip()) <= 100:
        raise AuthError(ErrorKind.INVALID_INPUT, "Full name must be 3-100 characters.")


def check_email(email: str) -> None:
    if not is_valid_email(email):
        raise AuthError(ErrorKind.INVALID_INPUT, "Email is invalid.")


# ---------------------------------------------------------------------------
# Signin input classification
# ---------------------------------------------------------------------------


class LoginKind(str, Enum):
    phone = "phone"
    username = "username"


@dataclass(frozen=True)
class LoginIdentifier:
    kind: LoginKind
    value: str


def classify_login(username_or_phone: str) -> LoginIdentifier:
    """Classify the signin identifier: 10-15 digits is a phone, anything else a username."""
    value = username_or_phone.strip()
    if _LOGIN_PHONE_RE.match(value):
        return LoginIdentifier(LoginKind.phone, value)
    return LoginIdentifier(LoginKind.username, value)
