"""
auth/errors.py -- Error taxonomy shared by every auth component.

Every failure the core can produce is an AuthError carrying an ErrorKind.
The kind decides the HTTP status; the message is safe to show to clients.
api/main.py registers one exception handler that renders any AuthError
as {"success": false, "code": ..., "message": ..., "errors": [...]}.

Note that CONFLICT maps to 400, not 409 -- existing clients of this API
treat "username taken" as a plain validation failure.

Token verification failures subclass TokenError so callers can catch them
as one group (all are 401) while logs still record which one happened.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL = "internal_error"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 400,
    ErrorKind.INTERNAL: 500,
}


class AuthError(Exception):
    """A failure produced by the auth core.

    Args:
        kind:          Taxonomy bucket; decides the HTTP status.
        message:       Human-readable, client-safe message.
        errors:        Optional list of individual violations (e.g. each
                       missing password character class).
        clear_session: When True the HTTP layer also clears the session
                       cookie on the error response.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        errors: list[str] | None = None,
        clear_session: bool = False,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.errors = errors or []
        self.clear_session = clear_session

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value!r}, {self.message!r})"


class TokenError(AuthError):
    """Base class for session token verification failures (always 401)."""

    reason = "invalid"

    def __init__(self, message: str = "Session is invalid or has expired. Please sign in again.") -> None:
        super().__init__(ErrorKind.UNAUTHENTICATED, message, clear_session=True)


class TokenMalformed(TokenError):
    reason = "malformed"


class TokenSignatureInvalid(TokenError):
    reason = "signature_invalid"


class TokenExpired(TokenError):
    reason = "expired"
