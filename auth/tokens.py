"""
auth/tokens.py -- Session token issuance/verification and cookie transport.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry id, username, role, iat and exp.
       They are self-contained: nothing is stored server-side, so a token
       stays valid until it expires even if the account's role or active
       flag changes in the meantime.

  Expiry: 7 days when the caller asked to be remembered, otherwise
       Settings.token_expire_seconds (1 hour by default).

  Verification failures are split into TokenMalformed, TokenSignatureInvalid
       and TokenExpired (see auth/errors.py). All are 401 to the client; the
       split only exists for logging.

  Configuration is injected: TokenService and SessionCookie are built once at
       startup from Settings and stored on app.state. The secret is never
       re-read per request.

  Cookie max_age is fixed at 7 days even when the token inside expires after
       one hour. Existing clients depend on that; an expired token in a live
       cookie is still rejected by verify(), and the authenticator clears the
       cookie when it does.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from auth.errors import TokenExpired, TokenMalformed, TokenSignatureInvalid
from auth.models import Claims, Identity
from core.config import Settings

logger = logging.getLogger("runshop.auth")

_ALGORITHM = "HS256"

REMEMBER_ME_SECONDS = 7 * 24 * 60 * 60
SESSION_COOKIE_NAME = "token"
SESSION_COOKIE_MAX_AGE = 7 * 24 * 60 * 60


class TokenService:
    """Issues and verifies signed session tokens.

    Usage:
        tokens = TokenService.from_settings(get_settings())
        token = tokens.issue(identity, remember_me=False)
        claims = tokens.verify(token)   # raises TokenError subclasses
    """

    def __init__(self, secret_key: str, default_expire_seconds: int = 3600) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a non-empty secret key.")
        self._secret_key = secret_key
        self.default_expire_seconds = default_expire_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(settings.secret_key, settings.token_expire_seconds)

    def expire_seconds(self, remember_me: bool) -> int:
        return REMEMBER_ME_SECONDS if remember_me else self.default_expire_seconds

    def issue(self, identity: Identity, remember_me: bool = False, now: datetime | None = None) -> str:
        """Encode a signed JWT for the identity.

        Args:
            identity:    A persisted identity (id must be set).
            remember_me: Selects the 7-day window instead of the default one.
            now:         Issuance time; defaults to the current UTC time.
        """
        if identity.id is None:
            raise ValueError("Cannot issue a token for an identity without an id.")
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "id": identity.id,
            "username": identity.username,
            "role": identity.role,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self.expire_seconds(remember_me)),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> Claims:
        """Decode and verify a JWT, returning its claims.

        Raises:
            TokenMalformed:        not a parseable JWT, or claims missing/wrong type.
            TokenSignatureInvalid: signature does not match this server's secret.
            TokenExpired:          signature fine, but exp has passed.
        """
        if not isinstance(token, str) or not token:
            raise TokenMalformed()
        try:
            unverified = jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise TokenMalformed() from exc
        # A token without exp would never expire.
        if "exp" not in unverified:
            raise TokenMalformed()

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"require_exp": True},
            )
        except ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except JWTClaimsError as exc:
            raise TokenMalformed() from exc
        except JWTError as exc:
            raise TokenSignatureInvalid() from exc

        user_id = payload.get("id")
        username = payload.get("username")
        role = payload.get("role")
        if not all(isinstance(v, str) and v for v in (user_id, username, role)):
            raise TokenMalformed()

        exp = payload.get("exp")
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc) if isinstance(exp, (int, float)) else None
        return Claims(id=user_id, username=username, role=role, expires_at=expires_at)


@dataclass(frozen=True)
class SessionCookie:
    """Writes and clears the session cookie with the environment's attributes.

    httponly: JS cannot read the cookie (XSS mitigation).
    secure:   only sent over HTTPS -- production only.
    samesite: "none" in production because the storefront and admin UI live
              on other origins; "lax" in development.
    """

    secure: bool = False
    samesite: str = "lax"
    name: str = SESSION_COOKIE_NAME
    max_age: int = SESSION_COOKIE_MAX_AGE

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionCookie":
        if settings.is_production:
            return cls(secure=True, samesite="none")
        return cls(secure=False, samesite="lax")

    def set(self, response, token: str) -> None:
        """Write the token as an httpOnly cookie on a Starlette response."""
        response.set_cookie(
            self.name,
            value=token,
            max_age=self.max_age,
            httponly=True,
            secure=self.secure,
            samesite=self.samesite,
        )

    def clear(self, response) -> None:
        """Delete the cookie. Best-effort: a failure here is logged, not raised."""
        try:
            response.delete_cookie(
                self.name,
                httponly=True,
                secure=self.secure,
                samesite=self.samesite,
            )
        except Exception:
            logger.warning("Failed to clear session cookie", exc_info=True)
