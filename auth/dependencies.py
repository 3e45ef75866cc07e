"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Token sources, checked in priority order:
  1. "token" cookie -- httpOnly, set by the signin flows.
  2. Authorization: Bearer <token> header -- API clients and mobile apps.

Authentication is stateless: the decoded claims are trusted as-is and the
store is never consulted here. A deactivated account or a role change only
takes effect when the next token is issued.

On a failed verification the raised TokenError carries clear_session=True;
the AuthError handler in api/main.py deletes the cookie on the 401 response
so a poisoned client does not keep replaying a dead token. Expired and
forged tokens get the same status code.

get_current_claims() raises 401 and stores the claims on request.state.
require_admin() / require_admin_or_owner() add the 403 policy checks.

Layer rule: may import fastapi (this module is part of the DI system); no
imports from api/ or catalog/.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request

from auth.errors import AuthError, ErrorKind, TokenError
from auth.models import Claims
from auth.policy import ensure_admin, ensure_authorized
from auth.tokens import SESSION_COOKIE_NAME, TokenService

logger = logging.getLogger("runshop.auth")


def extract_token(request: Request) -> str | None:
    """Return the session token from the cookie, falling back to the Bearer header."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def get_current_claims(request: Request) -> Claims:
    """Require authentication. Raises AuthError(UNAUTHENTICATED) -> HTTP 401.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: Claims = Depends(get_current_claims)): ...
    """
    token = extract_token(request)
    if token is None:
        raise AuthError(ErrorKind.UNAUTHENTICATED, "Please sign in.")

    tokens: TokenService = request.app.state.tokens
    try:
        claims = tokens.verify(token)
    except TokenError as exc:
        logger.info(
            "Rejected session token (%s) on %s %s",
            exc.reason,
            request.method,
            request.url.path,
        )
        raise

    request.state.claims = claims
    return claims


def require_admin(claims: Claims = Depends(get_current_claims)) -> Claims:
    """Require the admin role. 401 if unauthenticated, 403 if not admin."""
    ensure_admin(claims)
    return claims


def require_admin_or_owner(user_id: str, claims: Claims = Depends(get_current_claims)) -> Claims:
    """Require admin role or ownership of the {user_id} path parameter.

    Use on routes shaped like /user/{user_id}:
        @router.delete("/user/{user_id}")
        def route(user_id: str, claims: Claims = Depends(require_admin_or_owner)): ...
    """
    ensure_authorized(claims, user_id)
    return claims
