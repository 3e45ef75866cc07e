"""
auth/policy.py -- Role/ownership authorization rule.

An identity may act on a resource when it holds the admin role or when it
owns the resource. The owner id comes from the route (path or body); the
policy never re-fetches anything from the store.

The policy only ever sees Claims, which exist only after the request
authenticator has succeeded -- an unauthenticated request is rejected with
401 before this module is consulted.
"""

from __future__ import annotations

from auth.errors import AuthError, ErrorKind
from auth.models import Claims

FORBIDDEN_MESSAGE = "You do not have permission to perform this action."


def authorize(claims: Claims, owner_id: str | None) -> bool:
    """Return True if the claims allow acting on a resource owned by owner_id."""
    if claims.is_admin:
        return True
    return owner_id is not None and claims.id == owner_id


def ensure_authorized(claims: Claims, owner_id: str | None) -> None:
    """Raise AuthError(FORBIDDEN) unless authorize() allows the action."""
    if not authorize(claims, owner_id):
        raise AuthError(ErrorKind.FORBIDDEN, FORBIDDEN_MESSAGE)


def ensure_admin(claims: Claims) -> None:
    if not claims.is_admin:
        raise AuthError(ErrorKind.FORBIDDEN, "Admin access required.")
