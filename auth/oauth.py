"""
auth/oauth.py -- Authlib configuration for "continue with Google".

The provider is registered only when both GOOGLE_CLIENT_ID and
GOOGLE_CLIENT_SECRET are configured. The route layer drives the redirect and
callback; this module turns the provider's token response into a
FederatedProfile that AccountService.federated_signin() accepts.

Security notes:
  Email verification is mandatory. profile_from_token() raises ValueError
  unless the id_token says email_verified=true -- an unverified address could
  belong to someone else, and accounts are matched by email.

  The OAuth state parameter (CSRF protection) is handled by authlib through
  Starlette's SessionMiddleware, registered in api/main.py.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuth

from auth.accounts import FederatedProfile
from core.config import Settings

logger = logging.getLogger("runshop.auth.oauth")

GOOGLE_METADATA_URL = "https://accounts.google.com/.well-known/openid-configuration"


def google_enabled(settings: Settings) -> bool:
    return bool(settings.google_client_id and settings.google_client_secret)


def build_oauth(settings: Settings) -> OAuth:
    """Return an authlib registry with every provider the settings enable."""
    oauth = OAuth()
    if google_enabled(settings):
        oauth.register(
            name="google",
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            server_metadata_url=GOOGLE_METADATA_URL,
            client_kwargs={"scope": "openid email profile"},
        )
        logger.info("Google OAuth provider registered")
    return oauth


def profile_from_token(token: dict) -> FederatedProfile:
    """Extract a FederatedProfile from a Google token response.

    Raises:
        ValueError: no userinfo, unverified email, or missing email.
    """
    userinfo = token.get("userinfo")
    if not userinfo:
        raise ValueError("google OAuth: no userinfo in token response")
    if not userinfo.get("email_verified", False):
        raise ValueError("google OAuth: email is not verified")

    email = userinfo.get("email")
    if not email:
        raise ValueError("google OAuth: missing email claim in userinfo")

    full_name = userinfo.get("name") or email.split("@", 1)[0]
    return FederatedProfile(full_name=full_name, email=email, avatar_url=userinfo.get("picture"))
