"""
api/routes/v1/users.py -- Account and authentication REST endpoints.

Routes (registration order matters: fixed paths before /user/{user_id}):
  POST   /api/v1/user/signup                     -- register; sets session cookie
  POST   /api/v1/user/signin                     -- username-or-phone signin; sets cookie
  POST   /api/v1/user/authentication/signin      -- admin console signin; sets cookie
  GET    /api/v1/user/auth/google                -- redirect to Google
  GET    /api/v1/user/auth/google/callback       -- federated signin; sets cookie
  POST   /api/v1/user/signout                    -- clears cookie
  GET    /api/v1/user/me                         -- current identity
  GET    /api/v1/user/users                      -- paginated list (admin only)
  PUT    /api/v1/user/change-password/{user_id}  -- admin or owner
  GET    /api/v1/user/{user_id}                  -- admin or owner
  PUT    /api/v1/user/{user_id}                  -- admin or owner
  DELETE /api/v1/user/{user_id}                  -- admin or owner

Security:
  Credential endpoints are rate-limited per IP (Settings.auth_rate_limit).
  Signin failures return one generic message for every credential mismatch.
  Cache-Control: no-store on every response that carries a token.
  Signout is stateless: the cookie is cleared, the token itself lives on
  until its expiry for any client that kept a copy.
"""

import logging

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from api.limiter import auth_rate_limit, limiter
from api.models import (
    AdminSigninRequest,
    AuthResponse,
    ChangePasswordRequest,
    MessageResponse,
    ProfileUpdateRequest,
    SigninRequest,
    SignupRequest,
    UserEnvelope,
    UserListResponse,
    UserOut,
)
from auth.accounts import AccountService, AuthOutcome, ProfileUpdate, SignupInput
from auth.dependencies import get_current_claims, require_admin, require_admin_or_owner
from auth.errors import AuthError, ErrorKind
from auth.models import Claims
from auth.oauth import profile_from_token
from auth.tokens import SessionCookie

logger = logging.getLogger("runshop.api")

# Auth policy:
# - POST   /user/signup, /user/signin, /user/authentication/signin: public, rate limited
# - GET    /user/auth/google, /user/auth/google/callback: public
# - POST   /user/signout: public -- clearing a cookie needs no prior auth
# - GET    /user/me: requires auth (get_current_claims)
# - GET    /user/users: requires admin (require_admin)
# - GET/PUT/DELETE /user/{user_id}, PUT /user/change-password/{user_id}:
#          requires admin or owner (require_admin_or_owner)
router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _accounts(request: Request) -> AccountService:
    return request.app.state.accounts


def _session_cookie(request: Request) -> SessionCookie:
    return request.app.state.session_cookie


def _auth_response(
    request: Request,
    outcome: AuthOutcome,
    message: str,
    status_code: int = 200,
    include_token: bool = True,
) -> JSONResponse:
    """Build the success body, set the session cookie, and forbid caching."""
    body = AuthResponse(
        message=message,
        user=UserOut.from_identity(outcome.identity),
        token=outcome.token if include_token else None,
    )
    resp = JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))
    _session_cookie(request).set(resp, outcome.token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/user/signup", response_model=AuthResponse, status_code=201)
@limiter.limit(auth_rate_limit)
def signup(request: Request, body: SignupRequest) -> JSONResponse:
    """Register a customer account and sign it in."""
    outcome = _accounts(request).signup(
        SignupInput(
            username=body.username,
            phone=body.phone,
            password=body.password,
            confirm_password=body.confirm_password,
            full_name=body.full_name,
        )
    )
    return _auth_response(request, outcome, "Signup successful.", status_code=201)


@router.post("/user/signin", response_model=AuthResponse)
@limiter.limit(auth_rate_limit)
def signin(request: Request, body: SigninRequest) -> JSONResponse:
    """Sign in with a username or a phone number plus password."""
    outcome = _accounts(request).signin(body.username_or_phone, body.password)
    return _auth_response(request, outcome, "Signed in successfully.")


@router.post("/user/authentication/signin", response_model=AuthResponse)
@limiter.limit(auth_rate_limit)
def admin_signin(request: Request, body: AdminSigninRequest) -> JSONResponse:
    """Admin console signin. Valid credentials for a non-admin account get 403."""
    outcome = _accounts(request).admin_signin(body.username_or_phone, body.password, body.remember_me)
    return _auth_response(request, outcome, "Signed in successfully.")


@router.get("/user/auth/google")
async def google_login(request: Request):
    """Redirect the browser to Google's consent screen."""
    client = request.app.state.oauth.create_client("google")
    if client is None:
        raise AuthError(ErrorKind.NOT_FOUND, "Google sign-in is not configured.")
    redirect_uri = str(request.url_for("google_callback"))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/user/auth/google/callback", name="google_callback", response_model=AuthResponse)
async def google_callback(request: Request) -> JSONResponse:
    """Finish the Google flow: sign in the matching account, creating it if needed.

    The token travels only in the cookie here; the body carries the user.
    """
    client = request.app.state.oauth.create_client("google")
    if client is None:
        raise AuthError(ErrorKind.NOT_FOUND, "Google sign-in is not configured.")
    try:
        token = await client.authorize_access_token(request)
        profile = profile_from_token(token)
    except (OAuthError, ValueError) as exc:
        logger.warning("Google sign-in failed: %s", exc)
        raise AuthError(ErrorKind.UNAUTHENTICATED, "Google sign-in failed.") from exc

    outcome = await run_in_threadpool(_accounts(request).federated_signin, profile)
    message = "Account created." if outcome.created else "Signed in successfully."
    return _auth_response(request, outcome, message, include_token=False)


@router.post("/user/signout", response_model=MessageResponse)
def signout(request: Request) -> JSONResponse:
    """Clear the session cookie. No server-side state to invalidate."""
    resp = JSONResponse(content=MessageResponse(message="Signed out.").model_dump())
    _session_cookie(request).clear(resp)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/user/me", response_model=UserEnvelope)
def me(request: Request, claims: Claims = Depends(get_current_claims)) -> UserEnvelope:
    """Return the stored profile of the signed-in identity."""
    user = _accounts(request).get_profile(claims.id)
    return UserEnvelope(user=UserOut.from_identity(user))


@router.get("/user/users", response_model=UserListResponse)
def list_users(request: Request, page: int = 1, claims: Claims = Depends(require_admin)) -> UserListResponse:
    """List accounts, 12 per page. Admin only."""
    result = _accounts(request).list_users(page)
    return UserListResponse(
        users=[UserOut.from_identity(u) for u in result.users],
        total_pages=result.total_pages,
        current_page=result.page,
        total_items=result.total,
        per_page=result.per_page,
    )


@router.put("/user/change-password/{user_id}", response_model=MessageResponse)
def change_password(
    request: Request,
    user_id: str,
    body: ChangePasswordRequest,
    claims: Claims = Depends(require_admin_or_owner),
) -> MessageResponse:
    """Change a password. The current password is required even for admins."""
    _accounts(request).change_password(user_id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully.")


@router.get("/user/{user_id}", response_model=UserEnvelope)
def get_user(request: Request, user_id: str, claims: Claims = Depends(require_admin_or_owner)) -> UserEnvelope:
    user = _accounts(request).get_profile(user_id)
    return UserEnvelope(user=UserOut.from_identity(user))


@router.put("/user/{user_id}", response_model=UserEnvelope)
def update_user(
    request: Request,
    user_id: str,
    body: ProfileUpdateRequest,
    claims: Claims = Depends(require_admin_or_owner),
) -> UserEnvelope:
    """Update profile fields. role and isActive are admin-only."""
    update = ProfileUpdate(**body.model_dump())
    user = _accounts(request).update_profile(claims, user_id, update)
    return UserEnvelope(message="Profile updated successfully.", user=UserOut.from_identity(user))


@router.delete("/user/{user_id}", response_model=MessageResponse)
def delete_user(request: Request, user_id: str, claims: Claims = Depends(require_admin_or_owner)) -> JSONResponse:
    """Delete an account. Deleting your own account also signs you out."""
    _accounts(request).delete_account(user_id)
    resp = JSONResponse(content=MessageResponse(message="User deleted successfully.").model_dump())
    if user_id == claims.id:
        _session_cookie(request).clear(resp)
    return resp
