"""
auth/accounts.py -- Account lifecycle: signup, signin, federated signin,
password change, profile update and deletion.

Each operation composes the primitives in passwords.py, tokens.py and
policy.py with the checks in validation.py. Operations return a payload on
success and raise AuthError(kind, message) on failure; the HTTP layer turns
the error into a JSON body and status code. Nothing here touches requests,
responses or cookies -- the route decides how the token travels.

Security:
  Credential failures are normalized. Unknown username, unknown phone and
  wrong password all raise the same INVALID_INPUT message, and a lookup miss
  still runs one bcrypt comparison (burn_verification) so timing does not
  reveal which case occurred.

  The active-status check runs only after the password has verified, so a
  deactivated account is never confirmed to someone who does not know its
  password.

  Uniqueness checks before insert are a fast path for a friendly message.
  Two concurrent signups can both pass them; the store's UNIQUE constraints
  reject the second insert and the IntegrityError becomes a CONFLICT.
"""

from __future__ import annotations

import logging
import math
import secrets
import uuid
from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError

from auth.errors import AuthError, ErrorKind
from auth.models import Claims, Identity, Role
from auth.passwords import BCRYPT_ROUNDS, burn_verification, dummy_hash, hash_password, verify_password
from auth.policy import ensure_admin
from auth.store import UserStore
from auth.tokens import TokenService
from auth.validation import (
    LoginKind,
    check_email,
    check_full_name,
    check_password_strength,
    check_phone,
    check_username,
    classify_login,
    require_fields,
)

logger = logging.getLogger("runshop.auth.accounts")

INVALID_CREDENTIALS_MESSAGE = "Invalid username, phone number or password."
DEFAULT_PAGE_SIZE = 12
_FEDERATED_CREATE_ATTEMPTS = 5


# ---------------------------------------------------------------------------
# Inputs and outputs
# ---------------------------------------------------------------------------


@dataclass
class SignupInput:
    username: str | None
    phone: str | None
    password: str | None
    confirm_password: str | None
    full_name: str | None


@dataclass
class FederatedProfile:
    """Identity data already verified by an external provider (e.g. Google)."""

    full_name: str
    email: str
    avatar_url: str | None = None


@dataclass
class ProfileUpdate:
    username: str | None = None
    phone: str | None = None
    email: str | None = None
    full_name: str | None = None
    role: str | None = None
    is_active: bool | None = None


@dataclass
class AuthOutcome:
    """Successful signup/signin: the identity, its fresh token, and how long it lives."""

    identity: Identity
    token: str
    remember_me: bool = False
    created: bool = False


@dataclass
class UserPage:
    users: list[Identity]
    total: int
    page: int
    per_page: int
    total_pages: int = field(init=False)

    def __post_init__(self) -> None:
        self.total_pages = math.ceil(self.total / self.per_page) if self.per_page else 0


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


def _placeholder_email() -> str:
    return f"temp_{uuid.uuid4().hex}@example.com"


def _random_phone() -> str:
    return f"034{secrets.randbelow(9_000_000) + 1_000_000}"


class AccountService:
    """Account lifecycle operations over a UserStore.

    Usage:
        accounts = AccountService(store, tokens, bcrypt_rounds=settings.bcrypt_rounds)
        outcome = accounts.signin("alice", "S3cret!pw")
        outcome.token, outcome.identity.sanitized()
    """

    def __init__(self, store: UserStore, tokens: TokenService, bcrypt_rounds: int = BCRYPT_ROUNDS) -> None:
        self.store = store
        self.tokens = tokens
        self.bcrypt_rounds = bcrypt_rounds
        # Warm the dummy digest so the first lookup miss is not slower.
        dummy_hash(bcrypt_rounds)

    # ------------------------------------------------------------------
    # Signup
    # ------------------------------------------------------------------

    def signup(self, data: SignupInput) -> AuthOutcome:
        """Register a password account and issue its first token."""
        require_fields(
            username=data.username,
            phone=data.phone,
            password=data.password,
            fullName=data.full_name,
            confirmPassword=data.confirm_password,
        )
        username = data.username.strip()
        phone = data.phone.strip()
        full_name = data.full_name.strip()

        if data.password != data.confirm_password:
            raise AuthError(ErrorKind.INVALID_INPUT, "Password and confirmation do not match.")
        check_phone(phone)
        check_password_strength(data.password)
        check_username(username)
        check_full_name(full_name)

        if self.store.get_by_username(username) is not None:
            raise AuthError(ErrorKind.CONFLICT, "Username is already taken.")
        if self.store.get_by_phone(phone) is not None:
            raise AuthError(ErrorKind.CONFLICT, "Phone number is already registered.")

        identity = Identity(
            username=username,
            phone=phone,
            email=_placeholder_email(),
            full_name=full_name,
            hashed_password=hash_password(data.password, self.bcrypt_rounds),
        )
        try:
            user_id = self.store.create_user(identity)
        except IntegrityError as exc:
            # Lost a race with a concurrent signup between the checks above and this insert.
            raise AuthError(ErrorKind.CONFLICT, "Username or phone number is already taken.") from exc

        created = self._require_identity(user_id)
        logger.info("New account registered (id=%s)", user_id)
        return AuthOutcome(identity=created, token=self.tokens.issue(created, False), created=True)

    # ------------------------------------------------------------------
    # Signin
    # ------------------------------------------------------------------

    def authenticate(self, username_or_phone: str | None, password: str | None) -> Identity:
        """Verify credentials and the active flag. Returns the identity on success."""
        require_fields(usernameOrPhone=username_or_phone, password=password)
        login = classify_login(username_or_phone)
        if login.kind is LoginKind.phone:
            user = self.store.get_by_phone(login.value)
        else:
            user = self.store.get_by_username(login.value)

        if user is None:
            burn_verification(password, self.bcrypt_rounds)
            raise AuthError(ErrorKind.INVALID_INPUT, INVALID_CREDENTIALS_MESSAGE)
        if not verify_password(password, user.hashed_password):
            raise AuthError(ErrorKind.INVALID_INPUT, INVALID_CREDENTIALS_MESSAGE)
        if not user.is_active:
            raise AuthError(ErrorKind.FORBIDDEN, "Your account has been deactivated.")
        return user

    def signin(self, username_or_phone: str | None, password: str | None) -> AuthOutcome:
        """Password signin by username or phone.

        Token lifetime follows the remember-me preference last stored on the
        account (set through the admin signin); customers default to short
        sessions.
        """
        user = self.authenticate(username_or_phone, password)
        remember_me = bool(user.remember_me)
        return AuthOutcome(identity=user, token=self.tokens.issue(user, remember_me), remember_me=remember_me)

    def admin_signin(self, username_or_phone: str | None, password: str | None, remember_me: bool = False) -> AuthOutcome:
        """Signin for the admin console: valid credentials AND the admin role.

        The remember-me choice is persisted before the token is issued.
        """
        user = self.authenticate(username_or_phone, password)
        if user.role != Role.admin.value:
            raise AuthError(ErrorKind.FORBIDDEN, "Admin access required.")

        remember_me = bool(remember_me)
        self.store.update_user(user.id, remember_me=remember_me)
        user.remember_me = remember_me
        logger.info("Admin signin (id=%s, remember_me=%s)", user.id, remember_me)
        return AuthOutcome(identity=user, token=self.tokens.issue(user, remember_me), remember_me=remember_me)

    # ------------------------------------------------------------------
    # Federated signin
    # ------------------------------------------------------------------

    def federated_signin(self, profile: FederatedProfile) -> AuthOutcome:
        """Sign in (or sign up) with a provider-verified profile, matched by email."""
        require_fields(email=profile.email, fullName=profile.full_name)
        email = profile.email.strip()

        user = self.store.get_by_email(email)
        created = False
        if user is None:
            user, created = self._create_federated(profile, email)
        if not user.is_active:
            raise AuthError(ErrorKind.FORBIDDEN, "Your account has been deactivated.")

        remember_me = bool(user.remember_me)
        return AuthOutcome(
            identity=user,
            token=self.tokens.issue(user, remember_me),
            remember_me=remember_me,
            created=created,
        )

    def _create_federated(self, profile: FederatedProfile, email: str) -> tuple[Identity, bool]:
        base = "temp_" + "".join(profile.full_name.split()).lower()
        # Nobody knows this password; the account signs in through the provider.
        unusable = hash_password(secrets.token_urlsafe(32), self.bcrypt_rounds)

        for attempt in range(_FEDERATED_CREATE_ATTEMPTS):
            username = base if attempt == 0 else f"{base}{secrets.token_hex(3)}"
            if self.store.get_by_username(username) is not None:
                continue
            identity = Identity(
                username=username,
                phone=_random_phone(),
                email=email,
                full_name=profile.full_name.strip(),
                hashed_password=unusable,
                role=Role.user.value,
                is_active=True,
                avatar=profile.avatar_url,
            )
            try:
                user_id = self.store.create_user(identity)
            except IntegrityError:
                # Either a concurrent signin created this email first, or the
                # random phone/username collided -- retry with fresh values.
                existing = self.store.get_by_email(email)
                if existing is not None:
                    return existing, False
                continue
            logger.info("New federated account registered (id=%s)", user_id)
            return self._require_identity(user_id), True

        raise AuthError(ErrorKind.INTERNAL, "Could not create an account. Please try again later.")

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------

    def get_profile(self, user_id: str) -> Identity:
        user = self.store.get_by_id(user_id)
        if user is None:
            raise AuthError(ErrorKind.NOT_FOUND, "User not found.")
        return user

    def list_users(self, page: int = 1, per_page: int = DEFAULT_PAGE_SIZE) -> UserPage:
        if page < 1:
            raise AuthError(ErrorKind.INVALID_INPUT, "Invalid page number.")
        total = self.store.count_users()
        result = UserPage(users=[], total=total, page=page, per_page=per_page)
        if total and page > result.total_pages:
            raise AuthError(ErrorKind.NOT_FOUND, "Page not found.")
        result.users = self.store.list_users(offset=(page - 1) * per_page, limit=per_page)
        return result

    def change_password(self, user_id: str, current_password: str | None, new_password: str | None) -> None:
        """Replace the password after verifying the current one."""
        require_fields(currentPassword=current_password, newPassword=new_password)
        user = self.get_profile(user_id)
        if not verify_password(current_password, user.hashed_password):
            raise AuthError(ErrorKind.INVALID_INPUT, "Current password is incorrect.")
        check_password_strength(new_password)
        self.store.update_user(user_id, hashed_password=hash_password(new_password, self.bcrypt_rounds))
        logger.info("Password changed (id=%s)", user_id)

    def update_profile(self, claims: Claims, user_id: str, update: ProfileUpdate) -> Identity:
        """Apply a partial profile update on behalf of the caller in claims.

        role and is_active can only be changed by an admin, and an admin cannot
        deactivate their own account.
        """
        user = self.get_profile(user_id)
        changes: dict = {}

        if update.role is not None or update.is_active is not None:
            ensure_admin(claims)
        if update.role is not None and update.role != user.role:
            if update.role not in {r.value for r in Role}:
                raise AuthError(ErrorKind.INVALID_INPUT, "Unknown role.")
            changes["role"] = update.role
        if update.is_active is not None and update.is_active != user.is_active:
            if not update.is_active and user_id == claims.id:
                raise AuthError(ErrorKind.INVALID_INPUT, "You cannot deactivate your own account.")
            changes["is_active"] = update.is_active

        if update.username and update.username.strip() != user.username:
            username = update.username.strip()
            check_username(username)
            if self.store.get_by_username(username) is not None:
                raise AuthError(ErrorKind.CONFLICT, "Username is already taken.")
            changes["username"] = username
        if update.phone and update.phone.strip() != user.phone:
            phone = update.phone.strip()
            check_phone(phone)
            if self.store.get_by_phone(phone) is not None:
                raise AuthError(ErrorKind.CONFLICT, "Phone number is already registered.")
            changes["phone"] = phone
        if update.email and update.email.strip() != user.email:
            email = update.email.strip()
            check_email(email)
            if self.store.get_by_email(email) is not None:
                raise AuthError(ErrorKind.CONFLICT, "Email is already registered.")
            changes["email"] = email
        if update.full_name and update.full_name.strip() != user.full_name:
            check_full_name(update.full_name)
            changes["full_name"] = update.full_name.strip()

        if not changes:
            raise AuthError(ErrorKind.INVALID_INPUT, "No fields to update.")

        try:
            self.store.update_user(user_id, **changes)
        except IntegrityError as exc:
            raise AuthError(ErrorKind.CONFLICT, "Username, phone number or email is already taken.") from exc
        logger.info("Profile updated (id=%s, fields=%s)", user_id, sorted(changes))
        return self._require_identity(user_id)

    def delete_account(self, user_id: str) -> None:
        if not self.store.delete_user(user_id):
            raise AuthError(ErrorKind.NOT_FOUND, "User not found.")
        logger.info("Account deleted (id=%s)", user_id)

    def _require_identity(self, user_id: str) -> Identity:
        user = self.store.get_by_id(user_id)
        if user is None:
            raise AuthError(ErrorKind.INTERNAL, "User not found after write.")
        return user
