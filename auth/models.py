"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, almost zero logic). Dataclasses own
domain shape; stores, services and routes do the work.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    user = "user"
    admin = "admin"


@dataclass
class Identity:
    """A registered account (customer or admin).

    email is always present: password signups get a synthesized placeholder
    (temp_<hex>@example.com) because the signup form does not collect one.
    Federated signins store the provider's email.

    hashed_password is a bcrypt digest. For federated accounts it is the hash
    of a random throwaway value nobody knows, so password signin never
    succeeds for them.
    """

    username: str
    phone: str
    email: str
    hashed_password: str
    full_name: str = ""
    role: str = Role.user.value
    id: str | None = None
    is_active: bool = True
    remember_me: bool | None = None
    avatar: str | None = None
    created_at: str | None = None

    def sanitized(self) -> dict:
        """Return the identity as a dict with the password hash stripped."""
        data = asdict(self)
        data.pop("hashed_password", None)
        return data


@dataclass(frozen=True)
class Claims:
    """Decoded session token payload -- the per-request identity context."""

    id: str
    username: str
    role: str
    expires_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin.value
