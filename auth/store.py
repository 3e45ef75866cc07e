"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper (same as catalog/store.py).
UserStore is the repository; _row_to_identity is the mapper.
Service and route code never touches SQL directly.

Uniqueness:
  users.username, users.phone and users.email carry UNIQUE constraints. The
  account service checks uniqueness before inserting for a friendly error,
  but two concurrent signups can both pass that check -- the constraint is
  what actually guarantees one row per username/phone. create_user() lets
  IntegrityError propagate so the caller can map it to a conflict.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or catalog/. core/ is allowed.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.models import Identity
from core.database import make_engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("phone", String(32), nullable=False, unique=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("full_name", String(255), nullable=False, server_default=""),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("remember_me", Integer),  # NULL until an admin signin records a preference
    Column("avatar", Text),
    Column("created_at", String(32), nullable=False),
)

# Fields update_user() accepts. id and created_at are immutable.
_MUTABLE_FIELDS = {
    "username",
    "phone",
    "email",
    "full_name",
    "hashed_password",
    "role",
    "is_active",
    "remember_me",
    "avatar",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_flag(value: bool | None) -> int | None:
    if value is None:
        return None
    return 1 if value else 0


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for Identity records.

    Usage:
        store = UserStore("sqlite:///runshop.db")
        user_id = store.create_user(Identity(username="alice", phone="0912345678", ...))
        user = store.get_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: str) -> Identity | None:
        return self._get_one(_users.c.id == user_id)

    def get_by_username(self, username: str) -> Identity | None:
        """Exact, case-sensitive match. Returns None if not found."""
        return self._get_one(_users.c.username == username)

    def get_by_phone(self, phone: str) -> Identity | None:
        return self._get_one(_users.c.phone == phone)

    def get_by_email(self, email: str) -> Identity | None:
        return self._get_one(_users.c.email == email)

    def _get_one(self, condition) -> Identity | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(condition)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def list_users(self, offset: int = 0, limit: int = 12) -> list[Identity]:
        """Return one page of identities, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select().order_by(_users.c.created_at, _users.c.id).offset(offset).limit(limit)
            ).fetchall()
        return [_row_to_identity(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, identity: Identity) -> str:
        """Insert a new identity and return its generated id.

        Raises sqlalchemy.exc.IntegrityError if the username, phone or email
        is already taken.
        """
        user_id = uuid.uuid4().hex
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    username=identity.username,
                    phone=identity.phone,
                    email=identity.email,
                    full_name=identity.full_name,
                    hashed_password=identity.hashed_password,
                    role=identity.role,
                    is_active=1 if identity.is_active else 0,
                    remember_me=_as_flag(identity.remember_me),
                    avatar=identity.avatar,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
        return user_id

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable fields on an existing identity.

        Unknown field names raise ValueError. Returns True if a row was
        updated, False if user_id was not found. May raise IntegrityError
        when a new username/phone/email collides with another identity.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown identity fields: {sorted(unknown)!r}")
        if not fields:
            return False
        if "is_active" in fields:
            fields["is_active"] = _as_flag(fields["is_active"])
        if "remember_me" in fields:
            fields["remember_me"] = _as_flag(fields["remember_me"])
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete an identity. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_identity(row) -> Identity:
    return Identity(
        id=row.id,
        username=row.username,
        phone=row.phone,
        email=row.email,
        full_name=row.full_name or "",
        hashed_password=row.hashed_password,
        role=row.role,
        is_active=bool(row.is_active),
        remember_me=None if row.remember_me is None else bool(row.remember_me),
        avatar=row.avatar,
        created_at=row.created_at,
    )
