"""
users/store.py -- SQLAlchemy Core persistence layer for the User Directory.

Pattern: Repository + Data Mapper. UserDirectory is the repository;
_row_to_user is the mapper. Route code never touches SQL directly.

Upsert semantics (login/register sync):
  - no record for email -> insert with role="user", created_at=now
  - record exists       -> refresh name / email / photo_url only
  role and created_at are insert-only. Repeated logins never demote a
  librarian or admin, and never reset created_at.

UNIQUE(email) is enforced in SQL. Two concurrent first logins race on the
insert; the loser catches IntegrityError and takes the update path, so the
directory still ends with exactly one record.

Security: all queries use bound parameters. No f-strings in SQL.

Layer rule: imports only core/ and third-party libraries.
"""

from __future__ import annotations

import logging

from sqlalchemy import Column, MetaData, String, Table, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.database import new_object_id, now_iso
from core.errors import InvalidInput
from core.models import ROLE_USER, ROLES, UpdateResult
from users.models import User

logger = logging.getLogger("bookorbit.users")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(24), primary_key=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("name", String(255), nullable=False, server_default=""),
    Column("photo_url", String(2048), nullable=False, server_default=""),
    Column("role", String(30), nullable=False, server_default=ROLE_USER),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserDirectory:
    """Repository for User records.

    Usage:
        users = UserDirectory(engine)
        users.upsert_user("a@x.com", name="A")
        users.get_role("a@x.com")        # "user"
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def upsert_user(self, email: str | None, name: str | None = None, photo_url: str | None = None) -> UpdateResult:
        """Insert the user if absent, else refresh profile fields.

        Raises InvalidInput if email is missing or empty. Missing name/photo
        are stored as "" -- the same as the login payload omitting them.
        """
        if not email:
            raise InvalidInput("Email required")
        profile = {"name": name or "", "email": email, "photo_url": photo_url or ""}

        existing = self.get_user(email)
        if existing is None:
            new_id = new_object_id()
            try:
                with self.engine.connect() as conn:
                    conn.execute(_users.insert().values(id=new_id, role=ROLE_USER, created_at=now_iso(), **profile))
                    conn.commit()
                logger.info("Created user %s", email)
                return UpdateResult(matched_count=0, modified_count=0, upserted_id=new_id)
            except IntegrityError:
                # A concurrent first login inserted the same email first.
                logger.info("Concurrent insert for %s -- falling back to update", email)
                existing = self.get_user(email)
                if existing is None:
                    raise

        unchanged = (existing.name, existing.email, existing.photo_url) == (
            profile["name"],
            profile["email"],
            profile["photo_url"],
        )
        if unchanged:
            return UpdateResult(matched_count=1, modified_count=0)
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.email == email).values(**profile))
            conn.commit()
        return UpdateResult(matched_count=result.rowcount, modified_count=result.rowcount)

    def get_user(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_role(self, email: str) -> str:
        """Return the stored role, or "user" when no record exists. Never raises on absence."""
        with self.engine.connect() as conn:
            role = conn.execute(select(_users.c.role).where(_users.c.email == email)).scalar()
        return role or ROLE_USER

    def set_role(self, email: str, role: str) -> bool:
        """Promote or demote a user. Not exposed over HTTP; used by operators and tests.

        Returns True if a row was updated, False if email was not found.
        """
        if role not in ROLES:
            raise InvalidInput(f"Role must be one of: {', '.join(ROLES)}")
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.email == email).values(role=role))
            conn.commit()
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Mappers
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        photo_url=row.photo_url,
        role=row.role,
        created_at=row.created_at,
    )
