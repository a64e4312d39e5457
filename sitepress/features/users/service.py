"""
Site owners.

Users are created lazily the first time a session resolves to them; the
session provider is the source of truth for identity, this table only keeps
what public pages show about an owner.
"""

import hashlib
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import select, insert
from sqlalchemy.exc import IntegrityError

from sitepress.core.database import get_db_session, users
from sitepress.models.user import User


def fallback_handle(user_id: str) -> str:
    """Stable public handle for users without a display name."""
    digest = hashlib.sha1(user_id.encode("utf-8")).hexdigest()
    return f"@u_{digest[-6:]}"


def normalize_display_name(user_id: str, display_name: Optional[str]) -> str:
    if display_name and display_name.strip():
        return display_name.strip()
    return fallback_handle(user_id)


def row_to_user(row) -> User:
    return User(
        user_id=row.user_id,
        display_name=normalize_display_name(row.user_id, row.display_name),
        email=row.email,
        created_at=row.created_at,
    )


def find_user(session, user_id: str) -> Optional[User]:
    row = session.execute(select(users).where(users.c.user_id == user_id)).first()
    return row_to_user(row) if row else None


def get_user(user_id: str) -> Optional[User]:
    with get_db_session() as session:
        return find_user(session, user_id)


def get_or_create_user(user_id: str, display_name: Optional[str] = None, email: Optional[str] = None) -> User:
    existing = get_user(user_id)
    if existing:
        return existing

    try:
        with get_db_session() as session:
            session.execute(
                insert(users).values(
                    user_id=user_id,
                    display_name=normalize_display_name(user_id, display_name),
                    email=email,
                    created_at=datetime.now(timezone.utc),
                )
            )
    except IntegrityError:
        # Lost the race against a concurrent first request for the same user
        pass

    return get_user(user_id)
