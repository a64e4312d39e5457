"""
Session resolution for the sitepress API.

A caller is identified by an HS256 session JWT (`Authorization: Bearer`,
user id in `sub`). Outside production an `X-User-Id` header may stand in
for a session so local tools and tests can act as any user.
"""
import logging
from typing import List, Optional

import jwt
from fastapi import Header, Request
from sqlalchemy.exc import SQLAlchemyError

from sitepress.core.config import settings
from sitepress.core.errors import UnauthorizedError
from sitepress.core.logging import bind_user_id
from sitepress.features.users.service import get_or_create_user

logger = logging.getLogger("sitepress")

BEARER_PREFIX = "Bearer "


def session_algorithms() -> List[str]:
    return [alg.strip() for alg in settings.SESSION_ALGORITHMS.split(",") if alg.strip()]


def verify_session_token(token: str) -> Optional[str]:
    """
    Decode a session JWT and return its subject.

    Returns:
        The user id, or None when no SESSION_SECRET is configured

    Raises:
        UnauthorizedError: expired, tampered or subject-less token
    """
    if not settings.SESSION_SECRET:
        logger.debug("SESSION_SECRET unset; bearer sessions disabled")
        return None

    try:
        claims = jwt.decode(token, settings.SESSION_SECRET, algorithms=session_algorithms())
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Session expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"session.invalid: {e}")
        raise UnauthorizedError("Invalid session")

    subject = claims.get("sub")
    if not subject:
        raise UnauthorizedError("Invalid session")
    return str(subject)


def _remember_user(user_id: str) -> str:
    try:
        get_or_create_user(user_id)
    except SQLAlchemyError as e:
        # Ownership is enforced on sites; a failed upsert only loses the display name
        logger.warning(f"user.upsert_failed user_id={user_id}: {e}")
    bind_user_id(user_id)
    return user_id


async def get_current_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Caller identity when header auth is enabled"),
) -> str:
    """FastAPI dependency: resolved caller id, or 401."""
    authorization = request.headers.get("Authorization", "")
    if authorization.startswith(BEARER_PREFIX):
        user_id = verify_session_token(authorization[len(BEARER_PREFIX):])
        if user_id:
            return _remember_user(user_id)

    if settings.AUTH_ALLOW_USER_HEADER and x_user_id and x_user_id.strip():
        return _remember_user(x_user_id.strip())

    raise UnauthorizedError("Missing Authorization (Bearer session) or X-User-Id header")
