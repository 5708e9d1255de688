"""Request dependencies: session-cookie authentication and role gates."""

from __future__ import annotations

from typing import Optional
from urllib.parse import unquote

from fastapi import Depends, Request
from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.db import get_session
from marketplace.core.errors import (
    AuthenticationMissing,
    Internal,
    RoleForbidden,
    RoleUnresolved,
    SessionExpired,
)
from marketplace.core.identity import Identity, PublisherIdentity, SponsorIdentity
from marketplace.core.logging import user_id_ctx_var
from marketplace.models import Publisher, Session, Sponsor, User
from marketplace.models.base import utcnow


def extract_session_token(request: Request) -> str:
    """Return the lookup token from the session cookie.

    The cookie value has the form ``token.signature`` (URL-encoded); only the
    token part is checked against the session table.
    """

    if not request.headers.get("cookie"):
        raise AuthenticationMissing()
    raw = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not raw:
        raise AuthenticationMissing("Invalid session", hint="Session cookie not found")
    token = unquote(raw).split(".", 1)[0]
    if not token:
        raise AuthenticationMissing("Invalid session", hint="Session cookie not found")
    return token


async def resolve_identity(session: AsyncSession, token: str) -> Optional[Identity]:
    """Look up the session and the caller's role in a single query.

    Returns ``None`` when no live session matches the token; raises
    ``RoleUnresolved`` when the user has neither a sponsor nor a publisher row.
    """

    stmt = (
        select(User.id, Sponsor.id, Publisher.id)
        .select_from(Session)
        .join(User, Session.user_id == User.id)
        .outerjoin(Sponsor, Sponsor.user_id == User.id)
        .outerjoin(Publisher, Publisher.user_id == User.id)
        .where(Session.token == token, Session.expires_at > utcnow())
        .limit(1)
    )
    row = (await session.execute(stmt)).first()
    if row is None:
        return None

    user_id, sponsor_id, publisher_id = row
    if sponsor_id and publisher_id:
        # Both roles exist; sponsor wins.
        logger.bind(user_id=user_id).warning("identity_dual_role")
    if sponsor_id:
        return SponsorIdentity(user_id=user_id, sponsor_id=sponsor_id)
    if publisher_id:
        return PublisherIdentity(user_id=user_id, publisher_id=publisher_id)
    raise RoleUnresolved()


async def get_identity(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> Identity:
    token = extract_session_token(request)
    try:
        identity = await resolve_identity(session, token)
    except SQLAlchemyError as exc:
        logger.opt(exception=exc).error("auth_lookup_failed")
        raise Internal("Authentication failed", hint="Server error - try again") from exc
    if identity is None:
        raise SessionExpired()

    request.state.user_id = identity.user_id
    request.state.role = identity.role
    user_id_ctx_var.set(identity.user_id)
    return identity


async def require_sponsor(identity: Identity = Depends(get_identity)) -> SponsorIdentity:
    if not isinstance(identity, SponsorIdentity):
        raise RoleForbidden("Sponsors only", hint="This endpoint is for sponsors only")
    return identity


async def require_publisher(identity: Identity = Depends(get_identity)) -> PublisherIdentity:
    if not isinstance(identity, PublisherIdentity):
        raise RoleForbidden("Publishers only", hint="This endpoint is for publishers only")
    return identity
