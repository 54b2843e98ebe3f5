# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import enum
import logging
from datetime import datetime
from typing import Optional

from fastapi import Request

from memberauth.auth.session import SessionRecord
from memberauth.auth.users import ROLE_ADMIN, ROLE_USER, UserRecord
from memberauth.context import AppContext
from memberauth.errors import Forbidden, LoggedOut, Unauthenticated

logger = logging.getLogger(__name__)


class Access(enum.IntEnum):
    NONE = 0
    AUTHENTICATED = 1
    ADMIN = 2


def access_level(session: Optional[SessionRecord], now: datetime) -> Access:
    if session is None or not session.is_active(now):
        return Access.NONE
    if session.is_admin:
        return Access.ADMIN
    return Access.AUTHENTICATED


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


def session_id(request: Request) -> Optional[str]:
    ctx = get_context(request)
    return ctx.cookie.unsign(request.cookies.get(ctx.settings.cookie_name, ""))


async def current_session_optional(request: Request) -> Optional[SessionRecord]:
    """Session for this request, or None when absent, tampered or expired."""
    if hasattr(request.state, "session"):
        return request.state.session
    ctx = get_context(request)
    sid = session_id(request)
    session = await ctx.sessions.read(sid) if sid else None
    if access_level(session, ctx.clock()) is Access.NONE:
        session = None
    request.state.sid = sid
    request.state.session = session
    return session


async def require_user(request: Request) -> SessionRecord:
    session = await current_session_optional(request)
    if access_level(session, get_context(request).clock()) is Access.NONE:
        raise Unauthenticated(request.url.path)
    return session


async def require_admin(request: Request) -> SessionRecord:
    """Admin gate; the role is re-read from the credential store every time."""
    session = await require_user(request)
    ctx = get_context(request)
    user = await ctx.users.find_by_email(session.email)
    if user is None:
        await ctx.sessions.destroy(request.state.sid)
        raise LoggedOut(f"user {session.email} no longer exists")
    if user.role != session.role:
        session = session.with_role(user.role)
        await ctx.sessions.update(request.state.sid, session)
        request.state.session = session
    if access_level(session, ctx.clock()) < Access.ADMIN:
        logger.info("Forbidden: %s is not an admin (%s)", session.email, request.url.path)
        raise Forbidden(request.url.path)
    return session


async def _set_role(ctx: AppContext, user_id: str, role: str) -> UserRecord:
    user = await ctx.users.update_role(user_id, role)
    logger.info("Role of %s set to %s", user.id, role)
    return user


async def promote_to_admin(ctx: AppContext, user_id: str) -> UserRecord:
    return await _set_role(ctx, user_id, ROLE_ADMIN)


async def demote_to_user(ctx: AppContext, user_id: str) -> UserRecord:
    """Raises ``NotFound`` for an unknown id and ``LastAdminError`` for the sole admin."""
    return await _set_role(ctx, user_id, ROLE_USER)
