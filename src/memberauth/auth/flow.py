# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Signup, login, identity refresh and logout.

Every operation takes the ``AppContext`` explicitly and is the only code
that writes session records.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Mapping, Optional, Tuple

from memberauth.auth.session import SessionRecord, new_session_id
from memberauth.auth.users import ROLE_USER, UserRecord
from memberauth.context import AppContext
from memberauth.errors import (
    InvalidCredentials,
    LoggedOut,
    StoreUnavailable,
    Unauthenticated,
    ValidationError,
)
from memberauth.schemas import parse_login, parse_signup

logger = logging.getLogger(__name__)

Established = Tuple[str, SessionRecord]


async def _establish(ctx: AppContext, user: UserRecord, previous_sid: Optional[str]) -> Established:
    # A fresh id on every login/signup; the old record is dropped.
    if previous_sid:
        await ctx.sessions.destroy(previous_sid)
    ttl = ctx.settings.session_ttl
    record = SessionRecord(
        authenticated=True,
        email=user.email,
        name=user.name,
        role=user.role,
        expires_at=ctx.clock() + timedelta(seconds=ttl),
    )
    sid = new_session_id()
    await ctx.sessions.create(sid, record, ttl)
    return sid, record


async def signup(
    ctx: AppContext, data: Mapping[str, Any], *, previous_sid: Optional[str] = None
) -> Established:
    """Create a ``user`` account and log it in.

    Raises ``ValidationError`` for bad input and ``Conflict`` when the store
    already holds the email.
    """
    try:
        form = parse_signup(data)
    except ValidationError as e:
        logger.info("Signup rejected: %s", e)
        raise
    password_hash = await ctx.hasher.hash(form.password)
    user = await ctx.users.insert(form.email, form.name, password_hash, role=ROLE_USER)
    logger.info("Inserted user %s", user.id)
    try:
        return await _establish(ctx, user, previous_sid)
    except StoreUnavailable:
        # No session, no account: the email stays free for a retry.
        await ctx.users.delete(user.id)
        logger.error("Rolled back user %s after session store failure", user.id)
        raise


async def login(
    ctx: AppContext, data: Mapping[str, Any], *, previous_sid: Optional[str] = None
) -> Established:
    """Verify credentials; every failure is the same ``InvalidCredentials``."""
    try:
        form = parse_login(data)
    except ValidationError as e:
        logger.info("Login rejected: %s", e)
        raise InvalidCredentials("invalid input") from e

    user = await ctx.users.find_by_email(form.email)
    if user is None:
        logger.info("Login failed: user not found")
        raise InvalidCredentials("unknown email")
    if not await ctx.hasher.verify(form.password, user.password_hash):
        logger.info("Login failed: incorrect password for %s", user.id)
        raise InvalidCredentials("wrong password")
    return await _establish(ctx, user, previous_sid)


async def refresh_identity(ctx: AppContext, sid: str, session: Optional[SessionRecord]) -> SessionRecord:
    """Re-read the display name for an authenticated session.

    Raises ``Unauthenticated`` without a live session and ``LoggedOut``
    (after destroying the session) when the user record is gone.
    """
    if session is None or not session.is_active(ctx.clock()):
        raise Unauthenticated("no session")
    user = await ctx.users.find_by_email(session.email)
    if user is None:
        await ctx.sessions.destroy(sid)
        raise LoggedOut(f"user {session.email} no longer exists")
    if user.name != session.name:
        session = session.with_name(user.name)
        await ctx.sessions.update(sid, session)
    return session


async def logout(ctx: AppContext, sid: Optional[str]) -> None:
    if not sid:
        return
    try:
        await ctx.sessions.destroy(sid)
    except StoreUnavailable as e:
        logger.error("Error destroying session: %s", e)
