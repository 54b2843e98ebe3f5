# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import cached_property
from typing import Callable

from memberauth.auth.passwords import Argon2Hasher
from memberauth.auth.session import SessionCookie
from memberauth.auth.session_store import MemorySessionStore, RedisSessionStore, SessionStore
from memberauth.auth.users import YamlUserStore
from memberauth.config import Settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AppContext:
    """Store handles passed explicitly to every handler and controller call."""

    settings: Settings
    users: YamlUserStore
    sessions: SessionStore
    hasher: Argon2Hasher
    clock: Callable[[], datetime] = field(default=utcnow)

    @cached_property
    def cookie(self) -> SessionCookie:
        return SessionCookie(
            self.settings.secret_key,
            salt=self.settings.session_salt,
            max_age=self.settings.session_ttl,
        )


def build_context(settings: Settings, *, clock: Callable[[], datetime] = utcnow) -> AppContext:
    if settings.session_backend == "redis":
        sessions: SessionStore = RedisSessionStore.from_url(settings.redis_url)
    else:
        sessions = MemorySessionStore(clock)
    return AppContext(
        settings=settings,
        users=YamlUserStore(settings.users_path),
        sessions=sessions,
        hasher=Argon2Hasher(),
        clock=clock,
    )
