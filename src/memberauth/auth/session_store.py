# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Server-side session stores.

Both stores own expiry: a record past its TTL is never returned by ``read``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Protocol, Tuple

from redis.asyncio import Redis
from redis.exceptions import RedisError

from memberauth.auth.session import SessionRecord
from memberauth.errors import StoreUnavailable

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    async def create(self, session_id: str, record: SessionRecord, ttl: int) -> None: ...

    async def read(self, session_id: str) -> Optional[SessionRecord]: ...

    async def update(self, session_id: str, record: SessionRecord) -> None: ...

    async def destroy(self, session_id: str) -> None: ...


class MemorySessionStore:
    """Process-local store; suitable for a single worker and for tests.

    Expired entries are dropped on read and swept on every create.
    """

    def __init__(self, clock: Callable[[], datetime]) -> None:
        self._clock = clock
        self._data: Dict[str, Tuple[datetime, SessionRecord]] = {}

    def _sweep(self, now: datetime) -> None:
        expired = [sid for sid, (deadline, _) in self._data.items() if deadline <= now]
        for sid in expired:
            del self._data[sid]

    async def create(self, session_id: str, record: SessionRecord, ttl: int) -> None:
        now = self._clock()
        self._sweep(now)
        self._data[session_id] = (now + timedelta(seconds=ttl), record)

    async def read(self, session_id: str) -> Optional[SessionRecord]:
        item = self._data.get(session_id)
        if item is None:
            return None
        deadline, record = item
        if self._clock() >= deadline:
            del self._data[session_id]
            return None
        return record

    async def update(self, session_id: str, record: SessionRecord) -> None:
        item = self._data.get(session_id)
        if item is None:
            return
        self._data[session_id] = (item[0], record)

    async def destroy(self, session_id: str) -> None:
        self._data.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._data)


class RedisSessionStore:
    """Sessions as JSON strings under ``<prefix><sid>`` with a native TTL."""

    def __init__(self, client: Redis, *, prefix: str = "memberauth:sess:") -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisSessionStore":
        return cls(Redis.from_url(url, decode_responses=True), **kwargs)

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}{session_id}"

    async def create(self, session_id: str, record: SessionRecord, ttl: int) -> None:
        try:
            await self._client.set(self._key(session_id), json.dumps(record.to_dict()), ex=ttl)
        except RedisError as e:
            logger.error("Failed to create session: %s", e)
            raise StoreUnavailable(f"session create: {e}") from e

    async def read(self, session_id: str) -> Optional[SessionRecord]:
        try:
            value = await self._client.get(self._key(session_id))
        except RedisError as e:
            logger.error("Failed to read session: %s", e)
            raise StoreUnavailable(f"session read: {e}") from e
        if value is None:
            return None
        try:
            return SessionRecord.from_dict(json.loads(value))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding malformed session payload: %s", e)
            return None

    async def update(self, session_id: str, record: SessionRecord) -> None:
        try:
            # xx: never resurrect an expired session; keepttl: expiry stays absolute
            await self._client.set(
                self._key(session_id), json.dumps(record.to_dict()), xx=True, keepttl=True
            )
        except RedisError as e:
            logger.error("Failed to update session: %s", e)
            raise StoreUnavailable(f"session update: {e}") from e

    async def destroy(self, session_id: str) -> None:
        try:
            await self._client.delete(self._key(session_id))
        except RedisError as e:
            logger.error("Failed to destroy session: %s", e)
            raise StoreUnavailable(f"session destroy: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()
