# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

import yaml
from starlette.concurrency import run_in_threadpool

from memberauth.errors import Conflict, LastAdminError, NotFound, StoreUnavailable

logger = logging.getLogger(__name__)

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


@dataclass(frozen=True)
class UserRecord:
    id: str
    email: str
    name: str
    password_hash: str
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def _parse_users(raw: object) -> Dict[str, UserRecord]:
    users = (raw.get("users") or {}) if isinstance(raw, dict) else {}
    out: Dict[str, UserRecord] = {}
    for uid, udata in users.items():
        if not isinstance(udata, dict):
            continue
        user_id = str(uid).strip()
        email = str(udata.get("email") or "").strip()
        if not user_id or not email:
            continue
        role = str(udata.get("role") or ROLE_USER).strip().lower()
        out[user_id] = UserRecord(
            id=user_id,
            email=email,
            name=str(udata.get("name") or ""),
            password_hash=str(udata.get("password_hash") or "").strip(),
            role=role if role in ROLES else ROLE_USER,
        )
    return out


class YamlUserStore:
    """Credential store persisted as a YAML document.

    The file is re-read only when its mtime or size changes. Writes go through a
    single lock and are atomic, so the email uniqueness check and the insert
    happen as one step.

    Every lookup scans the whole map; meant for small user counts (the same
    trade-off as a hand-edited users.yml).
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()
        self._cache: Tuple[Tuple[int, int], Dict[str, UserRecord]] = ((0, 0), {})

    # ------------------ file I/O (runs in the thread pool) ------------------

    def _load_sync(self) -> Dict[str, UserRecord]:
        try:
            if not self.path.exists():
                return {}
            st = self.path.stat()
            stamp = (st.st_mtime_ns, st.st_size)
            cached_stamp, cached_users = self._cache
            if stamp == cached_stamp:
                return dict(cached_users)
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to read user store %s: %s", self.path, e)
            raise StoreUnavailable(f"read {self.path}: {e}") from e
        users = _parse_users(raw)
        self._cache = (stamp, users)
        return dict(users)

    def _save_sync(self, users: Dict[str, UserRecord]) -> None:
        payload = {
            "version": 1,
            "users": {
                uid: {k: v for k, v in asdict(u).items() if k != "id"} for uid, u in users.items()
            },
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    yaml.safe_dump(payload, f, sort_keys=False, allow_unicode=True)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
            st = self.path.stat()
            self._cache = ((st.st_mtime_ns, st.st_size), dict(users))
        except OSError as e:
            logger.error("Failed to write user store %s: %s", self.path, e)
            raise StoreUnavailable(f"write {self.path}: {e}") from e

    async def _load(self) -> Dict[str, UserRecord]:
        return await run_in_threadpool(self._load_sync)

    async def _save(self, users: Dict[str, UserRecord]) -> None:
        await run_in_threadpool(self._save_sync, users)

    # ------------------ queries ------------------

    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        if not email:
            return None
        users = await self._load()
        return next((u for u in users.values() if u.email == email), None)

    async def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        u = (user_id or "").strip()
        if not u:
            return None
        return (await self._load()).get(u)

    async def list_all(self) -> List[UserRecord]:
        users = await self._load()
        return sorted(users.values(), key=lambda u: (u.email.lower(), u.id))

    async def count_admins(self) -> int:
        users = await self._load()
        return sum(1 for u in users.values() if u.is_admin)

    # ------------------ writes ------------------

    async def insert(self, email: str, name: str, password_hash: str, role: str = ROLE_USER) -> UserRecord:
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role!r}")
        async with self._lock:
            users = await self._load()
            if any(u.email == email for u in users.values()):
                raise Conflict(f"email already registered: {email}")
            user = UserRecord(
                id=uuid4().hex,
                email=email,
                name=name,
                password_hash=password_hash,
                role=role,
            )
            users[user.id] = user
            await self._save(users)
        return user

    async def update_role(self, user_id: str, role: str) -> UserRecord:
        """Set ``role`` on the user; refuses to demote the last remaining admin."""
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role!r}")
        async with self._lock:
            users = await self._load()
            current = users.get((user_id or "").strip())
            if current is None:
                raise NotFound(f"user id {user_id!r}")
            if current.role == role:
                return current
            if current.is_admin and await self.count_admins() <= 1:
                raise LastAdminError(f"refusing to demote the last admin {current.email}")
            updated = replace(current, role=role)
            users[updated.id] = updated
            await self._save(users)
        return updated

    async def delete(self, user_id: str) -> None:
        """Remove a record; used to undo a signup whose session could not be created."""
        async with self._lock:
            users = await self._load()
            if users.pop((user_id or "").strip(), None) is None:
                raise NotFound(f"user id {user_id!r}")
            await self._save(users)
