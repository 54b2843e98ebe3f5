# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from starlette.concurrency import run_in_threadpool


class Argon2Hasher:
    """Salted one-way hashing; the CPU work runs off the event loop."""

    def __init__(self, **params) -> None:
        self._ph = PasswordHasher(**params)

    def hash_sync(self, plain: str) -> str:
        if not plain:
            raise ValueError("Empty password")
        return self._ph.hash(plain)

    def verify_sync(self, plain: str, hash_value: str) -> bool:
        if not hash_value or not plain:
            return False
        try:
            return self._ph.verify(hash_value, plain)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    async def hash(self, plain: str) -> str:
        return await run_in_threadpool(self.hash_sync, plain)

    async def verify(self, plain: str, hash_value: str) -> bool:
        return await run_in_threadpool(self.verify_sync, plain, hash_value)
