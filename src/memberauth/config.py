# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

# Anchor the default users.yml path to the project root (works well with editable installs).
BASE_DIR = Path(__file__).resolve().parents[2]

TRUTHY = {"1", "true", "yes", "y"}


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in TRUTHY


@dataclass(frozen=True)
class Settings:
    secret_key: str
    users_path: Path
    session_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    session_ttl: int = 3600  # 1 hour
    cookie_name: str = "memberauth_session"
    cookie_secure: bool = False
    session_salt: str = "memberauth.session.v1"

    @classmethod
    def from_env(cls) -> "Settings":
        secret = os.getenv("SECRET_KEY") or os.getenv("MEMBERAUTH_SECRET_KEY")
        if not secret:
            raise RuntimeError("Missing SECRET_KEY (or MEMBERAUTH_SECRET_KEY) in environment")
        users_path = Path(
            os.getenv("MEMBERAUTH_USERS_PATH", str(BASE_DIR / "data" / "users.yml"))
        ).resolve()
        backend = os.getenv("MEMBERAUTH_SESSION_BACKEND", "memory").strip().lower()
        if backend not in {"memory", "redis"}:
            raise RuntimeError(f"Unknown MEMBERAUTH_SESSION_BACKEND: {backend!r}")
        return cls(
            secret_key=secret,
            users_path=users_path,
            session_backend=backend,
            redis_url=os.getenv("MEMBERAUTH_REDIS_URL", "redis://localhost:6379/0"),
            session_ttl=int(os.getenv("MEMBERAUTH_SESSION_TTL", "3600")),
            cookie_name=os.getenv("MEMBERAUTH_COOKIE_NAME", "memberauth_session"),
            cookie_secure=_flag("MEMBERAUTH_COOKIE_SECURE"),
            session_salt=os.getenv("MEMBERAUTH_SESSION_SALT", "memberauth.session.v1"),
        )

    def cookie_settings(self) -> dict:
        return {"httponly": True, "samesite": "lax", "secure": self.cookie_secure}
