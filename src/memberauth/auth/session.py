# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import secrets
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from memberauth.auth.users import ROLE_ADMIN, ROLE_USER, ROLES


@dataclass(frozen=True)
class SessionRecord:
    authenticated: bool
    email: str
    name: str
    role: str
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def is_active(self, now: datetime) -> bool:
        return self.authenticated and now < self.expires_at

    def with_name(self, name: str) -> "SessionRecord":
        return replace(self, name=name)

    def with_role(self, role: str) -> "SessionRecord":
        return replace(self, role=role)

    def to_dict(self) -> dict:
        return {
            "authenticated": self.authenticated,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionRecord":
        role = str(data.get("role") or ROLE_USER)
        return cls(
            authenticated=bool(data.get("authenticated")),
            email=str(data.get("email") or ""),
            name=str(data.get("name") or ""),
            role=role if role in ROLES else ROLE_USER,
            expires_at=datetime.fromisoformat(str(data["expires_at"])),
        )


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


class SessionCookie:
    """Signs the opaque session id carried in the client cookie."""

    def __init__(self, secret_key: str, *, salt: str, max_age: int) -> None:
        self.max_age = max_age
        self._s = URLSafeTimedSerializer(secret_key=secret_key, salt=salt)

    def sign(self, session_id: str) -> str:
        return self._s.dumps({"sid": session_id})

    def unsign(self, token: str) -> Optional[str]:
        if not token:
            return None
        try:
            data = self._s.loads(token, max_age=self.max_age)
        except (BadSignature, BadTimeSignature):
            return None
        sid = str((data or {}).get("sid") or "").strip() if isinstance(data, dict) else ""
        return sid or None
