#!/usr/bin/env python3
"""Create a user (typically the first admin) directly in data/users.yml."""
from __future__ import annotations

import asyncio
import os
from getpass import getpass
from pathlib import Path

from memberauth.auth.passwords import Argon2Hasher
from memberauth.auth.users import ROLES, YamlUserStore
from memberauth.config import BASE_DIR
from memberauth.errors import Conflict, ValidationError
from memberauth.schemas import parse_signup

USERS_PATH = Path(os.getenv("MEMBERAUTH_USERS_PATH", str(BASE_DIR / "data" / "users.yml"))).resolve()


async def _create(email: str, name: str, password: str, role: str) -> str:
    form = parse_signup({"email": email, "name": name, "password": password})
    store = YamlUserStore(USERS_PATH)
    user = await store.insert(form.email, form.name, await Argon2Hasher().hash(form.password), role=role)
    return user.id


def main() -> None:
    email = input("Email: ").strip()
    name = input("Name: ").strip()
    role = input("Role [user/admin]: ").strip().lower() or "admin"
    if role not in ROLES:
        raise SystemExit(f"Unknown role: {role}")

    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")
    if pw1 != pw2:
        raise SystemExit("Passwords do not match")

    try:
        user_id = asyncio.run(_create(email, name, pw1, role))
    except ValidationError as e:
        raise SystemExit(f"Invalid input ({e})")
    except Conflict:
        raise SystemExit(f"{email} is already registered")
    print(f"OK -> {USERS_PATH} ({role} {user_id})")


if __name__ == "__main__":
    main()
