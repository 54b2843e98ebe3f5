# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication core.

This package provides:
- Password hashing/verification (argon2)
- The credential store backed by data/users.yml
- Server-side sessions behind a signed cookie (itsdangerous)
- The signup/login/logout flow controller
"""
