# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy shared by the auth flow, the stores and the HTTP layer.

Each error maps to exactly one client-visible outcome in ``memberauth.app``;
messages carried here are for server logs only.
"""

from __future__ import annotations

import enum


class AuthError(Exception):
    """Base class for every error raised by memberauth."""


class ValidationFailure(str, enum.Enum):
    MISSING = "missing"
    TOO_LONG = "too_long"
    INVALID_EMAIL = "invalid_email"
    INVALID = "invalid"


class ValidationError(AuthError):
    def __init__(self, failure: ValidationFailure, field: str = "") -> None:
        self.failure = failure
        self.field = field
        super().__init__(f"{field or 'input'}: {failure.value}")


class Conflict(AuthError):
    """A store-level uniqueness or consistency rule rejected the write."""


class LastAdminError(Conflict):
    pass


class InvalidCredentials(AuthError):
    pass


class Unauthenticated(AuthError):
    pass


class Forbidden(AuthError):
    pass


class NotFound(AuthError):
    pass


class StoreUnavailable(AuthError):
    pass


class LoggedOut(Unauthenticated):
    """The session pointed at a user record that no longer exists."""
