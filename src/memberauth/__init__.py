# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""memberauth: signup, login, members area and admin role management."""

__version__ = "0.3.0"
