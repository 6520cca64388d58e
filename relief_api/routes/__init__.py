# SPDX-License-Identifier: Apache-2.0

"""
HTTP routes. Each blueprint parses input, calls one domain operation and
returns its result; errors are rendered by the error handler middleware.
"""

from .public import public_bp
from .users import user_bp, moderator_bp
from .privilege import privilege_bp
from .admin import admin_bp
from .auth import auth_bp

ALL_BLUEPRINTS = [public_bp, user_bp, moderator_bp, privilege_bp, admin_bp, auth_bp]

__all__ = ["ALL_BLUEPRINTS"]
