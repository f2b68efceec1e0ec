"""Shared API dependencies — single import point for all routers.

Re-exports database session, authentication, and rate limit dependencies so
that router modules can import everything they need from one place::

    from stayfinder.api.deps import get_db, get_current_user, require_admin
"""

from stayfinder.auth.dependencies import (
    get_current_user,
    get_optional_user,
    require_admin,
    require_host,
    require_roles,
)
from stayfinder.database import get_db
from stayfinder.ratelimit import (
    auth_rate_limit,
    general_rate_limit,
    strict_rate_limit,
    upload_rate_limit,
)

__all__ = [
    "get_db",
    "get_current_user",
    "get_optional_user",
    "require_roles",
    "require_host",
    "require_admin",
    "auth_rate_limit",
    "general_rate_limit",
    "strict_rate_limit",
    "upload_rate_limit",
]
