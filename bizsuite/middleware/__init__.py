"""
Authentication and authorization middleware for the API.
"""

from .auth import (
    get_current_active_user,
    get_current_user,
    get_org_from_user,
    require_org_admin,
    require_permissions,
)

__all__ = [
    "get_current_user",
    "get_current_active_user",
    "get_org_from_user",
    "require_permissions",
    "require_org_admin",
]
