# Overview: Role system package.
# Re-exports all public APIs for short imports.

from .roles import (
    Role,
    ROLES,
    DEFAULT_ROLE,
    WAREHOUSE_MANAGERS,
    PROCUREMENT_MANAGERS,
    ADMIN_OR_OM,
    STAFF,
)
from .helpers import (
    normalize_role,
    can_manage_warehouse,
)

__all__ = [
    "Role",
    "ROLES",
    "DEFAULT_ROLE",
    "WAREHOUSE_MANAGERS",
    "PROCUREMENT_MANAGERS",
    "ADMIN_OR_OM",
    "STAFF",
    "normalize_role",
    "can_manage_warehouse",
]
