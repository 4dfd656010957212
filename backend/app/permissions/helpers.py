# Overview: Role predicates shared by services and routes.

from .roles import ROLES, WAREHOUSE_MANAGERS


def normalize_role(value):
    """Map an identity-service role string onto a known role, or None."""
    if not value:
        return None
    candidate = str(value).strip().upper()
    return candidate if candidate in ROLES else None


def can_manage_warehouse(role) -> bool:
    return role in WAREHOUSE_MANAGERS
