"""Company staff (internal) tables: roles, permissions and internal users."""

from .role import InternalPermission, InternalRole, InternalRolePermission
from .user import InternalUser

__all__ = [
    "InternalPermission",
    "InternalRole",
    "InternalRolePermission",
    "InternalUser",
]
