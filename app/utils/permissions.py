"""
Role permission defaults
Permissions are "module:action" strings; "*" grants everything
"""

from app.models.user import UserRole

ALL_ACTIONS = ("create", "read", "update", "delete")

ADMIN_MODULES = (
    "appointments", "clients", "pets", "services", "billing", "reports", "staff",
)

ROLE_PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.SUPER_ADMIN: ["*"],
    UserRole.BUSINESS_ADMIN: [
        f"{module}:{action}" for module in ADMIN_MODULES for action in ALL_ACTIONS
    ],
    UserRole.STAFF: [
        "appointments:read",
        "appointments:create",
        "appointments:update",
        "clients:read",
        "pets:read",
        "pets:update",
        "services:read",
    ],
    UserRole.CLIENT: [
        "appointments:read",
        "appointments:create",
        "pets:read",
        "pets:create",
        "pets:update",
        "billing:read",
    ],
}


def default_permissions(role: UserRole) -> list[str]:
    """Fresh copy of the default permission list for a role"""
    return list(ROLE_PERMISSIONS.get(role, []))


def has_permission(permissions: list[str], module: str, action: str) -> bool:
    """Check a permission list, honouring '*' and 'module:*' wildcards"""
    if "*" in permissions:
        return True
    return f"{module}:{action}" in permissions or f"{module}:*" in permissions
