"""
Role and permission constants for the warehouse core.

Authentication itself lives upstream: the gateway forwards an opaque actor id
and the actor's role. The core only decides whether that role may perform a
given operation.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Default role mappings follow principle of least privilege
- SUPERADMIN has all permissions
"""

# =============================================================================
# ROLES
# =============================================================================

class Role:
    SUPERADMIN = "SUPERADMIN"
    WAREHOUSE_ADMIN = "WAREHOUSE_ADMIN"
    WAREHOUSE_STAFF = "WAREHOUSE_STAFF"


ALL_ROLES = (Role.SUPERADMIN, Role.WAREHOUSE_ADMIN, Role.WAREHOUSE_STAFF)


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, description)
PERMISSION_DEFINITIONS = [
    ("VIEW_STOCK", "View stock levels, history and waste"),
    ("ADJUST_STOCK", "Post manual IN/OUT stock adjustments"),
    ("MANAGE_ORDERS", "Create work orders and report production output"),
    ("APPROVE_ITEMS", "Authorize order items for shipment"),
    ("REQUEST_PRODUCTION", "Create production requests"),
    ("APPROVE_PRODUCTION", "Approve, reject or complete production requests"),
    ("DISPATCH_SHIPMENT", "Dispatch shipments and confirm arrival"),
    ("PROCESS_RETURN", "Return shipment lines (repack / recycle)"),
]


DEFAULT_ROLE_PERMISSIONS = {
    Role.SUPERADMIN: [code for code, _ in PERMISSION_DEFINITIONS],
    Role.WAREHOUSE_ADMIN: [code for code, _ in PERMISSION_DEFINITIONS],
    Role.WAREHOUSE_STAFF: [
        "VIEW_STOCK",
        "MANAGE_ORDERS",
        "APPROVE_ITEMS",
        "REQUEST_PRODUCTION",
        "DISPATCH_SHIPMENT",
        "PROCESS_RETURN",
    ],
}


def get_all_permission_codes():
    return [code for code, _ in PERMISSION_DEFINITIONS]


def role_has_permission(role: str | None, permission_code: str) -> bool:
    if not role:
        return False
    return permission_code in DEFAULT_ROLE_PERMISSIONS.get(role, [])


def validate_permission_code(code):
    if code not in get_all_permission_codes():
        raise ValueError(f"Unknown permission code: {code}")
