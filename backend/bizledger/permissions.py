"""
Permission constants and the static role -> permission map.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Roles are fixed; there is no per-user override table
- Admin has all permissions
"""

# =============================================================================
# PERMISSION CATEGORIES
# =============================================================================

class PermissionCategory:
    """Permission categories for organization."""
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    SERVICES = "SERVICES"
    PRODUCTION = "PRODUCTION"
    FINANCE = "FINANCE"
    SYSTEM = "SYSTEM"


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    ("VIEW_INVENTORY", "View Inventory", "View products, stock levels and movements", PermissionCategory.INVENTORY),
    ("MANAGE_PRODUCTS", "Manage Products", "Create and edit products", PermissionCategory.INVENTORY),
    ("ADJUST_INVENTORY", "Adjust Inventory", "Record manual stock adjustments", PermissionCategory.INVENTORY),
    ("RECEIVE_GOODS", "Receive Goods", "Create and reverse goods entries", PermissionCategory.INVENTORY),
    ("CREATE_SALE", "Create Sale", "Check out and finish sales", PermissionCategory.SALES),
    ("VIEW_SALES", "View Sales", "List and inspect sales", PermissionCategory.SALES),
    ("OPERATE_POS", "Operate POS", "Open and close cash sessions", PermissionCategory.SALES),
    ("REVIEW_CASH_SESSIONS", "Review Cash Sessions", "List closed cash sessions of every operator", PermissionCategory.SALES),
    ("MANAGE_QUOTES", "Manage Quotes", "Create, convert and delete quotes", PermissionCategory.SALES),
    ("MANAGE_CLIENTS", "Manage Clients", "Create and list clients", PermissionCategory.SALES),
    ("MANAGE_COMMISSIONS", "Manage Commissions", "List and pay seller commissions", PermissionCategory.FINANCE),
    ("VIEW_FINANCE", "View Finance", "List financial transactions", PermissionCategory.FINANCE),
    ("MANAGE_SERVICE_ORDERS", "Manage Service Orders", "Create and progress service orders", PermissionCategory.SERVICES),
    ("MANAGE_PRODUCTION", "Manage Production", "Create and progress production orders", PermissionCategory.PRODUCTION),
    ("MANAGE_CUSTOM_FIELDS", "Manage Custom Fields", "Define custom fields", PermissionCategory.SYSTEM),
    ("VIEW_AUDIT_LOG", "View Audit Log", "Read audit events and notifications", PermissionCategory.SYSTEM),
]


# =============================================================================
# DEFAULT ROLE PERMISSION MAPPINGS
# =============================================================================

DEFAULT_ROLE_PERMISSIONS = {
    "admin": [code for code, _, _, _ in PERMISSION_DEFINITIONS],

    "manager": [
        "VIEW_INVENTORY",
        "MANAGE_PRODUCTS",
        "ADJUST_INVENTORY",
        "RECEIVE_GOODS",
        "CREATE_SALE",
        "VIEW_SALES",
        "OPERATE_POS",
        "REVIEW_CASH_SESSIONS",
        "MANAGE_QUOTES",
        "MANAGE_CLIENTS",
        "MANAGE_COMMISSIONS",
        "VIEW_FINANCE",
        "MANAGE_SERVICE_ORDERS",
        "MANAGE_PRODUCTION",
        "VIEW_AUDIT_LOG",
    ],

    "seller": [
        "VIEW_INVENTORY",
        "CREATE_SALE",
        "VIEW_SALES",
        "OPERATE_POS",
        "MANAGE_QUOTES",
        "MANAGE_CLIENTS",
    ],

    "technician": [
        "VIEW_INVENTORY",
        "MANAGE_SERVICE_ORDERS",
        "MANAGE_CLIENTS",
    ],
}

ROLES = tuple(DEFAULT_ROLE_PERMISSIONS.keys())


def get_all_permission_codes():
    return [code for code, _, _, _ in PERMISSION_DEFINITIONS]


def role_has_permission(role: str, permission_code: str) -> bool:
    return permission_code in DEFAULT_ROLE_PERMISSIONS.get(role, ())


def validate_permission_code(code):
    return code in get_all_permission_codes()
