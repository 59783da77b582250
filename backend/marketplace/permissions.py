"""
Role Constants and Groupings

WHY: Centralized role definitions ensure consistency across the application.
Route decorators, the order state machine and the settlement engine all read
role membership from here.

DESIGN PRINCIPLES:
- One role per user (users.role)
- Groups describe capacities (buyer, seller, admin), not individual routes
- Ownership (is this MY order?) is checked by services, not here
"""

# =============================================================================
# ROLES
# =============================================================================

ROLE_CUSTOMER = "customer"
ROLE_BUYER = "buyer"
ROLE_SUPPLIER = "supplier"
ROLE_RETAILER = "retailer"
ROLE_TAILOR = "tailor"
ROLE_DELIVERY = "delivery"
ROLE_ADMIN = "admin"
ROLE_SUPER_ADMIN = "super_admin"

ALL_ROLES = (
    ROLE_CUSTOMER,
    ROLE_BUYER,
    ROLE_SUPPLIER,
    ROLE_RETAILER,
    ROLE_TAILOR,
    ROLE_DELIVERY,
    ROLE_ADMIN,
    ROLE_SUPER_ADMIN,
)


# =============================================================================
# CAPACITY GROUPS
# =============================================================================

ADMIN_ROLES = frozenset({ROLE_ADMIN, ROLE_SUPER_ADMIN})

# Sell goods and receive payouts
SELLER_ROLES = frozenset({ROLE_SUPPLIER, ROLE_RETAILER, ROLE_TAILOR})

# May place product orders. Retailers and tailors buy stock from suppliers.
BUYER_ROLES = frozenset({ROLE_CUSTOMER, ROLE_BUYER, ROLE_RETAILER, ROLE_TAILOR})

# Own tracked inventory
INVENTORY_OWNER_ROLES = SELLER_ROLES


# =============================================================================
# ACCOUNT STATES
# =============================================================================

APPROVAL_PENDING = "pending"
APPROVAL_APPROVED = "approved"


def is_admin(role: str | None) -> bool:
    return role in ADMIN_ROLES
