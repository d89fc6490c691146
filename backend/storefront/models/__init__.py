from .auth import User, SessionToken, ROLE_ADMIN, ROLE_STORE_OWNER, VALID_ROLES
from .catalog import Store, StoreBanner, Product, PRODUCT_SIZES, MAX_PRODUCT_IMAGES
from .purchases import Purchase, PurchaseLine, PURCHASE_STATUSES
from .security import (
    SecurityEvent,
    EVENT_ADMIN_REQUIRED,
    EVENT_AUTH_FAILED,
    EVENT_OWNERSHIP_DENIED,
)

__all__ = [
    'User', 'SessionToken', 'ROLE_ADMIN', 'ROLE_STORE_OWNER', 'VALID_ROLES',
    'Store', 'StoreBanner', 'Product', 'PRODUCT_SIZES', 'MAX_PRODUCT_IMAGES',
    'Purchase', 'PurchaseLine', 'PURCHASE_STATUSES',
    'SecurityEvent', 'EVENT_ADMIN_REQUIRED', 'EVENT_AUTH_FAILED', 'EVENT_OWNERSHIP_DENIED',
]
