from .user import User
from .inventory_item import InventoryItem
from .purchase_request import PurchaseRequest, ExistingItemRef, NewItemRequest
from .system_log import SystemLog

__all__ = [
    "User", "InventoryItem", "PurchaseRequest", "SystemLog",
    "ExistingItemRef", "NewItemRequest",
]
