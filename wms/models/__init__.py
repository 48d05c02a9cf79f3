from .catalog import Category, Unit, Product
from .contacts import Contact
from .auth import User
from .orders import Order, OrderItem
from .purchasing import PurchaseOrder, PurchaseOrderItem
from .inventory import InventoryLog
from .settings import SettingEntry

__all__ = [
    'Category', 'Unit', 'Product',
    'Contact',
    'User',
    'Order', 'OrderItem',
    'PurchaseOrder', 'PurchaseOrderItem',
    'InventoryLog',
    'SettingEntry',
]
