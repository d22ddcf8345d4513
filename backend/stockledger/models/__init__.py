from .catalog import Location, Product, Variant, Order, OrderItem
from .inventory import InventoryRecord, InventoryMovement, InventoryBatch

__all__ = [
    'Location', 'Product', 'Variant', 'Order', 'OrderItem',
    'InventoryRecord', 'InventoryMovement', 'InventoryBatch',
]
