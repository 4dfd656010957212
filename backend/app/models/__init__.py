from .catalog import Category, Product, Supplier, SupplierPrice
from .locations import Location, SupervisorLocation, LOCATION_TYPES, LOCATION_TYPE_SITE, LOCATION_TYPE_WAREHOUSE
from .stock import StockItem
from .requests import Request, RequestItem, IssueRecord
from .procurement import (
    PurchaseRequest,
    PurchaseRequestItem,
    PurchaseOrder,
    PurchaseOrderItem,
    ReceiveRecord,
    ReceiveRecordLine,
)
from .documents import DocumentSequence
from .inventory_counts import Inventory, InventoryItem

__all__ = [
    'Category', 'Product', 'Supplier', 'SupplierPrice',
    'Location', 'SupervisorLocation', 'LOCATION_TYPES', 'LOCATION_TYPE_SITE', 'LOCATION_TYPE_WAREHOUSE',
    'StockItem',
    'Request', 'RequestItem', 'IssueRecord',
    'PurchaseRequest', 'PurchaseRequestItem',
    'PurchaseOrder', 'PurchaseOrderItem',
    'ReceiveRecord', 'ReceiveRecordLine',
    'DocumentSequence',
    'Inventory', 'InventoryItem',
]
