# Overview: Package exports for the warehouse models; import here so Alembic sees all metadata.

from .enums import (
    ItemCategory,
    TransactionType,
    TransactionSource,
    FulfillmentMethod,
    FulfillmentStatus,
    OrderStatus,
    ShipmentState,
    ProductionRequestStatus,
    PurchaseOrderStatus,
    ReturnReason,
)
from .inventory import Item, StockTransaction, StockHistory, WasteStock
from .orders import WorkOrder, OrderItem, PurchaseOrder
from .production import ProductionRequest, ProductionRequestLine
from .shipping import Shipment, ShipmentLine, ShipmentReturn, shipment_orders
from .documents import DocumentSequence

__all__ = [
    "ItemCategory",
    "TransactionType",
    "TransactionSource",
    "FulfillmentMethod",
    "FulfillmentStatus",
    "OrderStatus",
    "ShipmentState",
    "ProductionRequestStatus",
    "PurchaseOrderStatus",
    "ReturnReason",
    "Item",
    "StockTransaction",
    "StockHistory",
    "WasteStock",
    "WorkOrder",
    "OrderItem",
    "PurchaseOrder",
    "ProductionRequest",
    "ProductionRequestLine",
    "Shipment",
    "ShipmentLine",
    "ShipmentReturn",
    "shipment_orders",
    "DocumentSequence",
]
