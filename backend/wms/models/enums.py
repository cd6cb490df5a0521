# Overview: Enumerated state and category types persisted on the warehouse models.

from __future__ import annotations

import enum


class ItemCategory(str, enum.Enum):
    RAW_MATERIAL = "RAW_MATERIAL"
    FINISHED_GOOD = "FINISHED_GOOD"


class TransactionType(str, enum.Enum):
    """Direction of a movement record (and of a ledger adjustment)."""
    IN = "IN"
    OUT = "OUT"


class TransactionSource(str, enum.Enum):
    # IN
    PURCHASE = "PURCHASE"
    TRADING = "TRADING"
    PRODUCTION = "PRODUCTION"
    # OUT
    CUSTOMER_ORDER = "CUSTOMER_ORDER"
    RAW_MATERIAL = "RAW_MATERIAL"
    RECYCLE = "RECYCLE"
    # Either direction
    ADJUSTMENT = "ADJUSTMENT"
    RETURN = "RETURN"


class FulfillmentMethod(str, enum.Enum):
    FROM_STOCK = "FROM_STOCK"
    PRODUCTION = "PRODUCTION"
    TRADING = "TRADING"


class FulfillmentStatus(str, enum.Enum):
    PENDING = "PENDING"          # no allocation yet
    RESERVED = "RESERVED"        # FROM_STOCK: ledger reservation held
    IN_PROGRESS = "IN_PROGRESS"  # PRODUCTION: manufacturing ongoing
    DONE = "DONE"                # PRODUCTION: output reached ordered qty
    COMPLETED = "COMPLETED"      # PRODUCTION: approved as finished goods
    FULFILLED = "FULFILLED"      # shipped_qty >= qty


class OrderStatus(str, enum.Enum):
    QUEUE = "QUEUE"
    IN_PROGRESS = "IN_PROGRESS"
    READY_TO_SHIP = "READY_TO_SHIP"
    PARTIAL = "PARTIAL"
    SHIPPING = "SHIPPING"
    DONE = "DONE"


class ShipmentState(str, enum.Enum):
    CREATED = "CREATED"
    ARRIVED = "ARRIVED"


class ProductionRequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class PurchaseOrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DONE = "DONE"
    REJECTED = "REJECTED"


class ReturnReason(str, enum.Enum):
    REPACK = "REPACK"
    RECYCLE = "RECYCLE"


def enum_column_type(enum_cls, db):
    """String-backed enum column (portable across SQLite and PostgreSQL)."""
    return db.Enum(
        enum_cls,
        native_enum=False,
        length=32,
        validate_strings=True,
        name=enum_cls.__name__.lower(),
    )
