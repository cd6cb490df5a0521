from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .enums import (
    FulfillmentMethod,
    FulfillmentStatus,
    OrderStatus,
    PurchaseOrderStatus,
    enum_column_type,
)


class WorkOrder(db.Model):
    """
    Customer work order (SPK).

    LIFECYCLE (derived, see services.order_status_service):
    QUEUE -> IN_PROGRESS -> READY_TO_SHIP -> PARTIAL / SHIPPING -> DONE

    status is never set from request input. It is recomputed from the
    order's items and shipment lines after every item-level mutation.

    APPROVAL FLAGS:
    - inventory_approved: inventory side has processed the order (production
      requested, or returns handled)
    - warehouse_approved: total approved quantity covers total ordered quantity;
      gates visibility in the shipping queue
    """
    __tablename__ = "work_orders"
    __table_args__ = (
        db.Index("ix_work_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "SPK/2024/05/007")
    order_number = db.Column(db.String(64), nullable=False, unique=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)

    status = db.Column(enum_column_type(OrderStatus, db), nullable=False, default=OrderStatus.QUEUE, index=True)

    warehouse_approved = db.Column(db.Boolean, nullable=False, default=False)
    inventory_approved = db.Column(db.Boolean, nullable=False, default=False)
    inventory_approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    deadline = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True, index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship(
        "OrderItem",
        backref=db.backref("order", lazy=True),
        lazy=True,
        order_by="OrderItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "status": self.status.value,
            "warehouse_approved": self.warehouse_approved,
            "inventory_approved": self.inventory_approved,
            "inventory_approved_at": to_utc_z(self.inventory_approved_at),
            "notes": self.notes,
            "deadline": to_utc_z(self.deadline),
            "created_by_user_id": self.created_by_user_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """
    One product line of a work order.

    QUANTITY FIELDS:
    - qty: ordered quantity
    - approved_qty: cumulative quantity authorized for shipment
    - produced_qty: PRODUCTION only, cumulative manufactured output
    - ready_qty: physically in the warehouse, not yet loaded on a truck
    - shipped_qty: ALWAYS recomputed from arrived shipment lines, never incremented
    - recycled_qty: cumulative quantity written off via RECYCLE returns

    fulfillment_method is fixed at creation. fulfillment_status transitions are
    validated by services.lifecycle_service.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("qty > 0", name="ck_order_items_qty_positive"),
        db.Index("ix_order_items_order_method", "order_id", "fulfillment_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("work_orders.id"), nullable=False, index=True)

    # Optional link to the stocked SKU backing this line
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=False, default="PCS")
    qty = db.Column(db.Float, nullable=False)

    fulfillment_method = db.Column(enum_column_type(FulfillmentMethod, db), nullable=False)
    fulfillment_status = db.Column(
        enum_column_type(FulfillmentStatus, db),
        nullable=False,
        default=FulfillmentStatus.PENDING,
        index=True,
    )

    approved_qty = db.Column(db.Float, nullable=False, default=0)
    produced_qty = db.Column(db.Float, nullable=False, default=0)
    ready_qty = db.Column(db.Float, nullable=False, default=0)
    shipped_qty = db.Column(db.Float, nullable=False, default=0)
    recycled_qty = db.Column(db.Float, nullable=False, default=0)

    production_request_id = db.Column(
        db.Integer,
        db.ForeignKey("production_requests.id"),
        nullable=True,
        index=True,
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    item = db.relationship("Item")
    production_request = db.relationship("ProductionRequest", backref=db.backref("order_items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "item_id": self.item_id,
            "name": self.name,
            "unit": self.unit,
            "qty": self.qty,
            "fulfillment_method": self.fulfillment_method.value,
            "fulfillment_status": self.fulfillment_status.value,
            "approved_qty": self.approved_qty,
            "produced_qty": self.produced_qty,
            "ready_qty": self.ready_qty,
            "shipped_qty": self.shipped_qty,
            "recycled_qty": self.recycled_qty,
            "production_request_id": self.production_request_id,
            "version_id": self.version_id,
        }


class PurchaseOrder(db.Model):
    """Vendor purchase order. Reference data; only gates TRADING approval here."""
    __tablename__ = "purchase_orders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    po_number = db.Column(db.String(64), nullable=False, unique=True)
    order_id = db.Column(db.Integer, db.ForeignKey("work_orders.id"), nullable=True, index=True)
    status = db.Column(
        enum_column_type(PurchaseOrderStatus, db),
        nullable=False,
        default=PurchaseOrderStatus.PENDING,
        index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("WorkOrder", backref=db.backref("purchase_orders", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "po_number": self.po_number,
            "order_id": self.order_id,
            "status": self.status.value,
            "created_at": to_utc_z(self.created_at),
        }
