from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .enums import ReturnReason, ShipmentState, enum_column_type


shipment_orders = db.Table(
    "shipment_orders",
    db.Column("shipment_id", db.Integer, db.ForeignKey("shipments.id"), primary_key=True),
    db.Column("order_id", db.Integer, db.ForeignKey("work_orders.id"), primary_key=True),
)


class Shipment(db.Model):
    """
    One truck dispatch.

    LIFECYCLE:
    1. CREATED: dispatched, arrived_at is NULL; lines are "on truck"
    2. ARRIVED: arrived_at set once at confirmation; immutable afterwards

    Physical stock is debited at ARRIVAL, not at dispatch. ready_qty on the
    order items is decremented at dispatch.
    """
    __tablename__ = "shipments"
    __table_args__ = (
        db.Index("ix_shipments_arrived_departed", "arrived_at", "departed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "SHP-000042")
    document_number = db.Column(db.String(64), nullable=False, unique=True)

    driver_id = db.Column(db.Integer, nullable=False, index=True)
    departed_at = db.Column(db.DateTime(timezone=True), nullable=False)
    estimated_arrival = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    arrived_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    receiver_name = db.Column(db.String(255), nullable=True)
    arrival_notes = db.Column(db.Text, nullable=True)
    photo_url = db.Column(db.String(1024), nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    arrival_confirmed_by_user_id = db.Column(db.Integer, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    orders = db.relationship(
        "WorkOrder",
        secondary=shipment_orders,
        backref=db.backref("shipments", lazy=True),
        lazy=True,
    )
    lines = db.relationship(
        "ShipmentLine",
        backref=db.backref("shipment", lazy=True),
        lazy=True,
        order_by="ShipmentLine.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def state(self) -> ShipmentState:
        return ShipmentState.ARRIVED if self.arrived_at is not None else ShipmentState.CREATED

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "document_number": self.document_number,
            "state": self.state.value,
            "driver_id": self.driver_id,
            "departed_at": to_utc_z(self.departed_at),
            "estimated_arrival": to_utc_z(self.estimated_arrival),
            "notes": self.notes,
            "arrived_at": to_utc_z(self.arrived_at),
            "receiver_name": self.receiver_name,
            "arrival_notes": self.arrival_notes,
            "photo_url": self.photo_url,
            "created_by_user_id": self.created_by_user_id,
            "arrival_confirmed_by_user_id": self.arrival_confirmed_by_user_id,
            "order_ids": sorted(order.id for order in self.orders),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class ShipmentLine(db.Model):
    """
    Order item quantity loaded onto a shipment.

    quantity is decremented by returns; the row itself is never deleted so
    the return trail keeps its reference.
    """
    __tablename__ = "shipment_lines"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_shipment_lines_qty_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shipment_id = db.Column(db.Integer, db.ForeignKey("shipments.id"), nullable=False, index=True)
    order_item_id = db.Column(db.Integer, db.ForeignKey("order_items.id"), nullable=False, index=True)
    quantity = db.Column(db.Float, nullable=False)

    # Quantity as dispatched, before any returns
    dispatched_quantity = db.Column(db.Float, nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    order_item = db.relationship("OrderItem", backref=db.backref("shipment_lines", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_in_transit(self) -> bool:
        return self.shipment is not None and self.shipment.arrived_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shipment_id": self.shipment_id,
            "order_item_id": self.order_item_id,
            "order_id": self.order_item.order_id if self.order_item else None,
            "name": self.order_item.name if self.order_item else None,
            "quantity": self.quantity,
            "dispatched_quantity": self.dispatched_quantity,
            "version_id": self.version_id,
        }


class ShipmentReturn(db.Model):
    """
    Goods recalled from a shipment line (before or after arrival).

    was_in_transit records which stock-reversal branch was taken.
    Append-only.
    """
    __tablename__ = "shipment_returns"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_shipment_returns_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shipment_line_id = db.Column(db.Integer, db.ForeignKey("shipment_lines.id"), nullable=False, index=True)
    quantity = db.Column(db.Float, nullable=False)
    reason = db.Column(enum_column_type(ReturnReason, db), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    was_in_transit = db.Column(db.Boolean, nullable=False)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shipment_line = db.relationship("ShipmentLine", backref=db.backref("returns", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shipment_line_id": self.shipment_line_id,
            "quantity": self.quantity,
            "reason": self.reason.value,
            "notes": self.notes,
            "was_in_transit": self.was_in_transit,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
