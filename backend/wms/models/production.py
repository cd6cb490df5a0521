from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .enums import ProductionRequestStatus, enum_column_type


class ProductionRequest(db.Model):
    """
    Request for raw material to manufacture a work order's PRODUCTION items.

    LIFECYCLE:
    1. PENDING: created, awaiting approval
    2. APPROVED: raw material debited from the ledger (consumed outright)
    3. COMPLETED: production floor finished with the material
    4. REJECTED: declined before any stock moved
    """
    __tablename__ = "production_requests"
    __table_args__ = (
        db.Index("ix_production_requests_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("work_orders.id"), nullable=False, index=True)
    status = db.Column(
        enum_column_type(ProductionRequestStatus, db),
        nullable=False,
        default=ProductionRequestStatus.PENDING,
        index=True,
    )
    memo = db.Column(db.Text, nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    approved_by_user_id = db.Column(db.Integer, nullable=True)
    rejected_by_user_id = db.Column(db.Integer, nullable=True)
    completed_by_user_id = db.Column(db.Integer, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    order = db.relationship("WorkOrder", backref=db.backref("production_requests", lazy=True))
    lines = db.relationship(
        "ProductionRequestLine",
        backref=db.backref("request", lazy=True),
        lazy=True,
        order_by="ProductionRequestLine.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_number": self.order.order_number if self.order else None,
            "status": self.status.value,
            "memo": self.memo,
            "rejection_reason": self.rejection_reason,
            "created_at": to_utc_z(self.created_at),
            "approved_at": to_utc_z(self.approved_at),
            "rejected_at": to_utc_z(self.rejected_at),
            "completed_at": to_utc_z(self.completed_at),
            "created_by_user_id": self.created_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "rejected_by_user_id": self.rejected_by_user_id,
            "completed_by_user_id": self.completed_by_user_id,
            "lines": [line.to_dict() for line in self.lines],
            "version_id": self.version_id,
        }


class ProductionRequestLine(db.Model):
    __tablename__ = "production_request_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_production_request_lines_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey("production_requests.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    quantity = db.Column(db.Float, nullable=False)

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "quantity": self.quantity,
        }
