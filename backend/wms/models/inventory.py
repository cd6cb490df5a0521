from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .enums import ItemCategory, TransactionType, TransactionSource, enum_column_type


class Item(db.Model):
    """
    Stock-keeping unit (raw material or finished good).

    LEDGER FIELDS:
    - current_stock: physical quantity on hand
    - reserved_stock: subset of current_stock promised to orders, not yet removed

    INVARIANT: 0 <= reserved_stock <= current_stock at all times.
    Both fields are mutated ONLY through services.ledger_service primitives.
    Quantities are floats because raw material is tracked in kilograms.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.CheckConstraint("reserved_stock >= 0", name="ck_items_reserved_non_negative"),
        db.CheckConstraint("current_stock >= 0", name="ck_items_current_non_negative"),
        db.Index("ix_items_category_active", "category", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(enum_column_type(ItemCategory, db), nullable=False, default=ItemCategory.FINISHED_GOOD)
    unit = db.Column(db.String(32), nullable=False, default="PCS")

    # Optional list price; weighted average from IN transactions takes precedence
    unit_price = db.Column(db.Float, nullable=True)

    is_trading = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    current_stock = db.Column(db.Float, nullable=False, default=0)
    reserved_stock = db.Column(db.Float, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def available_stock(self) -> float:
        return (self.current_stock or 0) - (self.reserved_stock or 0)

    def __repr__(self) -> str:
        return f"<Item id={self.id} code={self.code!r} stock={self.current_stock} reserved={self.reserved_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "category": self.category.value if self.category else None,
            "unit": self.unit,
            "unit_price": self.unit_price,
            "is_trading": self.is_trading,
            "is_active": self.is_active,
            "current_stock": self.current_stock,
            "reserved_stock": self.reserved_stock,
            "available_stock": self.available_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockTransaction(db.Model):
    """
    Business-level goods movement (barang masuk / keluar).

    Distinct from StockHistory: this is what reports read ("what left the
    warehouse for which order"), while StockHistory is the ledger audit trail.
    One ledger mutation is usually paired with one StockTransaction, but pure
    reservations have none.

    Append-only (see models/immutability.py).
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.Index("ix_stock_transactions_item_date", "item_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    type = db.Column(enum_column_type(TransactionType, db), nullable=False, index=True)
    source = db.Column(enum_column_type(TransactionSource, db), nullable=False, index=True)

    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    quantity = db.Column(db.Float, nullable=False)
    price = db.Column(db.Float, nullable=True)

    destination = db.Column(db.String(255), nullable=True)
    order_number = db.Column(db.String(64), nullable=True, index=True)
    memo = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("Item", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": to_utc_z(self.date),
            "type": self.type.value,
            "source": self.source.value,
            "item_id": self.item_id,
            "quantity": self.quantity,
            "price": self.price,
            "destination": self.destination,
            "order_number": self.order_number,
            "memo": self.memo,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }


class StockHistory(db.Model):
    """
    Immutable audit record of one ledger mutation.

    - quantity is the signed physical delta (0 for [RESERVE]/[RELEASE])
    - previous/new reserved are kept so the reservation trail is auditable too
    - Never updated or deleted
    """
    __tablename__ = "stock_history"
    __table_args__ = (
        db.Index("ix_stock_history_item_created", "item_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("stock_transactions.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, nullable=True, index=True)

    previous_stock = db.Column(db.Float, nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    new_stock = db.Column(db.Float, nullable=False)

    previous_reserved = db.Column(db.Float, nullable=False, default=0)
    new_reserved = db.Column(db.Float, nullable=False, default=0)

    reason = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("Item", backref=db.backref("history", lazy=True))
    transaction = db.relationship("StockTransaction")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "transaction_id": self.transaction_id,
            "user_id": self.user_id,
            "previous_stock": self.previous_stock,
            "quantity": self.quantity,
            "new_stock": self.new_stock,
            "previous_reserved": self.previous_reserved,
            "new_reserved": self.new_reserved,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }


class WasteStock(db.Model):
    """Scrap produced by recycling or production, available for reprocessing."""
    __tablename__ = "waste_stock"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    material_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("work_orders.id"), nullable=True, index=True)
    quantity = db.Column(db.Float, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    material = db.relationship("Item")
    order = db.relationship("WorkOrder", backref=db.backref("waste_entries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "material_id": self.material_id,
            "material_name": self.material.name if self.material else None,
            "order_id": self.order_id,
            "quantity": self.quantity,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
