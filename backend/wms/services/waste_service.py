# Overview: Service-layer operations for waste stock (scrap available for reprocessing).

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Item, WasteStock
from ..validation import parse_quantity
from .concurrency import require_uow


def record_waste(
    uow,
    *,
    material_id: int,
    order_id: int | None,
    quantity,
    notes: str | None = None,
) -> WasteStock:
    """
    Record scrap for a material.

    Every call inserts a new entry; repeated recycles on the same order each
    leave their own row.
    """
    require_uow(uow)
    qty = parse_quantity(quantity, "quantity")
    uow.get(Item, material_id, label="Material")

    entry = WasteStock(
        material_id=material_id,
        order_id=order_id,
        quantity=qty,
        notes=notes,
    )
    uow.add(entry)
    uow.flush()

    current_app.logger.info(
        "Recorded waste entry %s: material=%s order=%s qty=%s",
        entry.id, material_id, order_id, qty,
    )
    return entry


def list_waste(*, material_id: int | None = None, order_id: int | None = None) -> list[WasteStock]:
    query = db.session.query(WasteStock)
    if material_id is not None:
        query = query.filter(WasteStock.material_id == material_id)
    if order_id is not None:
        query = query.filter(WasteStock.order_id == order_id)
    return query.order_by(WasteStock.id.desc()).all()
