# Overview: Service-layer operations for the stock ledger; the only writer of current/reserved stock.

from __future__ import annotations

from dataclasses import dataclass, asdict

from sqlalchemy import func

from ..errors import (
    InsufficientAvailableStock,
    InsufficientReservedStock,
    InsufficientStock,
    NotFound,
    OverRelease,
    ValidationError,
)
from ..extensions import db
from ..models import (
    Item,
    StockHistory,
    StockTransaction,
    TransactionSource,
    TransactionType,
)
from ..validation import parse_quantity
from .concurrency import require_uow
"""
Stock Ledger Invariants (authoritative)

Fields per Item:
- current_stock: physical quantity on hand
- reserved_stock: subset of current_stock promised to orders

Invariant: 0 <= reserved_stock <= current_stock, checked at write time by the
primitives below. Nothing else assigns these two fields.

Primitives (all take a required UnitOfWork; none commits):
- adjust_stock:             current +/- qty             (OUT fails below zero)
- reserve_stock:            reserved += qty             (fails if available < qty)
- release_stock:            reserved -= qty             (fails if qty > reserved)
- fulfill_from_reservation: reserved -= qty, current -= qty

Audit:
- Every primitive writes exactly one StockHistory row, including reserve and
  release (zero physical delta, reason tagged [RESERVE] / [RELEASE]).
- StockHistory and StockTransaction are append-only.
- Business movements (StockTransaction) are recorded separately by callers
  via record_stock_transaction(); pure reservations have none.

Quantities are fractional (kilograms). Results are rounded to QTY_PRECISION
decimal places so repeated float arithmetic cannot leave 1e-15 residues.
"""


QTY_PRECISION = 6

RESERVE_TAG = "[RESERVE]"
RELEASE_TAG = "[RELEASE]"
FULFILL_TAG = "[FULFILL]"


@dataclass(frozen=True)
class LedgerResult:
    """Before/after snapshot of one ledger mutation."""
    item_id: int
    previous_stock: float
    new_stock: float
    previous_reserved: float
    new_reserved: float
    history_id: int

    def to_dict(self) -> dict:
        return asdict(self)


def _q(value: float) -> float:
    return round(float(value or 0), QTY_PRECISION)


def _require_reason(reason) -> str:
    text = (reason or "").strip() if isinstance(reason, str) else ""
    if not text:
        raise ValidationError("reason is required for every stock mutation")
    return text


def _tagged(tag: str, reason: str) -> str:
    return f"{tag} {reason}"


def _lock_item(uow, item_id: int) -> Item:
    return uow.get(Item, item_id, for_update=True, label="Item")


def _write_history(
    uow,
    item: Item,
    *,
    previous_stock: float,
    previous_reserved: float,
    actor_id: int | None,
    reason: str,
    transaction_id: int | None = None,
) -> LedgerResult:
    entry = StockHistory(
        item_id=item.id,
        transaction_id=transaction_id,
        user_id=actor_id,
        previous_stock=previous_stock,
        quantity=_q(item.current_stock - previous_stock),
        new_stock=item.current_stock,
        previous_reserved=previous_reserved,
        new_reserved=item.reserved_stock,
        reason=reason,
    )
    uow.add(entry)
    uow.flush()
    return LedgerResult(
        item_id=item.id,
        previous_stock=previous_stock,
        new_stock=item.current_stock,
        previous_reserved=previous_reserved,
        new_reserved=item.reserved_stock,
        history_id=entry.id,
    )


def adjust_stock(
    uow,
    item_id: int,
    quantity,
    direction: TransactionType,
    actor_id: int | None,
    reason: str,
    transaction_id: int | None = None,
) -> LedgerResult:
    """
    Ordinary physical adjustment.

    OUT fails with InsufficientStock if current_stock - quantity < 0.
    OUT never drops current_stock below reserved_stock either: that would
    break the reservation invariant, so it is reported as InsufficientStock
    against the unreserved quantity.
    """
    require_uow(uow)
    qty = parse_quantity(quantity, "quantity")
    direction = TransactionType(direction)
    reason = _require_reason(reason)

    item = _lock_item(uow, item_id)
    previous_stock = _q(item.current_stock)
    previous_reserved = _q(item.reserved_stock)

    if direction == TransactionType.IN:
        new_stock = _q(previous_stock + qty)
    else:
        new_stock = _q(previous_stock - qty)
        if new_stock < 0:
            raise InsufficientStock(
                f"Insufficient stock for {item.name}: available {previous_stock}, requested {qty}",
                item_id=item.id,
                item_name=item.name,
                available=previous_stock,
                requested=qty,
            )
        if new_stock < previous_reserved:
            available = _q(previous_stock - previous_reserved)
            raise InsufficientStock(
                f"Insufficient unreserved stock for {item.name}: available {available}, requested {qty}",
                item_id=item.id,
                item_name=item.name,
                available=available,
                requested=qty,
            )

    item.current_stock = new_stock
    return _write_history(
        uow,
        item,
        previous_stock=previous_stock,
        previous_reserved=previous_reserved,
        actor_id=actor_id,
        reason=reason,
        transaction_id=transaction_id,
    )


def reserve_stock(uow, item_id: int, quantity, actor_id: int | None, reason: str) -> LedgerResult:
    """Promise stock to an order. Only reserved_stock changes."""
    require_uow(uow)
    qty = parse_quantity(quantity, "quantity")
    reason = _require_reason(reason)

    item = _lock_item(uow, item_id)
    previous_stock = _q(item.current_stock)
    previous_reserved = _q(item.reserved_stock)
    available = _q(previous_stock - previous_reserved)

    if available < qty:
        raise InsufficientAvailableStock(
            f"Insufficient available stock for {item.name}: available {available}, requested {qty}",
            item_id=item.id,
            item_name=item.name,
            available=available,
            requested=qty,
        )

    item.reserved_stock = _q(previous_reserved + qty)
    return _write_history(
        uow,
        item,
        previous_stock=previous_stock,
        previous_reserved=previous_reserved,
        actor_id=actor_id,
        reason=_tagged(RESERVE_TAG, reason),
    )


def release_stock(uow, item_id: int, quantity, actor_id: int | None, reason: str) -> LedgerResult:
    """Withdraw a promise. Mirror of reserve_stock."""
    require_uow(uow)
    qty = parse_quantity(quantity, "quantity")
    reason = _require_reason(reason)

    item = _lock_item(uow, item_id)
    previous_stock = _q(item.current_stock)
    previous_reserved = _q(item.reserved_stock)

    if qty > previous_reserved:
        raise OverRelease(
            f"Cannot release {qty} of {item.name}: only {previous_reserved} reserved",
            item_id=item.id,
            item_name=item.name,
            available=previous_reserved,
            requested=qty,
        )

    item.reserved_stock = _q(previous_reserved - qty)
    return _write_history(
        uow,
        item,
        previous_stock=previous_stock,
        previous_reserved=previous_reserved,
        actor_id=actor_id,
        reason=_tagged(RELEASE_TAG, reason),
    )


def fulfill_from_reservation(
    uow,
    item_id: int,
    quantity,
    actor_id: int | None,
    reason: str,
    transaction_id: int | None = None,
) -> LedgerResult:
    """Physically remove reserved stock. The only primitive that moves both fields."""
    require_uow(uow)
    qty = parse_quantity(quantity, "quantity")
    reason = _require_reason(reason)

    item = _lock_item(uow, item_id)
    previous_stock = _q(item.current_stock)
    previous_reserved = _q(item.reserved_stock)

    if qty > previous_reserved:
        raise InsufficientReservedStock(
            f"Insufficient reserved stock for {item.name}: reserved {previous_reserved}, requested {qty}",
            item_id=item.id,
            item_name=item.name,
            available=previous_reserved,
            requested=qty,
        )
    if qty > previous_stock:
        raise InsufficientStock(
            f"Insufficient stock for {item.name}: available {previous_stock}, requested {qty}",
            item_id=item.id,
            item_name=item.name,
            available=previous_stock,
            requested=qty,
        )

    item.reserved_stock = _q(previous_reserved - qty)
    item.current_stock = _q(previous_stock - qty)
    return _write_history(
        uow,
        item,
        previous_stock=previous_stock,
        previous_reserved=previous_reserved,
        actor_id=actor_id,
        reason=_tagged(FULFILL_TAG, reason),
        transaction_id=transaction_id,
    )


def available_stock(uow, item_id: int) -> float:
    """Quantity eligible for a new reservation (current - reserved)."""
    require_uow(uow)
    item = uow.get(Item, item_id, label="Item")
    return _q(item.current_stock - item.reserved_stock)


def record_stock_transaction(
    uow,
    *,
    item_id: int,
    type: TransactionType,
    source: TransactionSource,
    quantity,
    actor_id: int | None = None,
    price: float | None = None,
    destination: str | None = None,
    order_number: str | None = None,
    memo: str | None = None,
) -> StockTransaction:
    """Append a business-level movement record. Does NOT touch stock levels."""
    require_uow(uow)
    tx = StockTransaction(
        type=TransactionType(type),
        source=TransactionSource(source),
        item_id=item_id,
        quantity=parse_quantity(quantity, "quantity"),
        price=price,
        destination=destination,
        order_number=order_number,
        memo=memo,
        user_id=actor_id,
    )
    uow.add(tx)
    uow.flush()
    return tx


def weighted_average_price(item_id: int) -> float | None:
    """
    Weighted average purchase price over IN transactions that carry a price:
        sum(qty * price) / sum(qty)

    Falls back to Item.unit_price when no priced IN transaction exists.
    """
    units, value = db.session.query(
        func.coalesce(func.sum(StockTransaction.quantity), 0),
        func.coalesce(func.sum(StockTransaction.quantity * StockTransaction.price), 0),
    ).filter(
        StockTransaction.item_id == item_id,
        StockTransaction.type == TransactionType.IN,
        StockTransaction.price.isnot(None),
        StockTransaction.price > 0,
    ).one()

    if units and units > 0:
        return round(float(value) / float(units), 2)

    item = db.session.get(Item, item_id)
    return item.unit_price if item else None


def get_stock_summary(item_id: int) -> dict:
    item = db.session.get(Item, item_id)
    if item is None:
        raise NotFound(f"Item {item_id} not found")
    price = weighted_average_price(item_id)
    data = item.to_dict()
    data["weighted_average_price"] = price
    data["stock_value"] = round(item.current_stock * price, 2) if price is not None else None
    return data


def list_stock_history(item_id: int, *, limit: int = 100) -> list[StockHistory]:
    return (
        db.session.query(StockHistory)
        .filter(StockHistory.item_id == item_id)
        .order_by(StockHistory.id.desc())
        .limit(limit)
        .all()
    )


def get_item_by_code(code: str) -> Item:
    item = db.session.query(Item).filter(Item.code == (code or "").strip()).first()
    if item is None:
        raise NotFound(f"Item {code!r} not found")
    return item


def post_manual_adjustment(
    uow,
    *,
    item_id: int,
    quantity,
    direction,
    reason: str,
    actor_id: int | None,
    price: float | None = None,
) -> dict:
    """
    Stock count correction or goods receipt outside any order.

    Writes an ADJUSTMENT movement, then the ledger entry that references it.
    OUT respects reservations: only unreserved stock can be written off.
    """
    require_uow(uow)
    if isinstance(direction, TransactionType):
        direction = direction.value
    try:
        direction = TransactionType(str(direction or "").strip().upper())
    except ValueError:
        raise ValidationError("direction must be IN or OUT")
    reason = _require_reason(reason)
    if price is not None and direction != TransactionType.IN:
        raise ValidationError("price is only accepted on IN adjustments")
    _lock_item(uow, item_id)

    tx = record_stock_transaction(
        uow,
        item_id=item_id,
        type=direction,
        source=TransactionSource.ADJUSTMENT,
        quantity=quantity,
        price=price,
        memo=reason,
        actor_id=actor_id,
    )
    result = adjust_stock(uow, item_id, tx.quantity, direction, actor_id, reason, transaction_id=tx.id)
    return {"transaction": tx.to_dict(), "ledger": result.to_dict()}
