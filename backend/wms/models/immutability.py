"""
ORM-level append-only enforcement.

StockHistory, StockTransaction and ShipmentReturn are audit artifacts: once
inserted they are never updated or deleted. Corrections are new rows
(a compensating adjustment, a new movement).

SQLAlchemy fires before_update / before_delete during flush, before the SQL
reaches the database. Raising there aborts the flush and the unit of work
rolls back.

Bulk Core statements (table.delete()) bypass these hooks; only the
reset-db CLI command and the test fixtures use them.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import event

from ..errors import ImmutableRecordError
from .inventory import StockHistory, StockTransaction
from .shipping import ShipmentReturn


APPEND_ONLY_MODELS = (StockHistory, StockTransaction, ShipmentReturn)


def _reject(operation: str):
    def listener(mapper, connection, target):
        entity = type(target).__name__
        current_app.logger.error(
            "Blocked %s of append-only record %s id=%s", operation, entity, target.id
        )
        raise ImmutableRecordError(
            f"{entity} records are append-only and cannot be {operation.lower()}d",
            entity_type=entity,
            entity_id=target.id,
        )
    return listener


_reject_update = _reject("UPDATE")
_reject_delete = _reject("DELETE")


def register_immutability_listeners() -> None:
    """Idempotent; called from create_app()."""
    for model in APPEND_ONLY_MODELS:
        if not event.contains(model, "before_update", _reject_update):
            event.listen(model, "before_update", _reject_update)
        if not event.contains(model, "before_delete", _reject_delete):
            event.listen(model, "before_delete", _reject_delete)
