# Overview: Unit-of-work boundary and row-locking helpers shared by every service.

"""
Transaction boundary for the warehouse core.

RULES:
- Every multi-step operation (production approval, dispatch, arrival, return)
  runs inside exactly one unit_of_work(). The HTTP route or CLI command opens
  it; services receive the UnitOfWork object and never commit or roll back.
- Commit happens once, on clean exit. Any exception rolls back everything, so
  a failed operation leaves no partial state.
- Rows being mutated are read with SELECT ... FOR UPDATE. Mutable rows also
  carry version_id_col, so a concurrent writer surfaces as StaleDataError,
  which is translated to ConcurrencyConflict (HTTP 409).
- No retries: the caller resubmits.
"""

from __future__ import annotations

from contextlib import contextmanager

from flask import current_app
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflict, NotFound
from ..extensions import db


DEFAULT_QTY_TOLERANCE = 0.01


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


class UnitOfWork:
    """Handle on the open transaction, passed explicitly to every core operation."""

    def __init__(self, session, tolerance: float = DEFAULT_QTY_TOLERANCE):
        self.session = session
        self.tolerance = tolerance

    def add(self, obj):
        self.session.add(obj)
        return obj

    def flush(self) -> None:
        self.session.flush()

    def query(self, *entities):
        return self.session.query(*entities)

    def get(self, model, ident, *, for_update: bool = False, label: str | None = None):
        """Load a row by primary key or raise NotFound."""
        query = self.session.query(model).filter(model.id == ident)
        if for_update:
            query = lock_for_update(query)
        obj = query.first()
        if obj is None:
            raise NotFound(f"{label or model.__name__} {ident} not found")
        return obj


def require_uow(uow) -> UnitOfWork:
    if not isinstance(uow, UnitOfWork):
        raise TypeError("a UnitOfWork is required; open one with unit_of_work()")
    return uow


def _configured_tolerance() -> float:
    try:
        return float(current_app.config.get("QTY_TOLERANCE", DEFAULT_QTY_TOLERANCE))
    except RuntimeError:
        return DEFAULT_QTY_TOLERANCE


@contextmanager
def unit_of_work(session=None):
    """
    Open a unit of work on the Flask-SQLAlchemy session.

    Usage:
        with unit_of_work() as uow:
            dispatch_shipment(uow, ...)
    """
    uow = UnitOfWork(session or db.session, tolerance=_configured_tolerance())
    try:
        yield uow
        uow.session.commit()
    except StaleDataError as exc:
        uow.session.rollback()
        raise ConcurrencyConflict(
            "Record was modified by another request; reload and resubmit"
        ) from exc
    except Exception:
        uow.session.rollback()
        raise
