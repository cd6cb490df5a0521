# Overview: Service-layer operations for document numbering (SPK order numbers, shipment numbers).

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update

from ..models import DocumentSequence
from ..time_utils import order_number_period
from .concurrency import require_uow


SHIPMENT_SEQUENCE_KEY = "SHIPMENT"


def next_sequence_number(uow, sequence_key: str) -> int:
    """
    Atomically allocate the next number for sequence_key.

    The increment is a single UPDATE, which takes the row lock. The first
    allocation for a key inserts the row; a concurrent first insert of the
    same key fails on the unique constraint and the caller resubmits.
    """
    require_uow(uow)
    if not sequence_key:
        raise ValueError("sequence_key is required")

    session = uow.session
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.sequence_key == sequence_key)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = session.execute(stmt)
    if not result.rowcount:
        uow.add(DocumentSequence(sequence_key=sequence_key, next_number=2))
        uow.flush()
        return 1

    current = (
        session.query(DocumentSequence.next_number)
        .filter_by(sequence_key=sequence_key)
        .scalar()
    )
    return current - 1


def next_order_number(uow, now: datetime | None = None) -> str:
    """SPK/YYYY/MM/NNN, numbered per calendar month."""
    year, month = order_number_period(now)
    number = next_sequence_number(uow, f"SPK/{year}/{month}")
    return f"SPK/{year}/{month}/{number:03d}"


def next_shipment_number(uow) -> str:
    number = next_sequence_number(uow, SHIPMENT_SEQUENCE_KEY)
    return f"SHP-{number:06d}"
