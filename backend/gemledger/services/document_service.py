# Overview: Human-readable document numbering (sales, expenses, workshop orders).

from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _read_next(shop_id: int, sequence_key: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(shop_id=shop_id, sequence_key=sequence_key)
        .scalar()
    )


def next_sequence_value(*, shop_id: int, sequence_key: str) -> int:
    """
    Atomically allocate the next integer for (shop_id, sequence_key).

    The UPDATE ... SET next_number = next_number + 1 is a single statement,
    so two writers can't read the same value. The first allocation inserts
    the row; losing that insert race falls back to the UPDATE path.
    """
    if not shop_id:
        raise DocumentSequenceError("shop_id is required")
    if not sequence_key:
        raise DocumentSequenceError("sequence_key is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.shop_id == shop_id,
            DocumentSequence.sequence_key == sequence_key,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        return _read_next(shop_id, sequence_key) - 1

    seq = DocumentSequence(shop_id=shop_id, sequence_key=sequence_key, next_number=2)
    try:
        with db.session.begin_nested():
            db.session.add(seq)
        return 1
    except IntegrityError:
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise DocumentSequenceError(f"Could not allocate {sequence_key} number")
        return _read_next(shop_id, sequence_key) - 1


def next_document_number(
    *,
    shop_id: int,
    document_type: str,
    prefix: str,
    pad: int = 4,
    on_date: date | None = None,
) -> str:
    """
    Format the next number for a document type.

    With on_date the counter restarts daily: INV-20241204-0001.
    Without it the counter runs for the life of the shop: EXP-000001.
    """
    if on_date is not None:
        day = on_date.strftime("%Y%m%d")
        n = next_sequence_value(shop_id=shop_id, sequence_key=f"{document_type}:{day}")
        return f"{prefix}{day}-{n:0{pad}d}"

    n = next_sequence_value(shop_id=shop_id, sequence_key=document_type)
    return f"{prefix}{n:0{pad}d}"
