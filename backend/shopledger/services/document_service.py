# Overview: Human-readable document numbers (PO-000001, INV-000001).

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from .concurrency import ConcurrentInsertError


PURCHASE_ORDER = "PURCHASE_ORDER"
SALE = "SALE"

PREFIXES = {
    PURCHASE_ORDER: "PO",
    SALE: "INV",
}


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_document_number(document_type: str, *, pad: int = 6) -> str:
    """
    Allocate the next number for a document type inside the caller's
    transaction.

    The counter is bumped with a single UPDATE ... SET next_number =
    next_number + 1 so two writers cannot read the same value. The first
    document of a type inserts the row; losing that insert race raises
    ConcurrentInsertError, which atomic() retries. Flushes, never commits:
    a rolled back sale or order gives its number back.
    """
    prefix = PREFIXES.get(document_type)
    if prefix is None:
        raise DocumentSequenceError(f"unknown document type: {document_type}")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type)
            .scalar()
        )
        number = current - 1
    else:
        db.session.add(DocumentSequence(document_type=document_type, next_number=2))
        try:
            db.session.flush()
        except IntegrityError as e:
            raise ConcurrentInsertError(f"{document_type} sequence created concurrently") from e
        number = 1

    return f"{prefix}-{number:0{pad}d}"
