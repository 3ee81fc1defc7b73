# Overview: Allocation of human-readable document numbers (PO-, BILL-, INV-, PAY-).

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


PURCHASE_ORDER = ("PURCHASE_ORDER", "PO")
VENDOR_BILL = ("VENDOR_BILL", "BILL")
CUSTOMER_INVOICE = ("CUSTOMER_INVOICE", "INV")
PAYMENT = ("PAYMENT", "PAY")


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _current_number(document_type: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )


def next_document_number(kind: tuple[str, str], *, pad: int = 4) -> str:
    """
    Atomically allocate the next number for a document kind.

    kind is one of the (document_type, prefix) pairs above. Runs inside
    the caller's transaction, so a rolled-back document also gives its
    number back.
    """
    document_type, prefix = kind
    if not document_type or not prefix:
        raise DocumentSequenceError("document_type and prefix are required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        next_num = _current_number(document_type) - 1
    else:
        nested = db.session.begin_nested()
        try:
            db.session.add(DocumentSequence(document_type=document_type, next_number=2))
            nested.commit()
            next_num = 1
        except IntegrityError:
            # Another transaction created the row first
            nested.rollback()
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise DocumentSequenceError(f"Could not allocate {document_type} number")
            db.session.flush()
            next_num = _current_number(document_type) - 1

    return f"{prefix}-{next_num:0{pad}d}"
