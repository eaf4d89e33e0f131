# Overview: Document number allocation backed by the document_sequences table.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from riderpos.time_utils import utcnow


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _allocate(document_type: str) -> int:
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        # First number for this type. The savepoint keeps a lost insert race
        # from rolling back the caller's transaction.
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, next_number=2))
            return 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise DocumentSequenceError(f"Could not allocate {document_type} sequence")

    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )
    return current - 1


def next_document_number(*, document_type: str, prefix: str, pad: int = 6) -> str:
    """
    Allocate the next number for a document type, formatted PREFIX-YYYYMMDD-NNNNNN.

    Runs inside the caller's transaction and does not commit, so a rolled
    back sale also gives its number back.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")
    if not prefix:
        raise DocumentSequenceError("prefix is required")

    number = _allocate(document_type)
    return f"{prefix}-{utcnow():%Y%m%d}-{number:0{pad}d}"


def advance_document_sequence(*, document_type: str, past: int) -> None:
    """
    Move a sequence so its next allocation is greater than `past`.

    Never moves a sequence backwards. Like next_document_number this runs in
    the caller's transaction.
    """
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.next_number <= past,
        )
        .values(next_number=past + 1)
    )
    db.session.execute(stmt)
