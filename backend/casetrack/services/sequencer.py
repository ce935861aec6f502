"""
Proceeding sequencer — CaseTrack
================================
Places a proceeding within its case.

    draft=True   upsert the single draft for (case, owner) at sequence 0
    draft=False  discard that draft, then insert at max(finalized) + 1

Callers hold a row lock on the parent case (SELECT ... FOR UPDATE) for the
whole placement, so the read of the current maximum and the insert happen
in one transaction. The partial unique indexes on ``proceedings`` remain the
backstop: a violation surfaces as ConflictError and the caller retries.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from casetrack.db.models import Case, Proceeding
from casetrack.utils.exceptions import ConflictError

logger = logging.getLogger(__name__)

DRAFT_SEQUENCE = 0


def find_draft(db: Session, case_id: uuid.UUID, email: Optional[str] = None) -> Optional[Proceeding]:
    query = db.query(Proceeding).filter(
        Proceeding.case_id == case_id,
        Proceeding.draft == True,  # noqa: E712
    )
    if email is not None:
        query = query.filter(Proceeding.email == email)
    return query.first()


def next_sequence(db: Session, case_id: uuid.UUID) -> int:
    """max(sequence) + 1 over finalized proceedings of the case, or 1."""
    current = (
        db.query(func.max(Proceeding.sequence))
        .filter(Proceeding.case_id == case_id, Proceeding.draft == False)  # noqa: E712
        .scalar()
    )
    return (current or 0) + 1


def _flush(db: Session, case_id: uuid.UUID) -> None:
    try:
        db.flush()
    except IntegrityError as e:
        db.rollback()
        logger.warning("sequence_conflict case=%s error=%s", case_id, e.orig)
        raise ConflictError("Proceeding sequence conflict, retry the request")


def save_draft(db: Session, case: Case, email: str, values: Dict[str, Any]) -> Proceeding:
    draft = find_draft(db, case.id, email)
    if draft is not None:
        for field, value in values.items():
            setattr(draft, field, value)
        draft.draft = True
        draft.sequence = DRAFT_SEQUENCE
        logger.info("draft_overwritten case=%s proceeding=%s", case.id, draft.id)
    else:
        draft = Proceeding(
            **values,
            case_id=case.id,
            email=email,
        )
        draft.draft = True
        draft.sequence = DRAFT_SEQUENCE
        db.add(draft)
        logger.info("draft_created case=%s", case.id)

    _flush(db, case.id)
    return draft


def finalize(db: Session, case: Case, email: str, values: Dict[str, Any]) -> Proceeding:
    """Drop the (case, owner) draft if any, then append a finalized proceeding."""
    draft = find_draft(db, case.id, email)
    if draft is not None:
        db.delete(draft)
        _flush(db, case.id)
        logger.info("draft_discarded case=%s proceeding=%s", case.id, draft.id)

    proceeding = Proceeding(
        **values,
        case_id=case.id,
        email=email,
    )
    proceeding.draft = False
    proceeding.sequence = next_sequence(db, case.id)
    db.add(proceeding)
    _flush(db, case.id)

    logger.info("proceeding_finalized case=%s sequence=%s", case.id, proceeding.sequence)
    return proceeding


def place(db: Session, case: Case, email: str, values: Dict[str, Any], draft: bool) -> Proceeding:
    values = {k: v for k, v in values.items() if k not in ("draft", "sequence", "case_id", "email")}
    if draft:
        return save_draft(db, case, email, values)
    return finalize(db, case, email, values)
