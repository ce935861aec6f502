"""
A finalized DECISION proceeding carries the court's outcome for the writ;
that outcome becomes the parent case's status.

The update runs inside a SAVEPOINT in the same transaction as the
proceeding write. On success both land in one commit. On failure only the
savepoint is rolled back and the error is logged: the proceeding is still
committed by the caller and the case keeps its previous status.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from casetrack.db.models import Case, Proceeding, ProceedingType, WritStatus
from casetrack.services.access import Caller, can_write_case
from casetrack.utils.exceptions import NotFoundOrDeniedError

logger = logging.getLogger(__name__)


def decision_outcome(proceeding: Proceeding) -> Optional[WritStatus]:
    """The writ status a proceeding asks to apply, or None."""
    if proceeding.draft or ProceedingType(proceeding.type) != ProceedingType.DECISION:
        return None
    for entry in reversed(proceeding.decision_details or []):
        status = (entry or {}).get("writ_status")
        if status:
            return WritStatus(status)
    return None


def _apply_status(db: Session, caller: Caller, case: Case, status: WritStatus) -> None:
    if not can_write_case(caller, case):
        raise NotFoundOrDeniedError("Case")
    case.status = status
    db.flush()


def propagate_decision(
    db: Session,
    caller: Caller,
    proceeding: Proceeding,
    case: Case,
) -> bool:
    """
    Apply the decision outcome of ``proceeding`` to ``case``. Returns True if
    the status changed hands, False if there was nothing to apply or the
    update failed.
    """
    status = decision_outcome(proceeding)
    if status is None:
        return False

    previous = case.status
    savepoint = db.begin_nested()
    try:
        _apply_status(db, caller, case, status)
        savepoint.commit()
    except Exception:
        savepoint.rollback()
        logger.exception(
            "status_propagation_failed case=%s proceeding=%s status=%s",
            case.id, proceeding.id, status.value,
        )
        return False

    logger.info(
        "case_status_updated case=%s from=%s to=%s proceeding=%s",
        case.id, getattr(previous, "value", previous), status.value, proceeding.id,
    )
    return True
