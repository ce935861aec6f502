"""
Proceeding Service — CaseTrack
==============================
Create, update, list and remove proceedings.

Every mutation follows the same path:

    access check on the parent case
      -> payload validation
      -> sequencer placement (draft upsert, or finalize at the next sequence)
      -> status propagation (finalized DECISION only, best-effort)
      -> commit
      -> audit entry (fire-and-log)

Sequence conflicts from concurrent finalizes are retried a few times with a
fresh read before the 409 reaches the caller.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import String, cast, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from casetrack.core.config import settings
from casetrack.db.models import PAYLOAD_FIELD_BY_TYPE, AuditAction, AuditResourceType, Case, Proceeding
from casetrack.services import sequencer
from casetrack.services.access import (
    Caller,
    can_read_case,
    get_readable_case,
    get_readable_proceeding,
    get_writable_case,
    get_writable_proceeding,
    owned_by,
)
from casetrack.services.attachment_service import AttachmentService, IncomingFile
from casetrack.services.audit_service import audit_service
from casetrack.services.proceeding_validator import to_record_values, validate_proceeding
from casetrack.services.status_propagation import propagate_decision
from casetrack.utils.exceptions import ConflictError, NotFoundOrDeniedError, PayloadValidationError

logger = logging.getLogger(__name__)


def _parse_uuid(value: Any) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def _with_conflict_retry(db: Session, work: Callable[[], Proceeding]) -> Proceeding:
    attempts = max(1, settings.SEQUENCE_CONFLICT_RETRIES)
    for attempt in range(1, attempts + 1):
        try:
            proceeding = work()
            db.commit()
            return proceeding
        except IntegrityError as e:
            db.rollback()
            logger.warning("sequence_conflict_on_commit attempt=%s error=%s", attempt, e.orig)
            if attempt == attempts:
                raise ConflictError("Proceeding sequence conflict, retry the request")
        except ConflictError:
            if attempt == attempts:
                raise
            logger.warning("sequence_conflict attempt=%s, retrying", attempt)
        except Exception:
            db.rollback()
            raise


def _audit(db, action, caller, proceeding_id, details, source_address):
    audit_service.record(
        db,
        action,
        caller.email,
        AuditResourceType.PROCEEDING,
        details,
        resource_id=str(proceeding_id),
        source_address=source_address,
    )


# ============================================================================
# Reads
# ============================================================================

def list_all_proceedings(db: Session, caller: Caller) -> List[Proceeding]:
    query = db.query(Proceeding).join(Case, Case.id == Proceeding.case_id)
    if not caller.is_admin:
        query = query.filter(owned_by(caller))
    return query.order_by(Proceeding.case_id, Proceeding.sequence.asc()).all()


def list_proceedings_by_case(db: Session, caller: Caller, case_id: uuid.UUID) -> List[Proceeding]:
    case = get_readable_case(db, caller, case_id)
    return (
        db.query(Proceeding)
        .filter(Proceeding.case_id == case.id, Proceeding.draft == False)  # noqa: E712
        .order_by(Proceeding.sequence.asc())
        .all()
    )


def find_draft_by_case(db: Session, caller: Caller, case_id: uuid.UUID) -> Optional[Proceeding]:
    case = get_readable_case(db, caller, case_id)
    return sequencer.find_draft(db, case.id, case.email)


def get_proceeding(db: Session, caller: Caller, proceeding_id: uuid.UUID) -> Proceeding:
    return get_readable_proceeding(db, caller, proceeding_id)


def _references(proceeding: Proceeding, filename: str) -> bool:
    if any((a or {}).get("file_url") == filename for a in proceeding.attachments or []):
        return True
    return any((entry or {}).get("attachment") == filename for entry in proceeding.payload or [])


def find_attachment_proceeding(db: Session, caller: Caller, filename: str) -> Proceeding:
    """
    The proceeding that references a stored attachment, either in
    ``attachments`` or as an entry's ``attachment``. A file nobody references
    and a file on a case the caller cannot read look the same.
    """
    columns = [Proceeding.attachments] + [getattr(Proceeding, f) for f in PAYLOAD_FIELD_BY_TYPE.values()]
    candidates = (
        db.query(Proceeding)
        .filter(or_(*[cast(c, String).contains(filename, autoescape=True) for c in columns]))
        .all()
    )
    for proceeding in candidates:
        if _references(proceeding, filename) and can_read_case(caller, proceeding.case):
            return proceeding
    raise NotFoundOrDeniedError("Attachment")


# ============================================================================
# Mutations
# ============================================================================

def create_proceeding(
    db: Session,
    caller: Caller,
    data: Dict[str, Any],
    source_address: Optional[str] = None,
) -> Proceeding:
    case_id = _parse_uuid(data.get("case_id")) if isinstance(data, dict) else None
    if case_id is not None:
        # authorize before looking at the payload
        get_writable_case(db, caller, case_id)

    payload = validate_proceeding(data)
    values = to_record_values(payload)

    def work() -> Proceeding:
        case = get_writable_case(db, caller, payload.case_id, lock=True)
        # admins file on behalf of the case owner
        proceeding = sequencer.place(db, case, case.email, values, draft=payload.draft)
        propagate_decision(db, caller, proceeding, case)
        return proceeding

    proceeding = _with_conflict_retry(db, work)
    db.refresh(proceeding)

    logger.info(
        "proceeding_saved id=%s case=%s type=%s draft=%s sequence=%s",
        proceeding.id, proceeding.case_id, proceeding.type.value, proceeding.draft, proceeding.sequence,
    )
    _audit(
        db, AuditAction.CREATE_PROCEEDING, caller, proceeding.id,
        {
            "case_id": str(proceeding.case_id),
            "type": proceeding.type.value,
            "draft": proceeding.draft,
            "sequence": proceeding.sequence,
        },
        source_address,
    )
    return proceeding


def update_proceeding(
    db: Session,
    caller: Caller,
    proceeding_id: uuid.UUID,
    data: Dict[str, Any],
    source_address: Optional[str] = None,
) -> Proceeding:
    """
    Replace the proceeding's content. A draft submitted with draft=false is
    finalized (the draft row goes away and a new sequence is assigned); a
    finalized proceeding keeps its sequence and cannot go back to draft.
    """
    existing = get_writable_proceeding(db, caller, proceeding_id)
    existing_id = existing.id
    was_draft = existing.draft
    owner_email = existing.email

    data = dict(data)
    data.setdefault("case_id", str(existing.case_id))
    if _parse_uuid(data["case_id"]) != existing.case_id:
        raise PayloadValidationError(["case_id: a proceeding cannot be moved to another case"])

    payload = validate_proceeding(data)
    if not was_draft and payload.draft:
        raise PayloadValidationError(["draft: a finalized proceeding cannot be turned back into a draft"])
    values = to_record_values(payload)
    case_id = existing.case_id

    def work() -> Proceeding:
        case = get_writable_case(db, caller, case_id, lock=True)
        if was_draft:
            proceeding = sequencer.place(db, case, owner_email, values, draft=payload.draft)
        else:
            proceeding = db.query(Proceeding).filter(Proceeding.id == existing_id).one()
            for field, value in values.items():
                if field != "draft":
                    setattr(proceeding, field, value)
            db.flush()
        propagate_decision(db, caller, proceeding, case)
        return proceeding

    proceeding = _with_conflict_retry(db, work)
    db.refresh(proceeding)

    logger.info(
        "proceeding_updated id=%s previous=%s case=%s draft=%s sequence=%s",
        proceeding.id, existing_id, proceeding.case_id, proceeding.draft, proceeding.sequence,
    )
    _audit(
        db, AuditAction.UPDATE_PROCEEDING, caller, proceeding.id,
        {
            "case_id": str(proceeding.case_id),
            "previous_id": str(existing_id),
            "finalized": was_draft and not proceeding.draft,
            "sequence": proceeding.sequence,
        },
        source_address,
    )
    return proceeding


def delete_proceeding(
    db: Session,
    caller: Caller,
    proceeding_id: uuid.UUID,
    source_address: Optional[str] = None,
) -> Dict[str, Any]:
    proceeding = get_writable_proceeding(db, caller, proceeding_id)
    details = {
        "case_id": str(proceeding.case_id),
        "sequence": proceeding.sequence,
        "draft": proceeding.draft,
    }

    db.delete(proceeding)
    db.commit()

    logger.info("proceeding_deleted id=%s case=%s", proceeding_id, details["case_id"])
    _audit(db, AuditAction.DELETE_PROCEEDING, caller, proceeding_id, details, source_address)
    return {"message": "Proceeding deleted successfully", "proceeding_id": str(proceeding_id)}


def create_proceeding_with_attachments(
    db: Session,
    caller: Caller,
    data: Dict[str, Any],
    files: Sequence[IncomingFile],
    store: AttachmentService,
    source_address: Optional[str] = None,
) -> Proceeding:
    """
    Save uploaded files, reference them from ``attachments`` and create the
    proceeding. If the database write fails the saved files are deleted
    again before the error propagates.
    """
    case_id = _parse_uuid(data.get("case_id"))
    if case_id is not None:
        get_writable_case(db, caller, case_id)

    # reject a bad payload or a bad file before anything touches storage
    validate_proceeding(data)
    errors = []
    for index, f in enumerate(files):
        check = store.validate(f.filename, f.content_type, len(f.data))
        if not check.valid:
            errors.append(f"files.{index}: {check.error}")
    if errors:
        raise PayloadValidationError(errors)

    saved: List[str] = []
    try:
        for f in files:
            saved.append(store.save(f.filename, f.content_type, f.data))

        data = dict(data)
        data["attachments"] = list(data.get("attachments") or []) + [
            {"file_name": f.filename, "file_url": name} for f, name in zip(files, saved)
        ]
        proceeding = create_proceeding(db, caller, data, source_address=source_address)
    except Exception:
        for name in saved:
            try:
                store.delete(name)
                logger.info("orphan_attachment_removed file=%s", name)
            except Exception:
                logger.exception("orphan_attachment_cleanup_failed file=%s", name)
        raise

    if saved:
        audit_service.record(
            db,
            AuditAction.UPLOAD_ATTACHMENT,
            caller.email,
            AuditResourceType.ATTACHMENT,
            {"files": saved, "proceeding_id": str(proceeding.id)},
            resource_id=str(proceeding.id),
            source_address=source_address,
        )
    return proceeding
