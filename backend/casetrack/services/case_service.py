# casetrack/services/case_service.py
"""
Case operations. Plain functions; the session and the caller are passed in.
"""
import enum
import uuid
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy import String, cast, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from casetrack.core.logger import logger
from casetrack.db.models import AuditAction, AuditResourceType, Case, Proceeding, WritStatus, WritType
from casetrack.db.schemas import CaseCreate
from casetrack.services.access import Caller, get_readable_case, get_writable_case, visible_cases
from casetrack.services.audit_service import audit_service
from casetrack.utils.exceptions import ConflictError, PayloadValidationError
from casetrack.utils.validators import blank_to_none, format_validation_errors

SORTABLE_COLUMNS = {
    "created_at": Case.created_at,
    "updated_at": Case.updated_at,
    "date_of_fir": Case.date_of_fir,
    "case_number": Case.case_number,
    "writ_year": Case.writ_year,
    "status": Case.status,
}

_JSON_FIELDS = ("sections", "investigating_officers", "respondents", "linked_writ_ids")


def writ_rule_errors(data: Dict[str, Any]) -> List[str]:
    """Conditional writ rules, checked on the raw payload so they report alongside field errors."""
    writ_type = data.get("writ_type")
    writ_type = getattr(writ_type, "value", writ_type)
    sub_type = blank_to_none(data.get("writ_sub_type"))
    other = blank_to_none(data.get("writ_type_other"))

    errors = []
    if writ_type == WritType.BAIL.value and sub_type is None:
        errors.append("writ_sub_type: required when writ_type is BAIL")
    elif writ_type is not None and writ_type != WritType.BAIL.value and sub_type is not None:
        errors.append("writ_sub_type: must be empty unless writ_type is BAIL")
    if other is not None and writ_type != WritType.ANY_OTHER.value:
        errors.append("writ_type_other: only allowed when writ_type is ANY_OTHER")
    return errors


def validate_case_payload(data: Dict[str, Any]) -> CaseCreate:
    errors: List[str] = []
    payload = None
    try:
        payload = CaseCreate.model_validate(data)
    except ValidationError as exc:
        errors.extend(format_validation_errors(exc))

    if isinstance(data, dict):
        for message in writ_rule_errors(data):
            field = message.split(":", 1)[0]
            if not any(e.startswith(field) for e in errors):
                errors.append(message)

    if errors:
        raise PayloadValidationError(errors)
    return payload


def _column_values(payload: CaseCreate) -> Dict[str, Any]:
    values = payload.model_dump()
    json_ready = payload.model_dump(mode="json", include=set(_JSON_FIELDS))
    values.update(json_ready)
    return values


def _case_as_payload(case: Case) -> Dict[str, Any]:
    data = {}
    for field in CaseCreate.model_fields:
        value = getattr(case, field)
        data[field] = value.value if isinstance(value, enum.Enum) else value
    return data


def _commit_case(db: Session, case_number: str) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Duplicate case number rejected: {case_number}")
        raise ConflictError(f"Case number {case_number} already exists")


def create_case(
    db: Session,
    caller: Caller,
    data: Dict[str, Any],
    source_address: Optional[str] = None,
) -> Case:
    payload = validate_case_payload(data)

    case = Case(**_column_values(payload), email=caller.email)
    db.add(case)
    _commit_case(db, payload.case_number)
    db.refresh(case)

    logger.info(f"Case created: {case.case_number} by {caller.email}")
    audit_service.record(
        db,
        AuditAction.CREATE_CASE,
        caller.email,
        AuditResourceType.CASE,
        {"case_number": case.case_number, "branch_name": case.branch_name},
        resource_id=str(case.id),
        source_address=source_address,
    )
    return case


def get_case(db: Session, caller: Caller, case_id: uuid.UUID) -> Case:
    return get_readable_case(db, caller, case_id)


def finalized_proceedings(db: Session, case: Case) -> List[Proceeding]:
    return (
        db.query(Proceeding)
        .filter(Proceeding.case_id == case.id, Proceeding.draft == False)  # noqa: E712
        .order_by(Proceeding.sequence.asc())
        .all()
    )


def list_cases(
    db: Session,
    caller: Caller,
    status: Optional[str] = None,
    writ_type: Optional[str] = None,
    branch_name: Optional[str] = None,
    q: Optional[str] = None,
    sort_by: str = "created_at",
    sort_dir: str = "desc",
    page: int = 1,
    per_page: int = 20,
) -> Dict[str, Any]:
    query = visible_cases(db.query(Case), caller)

    if status and status != "all":
        query = query.filter(Case.status == _filter_value(WritStatus, "status", status))
    if writ_type:
        query = query.filter(Case.writ_type == _filter_value(WritType, "writ_type", writ_type))
    if branch_name:
        query = query.filter(Case.branch_name == branch_name)
    if q:
        query = query.filter(_search_clause(q))

    sort_column = SORTABLE_COLUMNS.get(sort_by, Case.created_at)
    if (sort_dir or "").lower() == "asc":
        query = query.order_by(sort_column.asc(), Case.created_at.desc())
    else:
        query = query.order_by(sort_column.desc(), Case.created_at.desc())

    total = query.count()
    total_pages = max(1, (total + per_page - 1) // per_page)
    items = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": items,
        "total": total,
        "page": page,
        "per_page": per_page,
        "total_pages": total_pages,
    }


def _filter_value(enum_cls, name: str, value: str):
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        raise PayloadValidationError([f"{name}: unknown value {value!r}"])


def _search_clause(q: str):
    term = f"%{q.strip()}%"
    return or_(
        Case.case_number.ilike(term),
        Case.petitioner_name.ilike(term),
        cast(Case.investigating_officers, String).ilike(term),
        Case.branch_name.ilike(term),
        Case.police_station.ilike(term),
        Case.writ_number.ilike(term),
    )


def search_cases(db: Session, caller: Caller, q: Optional[str], limit: int = 50) -> List[Case]:
    query = visible_cases(db.query(Case), caller)
    if q and q.strip():
        query = query.filter(_search_clause(q))
    return (
        query.order_by(Case.date_of_fir.desc(), Case.created_at.desc())
        .limit(limit)
        .all()
    )


def update_case(
    db: Session,
    caller: Caller,
    case_id: uuid.UUID,
    changes: Dict[str, Any],
    source_address: Optional[str] = None,
) -> Case:
    """
    Merge ``changes`` into the stored case and re-validate the whole record,
    so the writ rules hold whichever fields were sent. Owner and status are
    not writable here.
    """
    case = get_writable_case(db, caller, case_id)

    merged = _case_as_payload(case)
    merged.update(changes)
    if "writ_type" in changes and "writ_sub_type" not in changes and merged.get("writ_type") != WritType.BAIL.value:
        merged["writ_sub_type"] = None
    if "writ_type" in changes and "writ_type_other" not in changes and merged.get("writ_type") != WritType.ANY_OTHER.value:
        merged["writ_type_other"] = None

    payload = validate_case_payload(merged)
    for field, value in _column_values(payload).items():
        setattr(case, field, value)

    _commit_case(db, payload.case_number)
    db.refresh(case)

    logger.info(f"Case updated: {case.case_number} by {caller.email}")
    audit_service.record(
        db,
        AuditAction.UPDATE_CASE,
        caller.email,
        AuditResourceType.CASE,
        {"fields": sorted(changes.keys())},
        resource_id=str(case.id),
        source_address=source_address,
    )
    return case


def delete_case(
    db: Session,
    caller: Caller,
    case_id: uuid.UUID,
    source_address: Optional[str] = None,
) -> Dict[str, Any]:
    """Hard delete. Proceedings go with the case; stored attachment files stay."""
    case = get_writable_case(db, caller, case_id)
    case_number = case.case_number

    db.delete(case)
    db.commit()

    logger.info(f"Case deleted: {case_number} by {caller.email}")
    audit_service.record(
        db,
        AuditAction.DELETE_CASE,
        caller.email,
        AuditResourceType.CASE,
        {"case_number": case_number},
        resource_id=str(case_id),
        source_address=source_address,
    )
    return {"message": "Case deleted successfully", "case_id": str(case_id)}
