"""
Access resolver.
Who may read or change a case, and by inheritance its proceedings.

Policy:
    * admin          read and write every case
    * regular user   read and write cases they own (case.email == caller email)
    * listing/search a regular user also sees cases filed in their own branch

A failed check never reveals whether the record exists: the caller gets
the same NotFoundOrDeniedError either way.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session

from casetrack.db.models import Case, Proceeding, UserRole
from casetrack.utils.exceptions import NotFoundOrDeniedError


@dataclass(frozen=True)
class Caller:
    email: str
    role: UserRole = UserRole.user
    branch: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin


def _same_email(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.strip().lower() == b.strip().lower()


def can_read_case(caller: Caller, case: Case) -> bool:
    return caller.is_admin or _same_email(case.email, caller.email)


def can_write_case(caller: Caller, case: Case) -> bool:
    return caller.is_admin or _same_email(case.email, caller.email)


def owned_by(caller: Caller):
    """SQL form of the owner check, case-insensitive like _same_email."""
    return func.lower(Case.email) == caller.email.strip().lower()


def visible_cases(query: Query, caller: Caller) -> Query:
    """Restrict a Case query to what the caller may see in listings."""
    if caller.is_admin:
        return query
    clauses = [owned_by(caller)]
    if caller.branch:
        clauses.append(Case.branch_name == caller.branch)
    return query.filter(or_(*clauses))


def _load_case(db: Session, case_id: uuid.UUID, lock: bool = False) -> Optional[Case]:
    query = db.query(Case).filter(Case.id == case_id)
    if lock:
        query = query.with_for_update()
    return query.first()


def get_readable_case(db: Session, caller: Caller, case_id: uuid.UUID) -> Case:
    case = _load_case(db, case_id)
    if case is None or not can_read_case(caller, case):
        raise NotFoundOrDeniedError("Case")
    return case


def get_writable_case(
    db: Session,
    caller: Caller,
    case_id: uuid.UUID,
    lock: bool = False,
) -> Case:
    case = _load_case(db, case_id, lock=lock)
    if case is None or not can_write_case(caller, case):
        raise NotFoundOrDeniedError("Case")
    return case


def get_readable_proceeding(db: Session, caller: Caller, proceeding_id: uuid.UUID) -> Proceeding:
    proceeding = db.query(Proceeding).filter(Proceeding.id == proceeding_id).first()
    if proceeding is None or not can_read_case(caller, proceeding.case):
        raise NotFoundOrDeniedError("Proceeding")
    return proceeding


def get_writable_proceeding(db: Session, caller: Caller, proceeding_id: uuid.UUID) -> Proceeding:
    proceeding = db.query(Proceeding).filter(Proceeding.id == proceeding_id).first()
    if proceeding is None or not can_write_case(caller, proceeding.case):
        raise NotFoundOrDeniedError("Proceeding")
    return proceeding
