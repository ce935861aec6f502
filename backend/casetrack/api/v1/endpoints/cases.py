"""
Case management endpoints
"""
from fastapi import APIRouter, Body, Depends, Query, Request, status
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
from uuid import UUID

from casetrack.db.database import get_db
from casetrack.db.schemas import (
    CaseResponse,
    CaseUpdate,
    CaseListResponse,
    CaseDetailResponse,
    ProceedingResponse,
)
from casetrack.api.v1.deps import get_current_caller, get_source_address
from casetrack.services import case_service
from casetrack.services.access import Caller

router = APIRouter()

# ============================================================================
# List & Search Endpoints
# ============================================================================

@router.get("/", response_model=CaseListResponse)
def get_cases(
    status: Optional[str] = Query(None, description="Filter by writ status"),
    writ_type: Optional[str] = Query(None, description="Filter by writ type"),
    branch_name: Optional[str] = Query(None, description="Filter by branch"),
    q: Optional[str] = Query(None, description="Free-text search"),
    sort_by: str = Query("created_at", description="Sort field"),
    sort_dir: str = Query("desc", description="Sort direction (asc/desc)"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db)
):
    """
    Cases visible to the caller: own cases, plus the caller's branch.
    Admins see everything. Branch cases are listed for awareness only;
    opening one with GET /cases/{id} still needs ownership and returns 404
    otherwise.
    """
    return case_service.list_cases(
        db, caller,
        status=status,
        writ_type=writ_type,
        branch_name=branch_name,
        q=q,
        sort_by=sort_by,
        sort_dir=sort_dir,
        page=page,
        per_page=per_page,
    )


@router.get("/search", response_model=List[CaseResponse])
def search_cases(
    q: str = Query(..., min_length=1, description="Search query"),
    limit: int = Query(50, ge=1, le=100, description="Max results"),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db)
):
    return case_service.search_cases(db, caller, q, limit=limit)

# ============================================================================
# CRUD Endpoints
# ============================================================================

@router.post("/", response_model=CaseResponse, status_code=status.HTTP_201_CREATED)
def create_case(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db)
):
    return case_service.create_case(db, caller, payload, source_address=get_source_address(request))


@router.get("/{case_id}", response_model=CaseDetailResponse)
def get_case(
    case_id: UUID,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db)
):
    """
    Case with its finalized proceedings, in sequence order
    """
    case = case_service.get_case(db, caller, case_id)
    response = CaseDetailResponse.model_validate(case, from_attributes=True)
    response.proceedings = [
        ProceedingResponse.model_validate(p, from_attributes=True)
        for p in case_service.finalized_proceedings(db, case)
    ]
    return response


@router.patch("/{case_id}", response_model=CaseResponse)
def update_case(
    case_id: UUID,
    request: Request,
    payload: CaseUpdate,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db)
):
    return case_service.update_case(
        db, caller, case_id, payload.model_dump(exclude_unset=True), source_address=get_source_address(request)
    )


@router.delete("/{case_id}")
def delete_case(
    case_id: UUID,
    request: Request,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db)
):
    return case_service.delete_case(db, caller, case_id, source_address=get_source_address(request))
