"""
Proceeding endpoints: timeline entries of a case, drafts and attachments
"""
import json
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from casetrack.api.v1.deps import get_current_caller, get_source_address
from casetrack.core.logger import logger
from casetrack.db.database import get_db
from casetrack.db.schemas import AttachmentLocation, ProceedingResponse
from casetrack.services import proceeding_service
from casetrack.services.access import Caller
from casetrack.services.attachment_service import (
    AttachmentService,
    IncomingFile,
    get_attachment_service,
    resolve_attachment,
)
from casetrack.utils.exceptions import PayloadValidationError

router = APIRouter()


@router.get("/", response_model=List[ProceedingResponse])
def list_proceedings(
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db)
):
    return proceeding_service.list_all_proceedings(db, caller)


@router.get("/case/{case_id}", response_model=List[ProceedingResponse])
def list_case_proceedings(
    case_id: UUID,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db)
):
    """Finalized proceedings of a case, in sequence order"""
    return proceeding_service.list_proceedings_by_case(db, caller, case_id)


@router.get("/case/{case_id}/draft", response_model=Optional[ProceedingResponse])
def get_case_draft(
    case_id: UUID,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db)
):
    return proceeding_service.find_draft_by_case(db, caller, case_id)


@router.get("/attachments/{filename}")
def get_attachment(
    filename: str,
    caller: Caller = Depends(get_current_caller),
    store: AttachmentService = Depends(get_attachment_service),
    db: Session = Depends(get_db)
):
    """
    Only callers who can read the referencing proceeding get the file.
    Local storage streams the file back; S3 storage returns a short-lived
    download URL.
    """
    proceeding_service.find_attachment_proceeding(db, caller, filename)
    location = resolve_attachment(store, filename)

    if store.storage == "local":
        return FileResponse(location, filename=filename)
    return AttachmentLocation(file_name=filename, url=location)


@router.get("/{proceeding_id}", response_model=ProceedingResponse)
def get_proceeding(
    proceeding_id: UUID,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db)
):
    return proceeding_service.get_proceeding(db, caller, proceeding_id)


@router.post("/", response_model=ProceedingResponse, status_code=status.HTTP_201_CREATED)
def create_proceeding(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db)
):
    """
    Save a draft (draft=true) or append a finalized proceeding to its case.
    """
    return proceeding_service.create_proceeding(
        db, caller, payload, source_address=get_source_address(request)
    )


@router.post("/with-attachments", response_model=ProceedingResponse, status_code=status.HTTP_201_CREATED)
async def create_proceeding_with_attachments(
    request: Request,
    payload: str = Form(..., description="Proceeding JSON"),
    files: List[UploadFile] = File(default=[]),
    caller: Caller = Depends(get_current_caller),
    store: AttachmentService = Depends(get_attachment_service),
    db: Session = Depends(get_db)
):
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise PayloadValidationError([f"payload: invalid JSON ({e.msg})"])
    if not isinstance(data, dict):
        raise PayloadValidationError(["payload: must be a JSON object"])

    incoming = []
    for upload in files:
        incoming.append(IncomingFile(
            filename=upload.filename or "",
            content_type=upload.content_type,
            data=await upload.read(),
        ))

    logger.info(f"Proceeding upload by {caller.email}: {len(incoming)} file(s)")
    return proceeding_service.create_proceeding_with_attachments(
        db, caller, data, incoming, store, source_address=get_source_address(request)
    )


@router.put("/{proceeding_id}", response_model=ProceedingResponse)
def update_proceeding(
    proceeding_id: UUID,
    request: Request,
    payload: Dict[str, Any] = Body(...),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db)
):
    """
    Replace a proceeding. Sending draft=false for a draft finalizes it under
    a new id and the next sequence number.
    """
    return proceeding_service.update_proceeding(
        db, caller, proceeding_id, payload, source_address=get_source_address(request)
    )


@router.delete("/{proceeding_id}")
def delete_proceeding(
    proceeding_id: UUID,
    request: Request,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db)
):
    return proceeding_service.delete_proceeding(
        db, caller, proceeding_id, source_address=get_source_address(request)
    )
