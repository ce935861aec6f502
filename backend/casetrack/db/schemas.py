"""
Pydantic validation schemas
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from uuid import UUID

from casetrack.db.models import BailSubType, ProceedingType, WritStatus, WritType
from casetrack.utils.validators import NonBlankStr, OptionalDate, OptionalStr, RequiredDate

# ============================================================================
# Case Schemas
# ============================================================================

class RespondentDetail(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: NonBlankStr
    designation: OptionalStr = None


class InvestigatingOfficerDetail(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: NonBlankStr
    rank: NonBlankStr
    posting: NonBlankStr
    contact: int
    from_date: OptionalDate = None
    to_date: OptionalDate = None

    @model_validator(mode="after")
    def check_tenure(self):
        if self.from_date and self.to_date and self.from_date > self.to_date:
            raise ValueError("from_date must be on or before to_date")
        return self


class CaseCreate(BaseModel):
    """Full case payload. Also used to re-validate a case after a partial update."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    case_number: NonBlankStr
    branch_name: NonBlankStr
    date_of_fir: RequiredDate
    writ_number: NonBlankStr
    writ_type: WritType
    writ_year: int = Field(..., ge=1900, le=3000)
    writ_sub_type: Optional[BailSubType] = None
    writ_type_other: OptionalStr = None
    under_section: NonBlankStr
    act: NonBlankStr
    sections: List[str] = Field(default_factory=list)
    police_station: NonBlankStr
    investigating_officers: List[InvestigatingOfficerDetail] = Field(..., min_length=1)
    petitioner_name: NonBlankStr
    petitioner_father_name: NonBlankStr
    petitioner_address: NonBlankStr
    petitioner_prayer: NonBlankStr
    respondents: List[RespondentDetail] = Field(..., min_length=1)
    linked_writ_ids: List[UUID] = Field(default_factory=list)

    @field_validator("writ_sub_type", mode="before")
    @classmethod
    def blank_sub_type(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def default_sections(self):
        if not self.sections:
            self.sections = [self.under_section]
        return self


class CaseUpdate(BaseModel):
    """Partial update; merged into the stored case and re-validated as CaseCreate"""
    model_config = ConfigDict(extra="forbid")

    case_number: Optional[str] = None
    branch_name: Optional[str] = None
    date_of_fir: Optional[Any] = None
    writ_number: Optional[str] = None
    writ_type: Optional[str] = None
    writ_year: Optional[int] = None
    writ_sub_type: Optional[str] = None
    writ_type_other: Optional[str] = None
    under_section: Optional[str] = None
    act: Optional[str] = None
    sections: Optional[List[str]] = None
    police_station: Optional[str] = None
    investigating_officers: Optional[List[Dict[str, Any]]] = None
    petitioner_name: Optional[str] = None
    petitioner_father_name: Optional[str] = None
    petitioner_address: Optional[str] = None
    petitioner_prayer: Optional[str] = None
    respondents: Optional[List[Dict[str, Any]]] = None
    linked_writ_ids: Optional[List[Any]] = None


class CaseResponse(BaseModel):
    id: UUID
    case_number: str
    email: str
    branch_name: str
    date_of_fir: date
    writ_number: str
    writ_type: WritType
    writ_year: int
    writ_sub_type: Optional[BailSubType] = None
    writ_type_other: Optional[str] = None
    under_section: str
    act: str
    sections: List[str]
    police_station: str
    investigating_officers: List[Dict[str, Any]]
    petitioner_name: str
    petitioner_father_name: str
    petitioner_address: str
    petitioner_prayer: str
    respondents: List[Dict[str, Any]]
    linked_writ_ids: List[Any]
    status: WritStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CaseListResponse(BaseModel):
    items: List[CaseResponse]
    total: int
    page: int
    per_page: int
    total_pages: int

# ============================================================================
# Proceeding Schemas
# ============================================================================

class ProceedingResponse(BaseModel):
    id: UUID
    case_id: UUID
    sequence: int
    type: ProceedingType
    draft: bool
    summary: Optional[str] = None
    details: Optional[str] = None
    hearing_details: Optional[Dict[str, Any]] = None
    notice_of_motion: Optional[List[Dict[str, Any]]] = None
    reply_tracking: Optional[List[Dict[str, Any]]] = None
    argument_details: Optional[List[Dict[str, Any]]] = None
    any_other_details: Optional[List[Dict[str, Any]]] = None
    decision_details: Optional[List[Dict[str, Any]]] = None
    attachments: List[Dict[str, Any]]
    email: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CaseDetailResponse(CaseResponse):
    proceedings: List[ProceedingResponse] = []


class AttachmentLocation(BaseModel):
    file_name: str
    url: str
