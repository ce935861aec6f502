"""
Proceeding payload validation — CaseTrack
=========================================
A proceeding is a tagged union on ``type``. Each variant accepts exactly one
detail payload; a NOTICE_OF_MOTION entry is itself a union on
``attendance_mode``. Payload fields may be sent as one object or as a
non-empty list of objects and are always stored as a list.

The union is composed once at import time into a single ``TypeAdapter``.

Usage:
    payload = validate_proceeding(body)          # raises PayloadValidationError
    values = to_record_values(payload)           # column values for Proceeding
"""
from __future__ import annotations

import uuid
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from casetrack.db.models import PAYLOAD_FIELD_BY_TYPE, AttendanceMode, ProceedingType, WritStatus
from casetrack.utils.exceptions import PayloadValidationError
from casetrack.utils.validators import (
    NonBlankStr,
    OptionalDate,
    OptionalStr,
    RequiredDate,
    format_validation_errors,
)

_TAG_SEGMENTS = {t.value for t in ProceedingType} | {m.value for m in AttendanceMode}


class _StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


def as_entry_list(value: Any) -> Any:
    if isinstance(value, (dict, BaseModel)):
        return [value]
    return value


# ============================================================================
# Shared shapes
# ============================================================================

class PersonDetails(_StrictModel):
    name: NonBlankStr
    rank: OptionalStr = None
    mobile: OptionalStr = None


class HearingDetails(_StrictModel):
    date_of_hearing: RequiredDate
    judge_name: Optional[str] = ""
    court_number: Optional[str] = ""

    @field_validator("judge_name", "court_number", mode="after")
    @classmethod
    def none_to_empty(cls, v: Optional[str]) -> str:
        return v or ""


class AttachmentRef(_StrictModel):
    file_name: NonBlankStr
    file_url: NonBlankStr


# ============================================================================
# Detail entries, one shape per proceeding type
# ============================================================================

class ByFormatNotice(_StrictModel):
    attendance_mode: Literal["BY_FORMAT"]
    format_submitted: bool
    format_filled_by: PersonDetails
    aag_dg_who_will_appear: NonBlankStr
    details: NonBlankStr
    attachment: OptionalStr = None


class ByPersonNotice(_StrictModel):
    attendance_mode: Literal["BY_PERSON"]
    appearing_ag_details: NonBlankStr
    attending_officer_details: NonBlankStr
    investigating_officer: PersonDetails
    details: NonBlankStr
    attachment: OptionalStr = None


NoticeOfMotionEntry = Annotated[
    Union[ByFormatNotice, ByPersonNotice],
    Field(discriminator="attendance_mode"),
]


class ReplyTrackingEntry(_StrictModel):
    officer_deputed_for_reply: OptionalStr = None
    vetting_officer_details: OptionalStr = None
    reply_filed: Optional[bool] = None
    reply_filing_date: OptionalDate = None
    advocate_general_name: OptionalStr = None
    reply_scrutinized_by_hc: Optional[bool] = None
    investigating_officer_name: OptionalStr = None
    proceeding_in_court: OptionalStr = None
    order_in_short: OptionalStr = None
    next_actionable_point: OptionalStr = None
    next_date_of_hearing_reply: OptionalDate = None
    attachment: OptionalStr = None

    @model_validator(mode="after")
    def filing_date_when_filed(self) -> "ReplyTrackingEntry":
        if self.reply_filed and self.reply_filing_date is None:
            raise ValueError("reply_filing_date is required when reply_filed is true")
        return self


class ArgumentEntry(_StrictModel):
    argument_by: NonBlankStr
    argument_with: NonBlankStr
    next_date_of_hearing: RequiredDate
    attachment: OptionalStr = None


class AnyOtherEntry(_StrictModel):
    attending_officer_details: NonBlankStr
    officer_details: PersonDetails
    appearing_ag_details: NonBlankStr
    details: NonBlankStr
    attachment: OptionalStr = None


class DecisionEntry(_StrictModel):
    writ_status: WritStatus
    remarks: OptionalStr = None
    decision_by_court: OptionalStr = None
    date_of_decision: OptionalDate = None
    attachment: OptionalStr = None


NoticeOfMotionEntries = Annotated[List[NoticeOfMotionEntry], BeforeValidator(as_entry_list), Field(min_length=1)]
ReplyTrackingEntries = Annotated[List[ReplyTrackingEntry], BeforeValidator(as_entry_list), Field(min_length=1)]
ArgumentEntries = Annotated[List[ArgumentEntry], BeforeValidator(as_entry_list), Field(min_length=1)]
AnyOtherEntries = Annotated[List[AnyOtherEntry], BeforeValidator(as_entry_list), Field(min_length=1)]
DecisionEntries = Annotated[List[DecisionEntry], BeforeValidator(as_entry_list), Field(min_length=1)]


# ============================================================================
# Proceeding variants
# ============================================================================

class _ProceedingBase(_StrictModel):
    case_id: uuid.UUID
    draft: bool = False
    summary: OptionalStr = None
    details: OptionalStr = None
    hearing_details: Optional[HearingDetails] = None
    attachments: List[AttachmentRef] = Field(default_factory=list)


class NoticeOfMotionProceeding(_ProceedingBase):
    type: Literal["NOTICE_OF_MOTION"]
    notice_of_motion: Optional[NoticeOfMotionEntries] = None


class ToFileReplyProceeding(_ProceedingBase):
    type: Literal["TO_FILE_REPLY"]
    reply_tracking: Optional[ReplyTrackingEntries] = None


class ArgumentProceeding(_ProceedingBase):
    type: Literal["ARGUMENT"]
    argument_details: Optional[ArgumentEntries] = None


class AnyOtherProceeding(_ProceedingBase):
    type: Literal["ANY_OTHER"]
    any_other_details: Optional[AnyOtherEntries] = None


class DecisionProceeding(_ProceedingBase):
    type: Literal["DECISION"]
    decision_details: Optional[DecisionEntries] = None


ProceedingPayload = Annotated[
    Union[
        NoticeOfMotionProceeding,
        ToFileReplyProceeding,
        ArgumentProceeding,
        AnyOtherProceeding,
        DecisionProceeding,
    ],
    Field(discriminator="type"),
]

PROCEEDING_ADAPTER: TypeAdapter = TypeAdapter(ProceedingPayload)


def _is_draft(data: Any, payload: Optional[_ProceedingBase]) -> bool:
    if payload is not None:
        return payload.draft
    if isinstance(data, dict):
        raw = data.get("draft")
        if isinstance(raw, str):
            return raw.strip().lower() in ("true", "1", "yes", "on")
        return bool(raw)
    return False


def validate_proceeding(data: Any) -> _ProceedingBase:
    """
    Validate a candidate proceeding. Every violated field contributes one
    message; nothing short-circuits. Hearing details are mandatory unless
    the proceeding is a draft.
    """
    errors: List[str] = []
    payload: Optional[_ProceedingBase] = None

    try:
        payload = PROCEEDING_ADAPTER.validate_python(data)
    except ValidationError as exc:
        errors.extend(format_validation_errors(exc, skip_segments=_TAG_SEGMENTS))

    hearing_missing = (
        payload.hearing_details is None
        if payload is not None
        else isinstance(data, dict) and data.get("hearing_details") is None
    )
    if hearing_missing and not _is_draft(data, payload):
        if not any(e.startswith("hearing_details") for e in errors):
            errors.append("hearing_details: Field required for a finalized proceeding")

    if errors:
        raise PayloadValidationError(errors)
    return payload


def to_record_values(payload: _ProceedingBase) -> Dict[str, Any]:
    """Column values for a Proceeding row, JSON-ready."""
    proceeding_type = ProceedingType(payload.type)
    field = PAYLOAD_FIELD_BY_TYPE[proceeding_type]
    entries = getattr(payload, field)

    values: Dict[str, Any] = {
        "type": proceeding_type,
        "draft": payload.draft,
        "summary": payload.summary,
        "details": payload.details,
        "hearing_details": (
            payload.hearing_details.model_dump(mode="json") if payload.hearing_details else None
        ),
        "attachments": [a.model_dump(mode="json") for a in payload.attachments],
    }
    for other in PAYLOAD_FIELD_BY_TYPE.values():
        values[other] = None
    if entries is not None:
        values[field] = [e.model_dump(mode="json", exclude_none=True) for e in entries]
    return values
