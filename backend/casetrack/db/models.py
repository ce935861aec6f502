"""
SQLAlchemy ORM Models
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    TIMESTAMP,
    Uuid,
    false,
    true,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy import Index

from casetrack.db.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# ============================================================================
# Enums
# ============================================================================

class UserRole(str, enum.Enum):
    """Caller roles"""
    user = "user"
    admin = "admin"

class WritType(str, enum.Enum):
    BAIL = "BAIL"
    QUASHING = "QUASHING"
    DIRECTION = "DIRECTION"
    SUSPENSION_OF_SENTENCE = "SUSPENSION_OF_SENTENCE"
    PAROLE = "PAROLE"
    ANY_OTHER = "ANY_OTHER"

class BailSubType(str, enum.Enum):
    ANTICIPATORY = "ANTICIPATORY"
    REGULAR = "REGULAR"

class WritStatus(str, enum.Enum):
    """Case status, set from the outcome of a decision proceeding"""
    ALLOWED = "ALLOWED"
    PENDING = "PENDING"
    DISMISSED = "DISMISSED"
    WITHDRAWN = "WITHDRAWN"
    DIRECTION = "DIRECTION"

class ProceedingType(str, enum.Enum):
    NOTICE_OF_MOTION = "NOTICE_OF_MOTION"
    TO_FILE_REPLY = "TO_FILE_REPLY"
    ARGUMENT = "ARGUMENT"
    ANY_OTHER = "ANY_OTHER"
    DECISION = "DECISION"

class AttendanceMode(str, enum.Enum):
    BY_FORMAT = "BY_FORMAT"
    BY_PERSON = "BY_PERSON"

class AuditAction(str, enum.Enum):
    CREATE_CASE = "CREATE_CASE"
    UPDATE_CASE = "UPDATE_CASE"
    DELETE_CASE = "DELETE_CASE"
    CREATE_PROCEEDING = "CREATE_PROCEEDING"
    UPDATE_PROCEEDING = "UPDATE_PROCEEDING"
    DELETE_PROCEEDING = "DELETE_PROCEEDING"
    UPLOAD_ATTACHMENT = "UPLOAD_ATTACHMENT"
    OTHER = "OTHER"

class AuditResourceType(str, enum.Enum):
    CASE = "CASE"
    PROCEEDING = "PROCEEDING"
    ATTACHMENT = "ATTACHMENT"
    OTHER = "OTHER"

# Payload column for each proceeding type
PAYLOAD_FIELD_BY_TYPE = {
    ProceedingType.NOTICE_OF_MOTION: "notice_of_motion",
    ProceedingType.TO_FILE_REPLY: "reply_tracking",
    ProceedingType.ARGUMENT: "argument_details",
    ProceedingType.ANY_OTHER: "any_other_details",
    ProceedingType.DECISION: "decision_details",
}

# ============================================================================
# Models
# ============================================================================

class Case(Base):
    """Legal case (FIR / writ) - the aggregate root for proceedings"""
    __tablename__ = "cases"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Identification
    case_number = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    branch_name = Column(String(255), nullable=False, index=True)
    date_of_fir = Column(Date, nullable=False)

    # Writ classification
    writ_number = Column(String(100), nullable=False)
    writ_type = Column(SQLEnum(WritType), nullable=False)
    writ_year = Column(Integer, nullable=False)
    writ_sub_type = Column(SQLEnum(BailSubType), nullable=True)
    writ_type_other = Column(Text, nullable=True)

    # Offence
    under_section = Column(String(255), nullable=False)
    act = Column(String(255), nullable=False)
    sections = Column(JSONType, nullable=False, default=list)
    police_station = Column(String(255), nullable=False)

    # Participants
    investigating_officers = Column(JSONType, nullable=False, default=list)
    petitioner_name = Column(Text, nullable=False)
    petitioner_father_name = Column(Text, nullable=False)
    petitioner_address = Column(Text, nullable=False)
    petitioner_prayer = Column(Text, nullable=False)
    respondents = Column(JSONType, nullable=False, default=list)
    linked_writ_ids = Column(JSONType, nullable=False, default=list)

    # Status - written only by the status propagator
    status = Column(SQLEnum(WritStatus), nullable=False, default=WritStatus.PENDING, index=True)

    # Timestamps
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    proceedings = relationship(
        "Proceeding",
        back_populates="case",
        cascade="all, delete-orphan",
        order_by="Proceeding.sequence",
    )

    __table_args__ = (
        Index("ix_cases_email_created_at", "email", "created_at"),
        Index("ix_cases_branch_date_of_fir", "branch_name", "date_of_fir"),
    )


class Proceeding(Base):
    """A single court event on a case; drafts carry sequence 0"""
    __tablename__ = "proceedings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)

    sequence = Column(Integer, nullable=False)
    type = Column(SQLEnum(ProceedingType), nullable=False, index=True)
    draft = Column(Boolean, nullable=False, default=False, index=True)

    summary = Column(Text, nullable=True)
    details = Column(Text, nullable=True)
    hearing_details = Column(JSONType, nullable=True)

    # Exactly one of these is populated, chosen by `type`. Each holds a list of entries.
    notice_of_motion = Column(JSONType, nullable=True)
    reply_tracking = Column(JSONType, nullable=True)
    argument_details = Column(JSONType, nullable=True)
    any_other_details = Column(JSONType, nullable=True)
    decision_details = Column(JSONType, nullable=True)

    attachments = Column(JSONType, nullable=False, default=list)
    email = Column(String(255), nullable=False, index=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    case = relationship("Case", back_populates="proceedings")

    __table_args__ = (
        Index(
            "uq_proceedings_case_sequence_final",
            "case_id",
            "sequence",
            unique=True,
            postgresql_where=(draft == false()),
            sqlite_where=(draft == false()),
        ),
        Index(
            "uq_proceedings_case_draft",
            "case_id",
            unique=True,
            postgresql_where=(draft == true()),
            sqlite_where=(draft == true()),
        ),
        Index("ix_proceedings_case_created_at", "case_id", "created_at"),
        Index("ix_proceedings_email_created_at", "email", "created_at"),
    )

    @property
    def payload(self):
        return getattr(self, PAYLOAD_FIELD_BY_TYPE[ProceedingType(self.type)])


class AuditLog(Base):
    """Compliance trail of mutations"""
    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    action = Column(SQLEnum(AuditAction), nullable=False, index=True)
    user_email = Column(String(255), nullable=False, index=True)
    user_id = Column(String(255), nullable=True)
    resource_type = Column(SQLEnum(AuditResourceType), nullable=False, index=True)
    resource_id = Column(String(255), nullable=True)
    details = Column(JSONType, nullable=False, default=dict)
    ip_address = Column(String(64), nullable=True)
    timestamp = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index("ix_audit_logs_user_email_timestamp", "user_email", "timestamp"),
        Index("ix_audit_logs_resource", "resource_type", "resource_id"),
        Index("ix_audit_logs_action_timestamp", "action", "timestamp"),
    )
