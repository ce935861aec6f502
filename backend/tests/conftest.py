import os

# settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("ATTACHMENT_STORAGE", "local")
os.environ.setdefault("AUDIT_BACKEND", "database")
os.environ.setdefault("DEBUG", "false")

import copy

import pytest
from fastapi.testclient import TestClient

from casetrack.core.security import create_access_token
from casetrack.db import models  # noqa: F401
from casetrack.db.database import Base, SessionLocal, engine, get_db
from casetrack.db.models import UserRole
from casetrack.main import app
from casetrack.services import case_service
from casetrack.services.access import Caller
from casetrack.services.attachment_service import AttachmentService, get_attachment_service

OWNER = "owner@police.gov.in"
OTHER = "other@police.gov.in"
ADMIN = "admin@police.gov.in"
BRANCH = "Central"

CASE_PAYLOAD = {
    "case_number": "FIR-101/2024",
    "branch_name": BRANCH,
    "date_of_fir": "2024-01-15",
    "writ_number": "WP-5001",
    "writ_type": "BAIL",
    "writ_year": 2024,
    "writ_sub_type": "REGULAR",
    "under_section": "420",
    "act": "IPC",
    "police_station": "Kotwali",
    "investigating_officers": [
        {"name": "R. Sharma", "rank": "SI", "posting": "Kotwali", "contact": 9876543210}
    ],
    "petitioner_name": "Mohan Lal",
    "petitioner_father_name": "Ram Lal",
    "petitioner_address": "12 Civil Lines",
    "petitioner_prayer": "Grant of regular bail",
    "respondents": [{"name": "State of Punjab", "designation": "Respondent No. 1"}],
}

HEARING = {"date_of_hearing": "2024-03-01", "judge_name": "Hon. Justice Rao", "court_number": "12"}


def case_payload(**overrides):
    data = copy.deepcopy(CASE_PAYLOAD)
    data.update(overrides)
    return data


def proceeding_payload(case_id, type_="TO_FILE_REPLY", draft=False, **overrides):
    data = {
        "case_id": str(case_id),
        "type": type_,
        "draft": draft,
        "summary": "Listed for reply",
        "hearing_details": dict(HEARING),
    }
    if type_ == "TO_FILE_REPLY":
        data["reply_tracking"] = [{"officer_deputed_for_reply": "Inspector Gill", "reply_filed": False}]
    elif type_ == "DECISION":
        data["decision_details"] = [{"writ_status": "ALLOWED", "remarks": "Bail granted"}]
    elif type_ == "ARGUMENT":
        data["argument_details"] = [
            {"argument_by": "AAG", "argument_with": "Counsel", "next_date_of_hearing": "2024-04-01"}
        ]
    elif type_ == "NOTICE_OF_MOTION":
        data["notice_of_motion"] = [{
            "attendance_mode": "BY_FORMAT",
            "format_submitted": True,
            "format_filled_by": {"name": "ASI Kaur", "rank": "ASI"},
            "aag_dg_who_will_appear": "AAG Mehta",
            "details": "Format sent to AG office",
        }]
    data.update(overrides)
    return data


def auth_headers(email=OWNER, role="user", branch=BRANCH):
    return {"Authorization": f"Bearer {create_access_token(email, role=role, branch=branch)}"}


@pytest.fixture
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(tables):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def store(tmp_path):
    return AttachmentService(storage="local", local_dir=str(tmp_path / "attachments"))


@pytest.fixture
def client(db, store):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_attachment_service] = lambda: store
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def owner():
    return Caller(email=OWNER, role=UserRole.user, branch=BRANCH)


@pytest.fixture
def stranger():
    return Caller(email=OTHER, role=UserRole.user, branch="North")


@pytest.fixture
def admin():
    return Caller(email=ADMIN, role=UserRole.admin)


@pytest.fixture
def case(db, owner):
    return case_service.create_case(db, owner, case_payload())
