"""Tests for proceeding sequencing, drafts and finalize."""

import pytest

from casetrack.db.models import Proceeding, ProceedingType
from casetrack.services import proceeding_service, sequencer
from casetrack.services.proceeding_validator import to_record_values, validate_proceeding
from casetrack.utils.exceptions import ConflictError, PayloadValidationError

from conftest import proceeding_payload


def finalized_sequences(db, case):
    rows = (
        db.query(Proceeding.sequence)
        .filter(Proceeding.case_id == case.id, Proceeding.draft == False)  # noqa: E712
        .order_by(Proceeding.sequence)
        .all()
    )
    return [r[0] for r in rows]


def draft_count(db, case):
    return db.query(Proceeding).filter(Proceeding.case_id == case.id, Proceeding.draft == True).count()  # noqa: E712


def test_sequential_creations_are_gapless(db, case, owner):
    for _ in range(5):
        proceeding_service.create_proceeding(db, owner, proceeding_payload(case.id))
    assert finalized_sequences(db, case) == [1, 2, 3, 4, 5]


def test_second_draft_overwrites_first(db, case, owner):
    first = proceeding_service.create_proceeding(
        db, owner, proceeding_payload(case.id, draft=True, summary="first")
    )
    second = proceeding_service.create_proceeding(
        db, owner, proceeding_payload(case.id, draft=True, summary="second")
    )
    assert first.id == second.id
    assert second.sequence == sequencer.DRAFT_SEQUENCE
    assert second.summary == "second"
    assert draft_count(db, case) == 1


def test_draft_may_change_type(db, case, owner):
    proceeding_service.create_proceeding(db, owner, proceeding_payload(case.id, draft=True))
    draft = proceeding_service.create_proceeding(db, owner, proceeding_payload(case.id, "ARGUMENT", draft=True))
    assert draft.type == ProceedingType.ARGUMENT
    assert draft.reply_tracking is None
    assert draft.argument_details[0]["argument_by"] == "AAG"


def test_finalize_discards_draft_and_takes_next_sequence(db, case, owner):
    proceeding_service.create_proceeding(db, owner, proceeding_payload(case.id))
    draft = proceeding_service.create_proceeding(db, owner, proceeding_payload(case.id, draft=True))
    draft_id = draft.id

    final = proceeding_service.create_proceeding(db, owner, proceeding_payload(case.id))

    assert final.sequence == 2
    assert final.id != draft_id
    assert draft_count(db, case) == 0
    assert sequencer.DRAFT_SEQUENCE not in finalized_sequences(db, case)


def test_update_finalizes_draft(db, case, owner):
    draft = proceeding_service.create_proceeding(db, owner, proceeding_payload(case.id, draft=True))
    final = proceeding_service.update_proceeding(db, owner, draft.id, proceeding_payload(case.id))
    assert final.draft is False
    assert final.sequence == 1
    assert draft_count(db, case) == 0


def test_finalized_keeps_sequence_on_update(db, case, owner):
    proceeding_service.create_proceeding(db, owner, proceeding_payload(case.id))
    second = proceeding_service.create_proceeding(db, owner, proceeding_payload(case.id))
    updated = proceeding_service.update_proceeding(
        db, owner, second.id, proceeding_payload(case.id, summary="Reply filed")
    )
    assert updated.id == second.id
    assert updated.sequence == 2
    assert updated.summary == "Reply filed"


def test_finalized_cannot_return_to_draft(db, case, owner):
    final = proceeding_service.create_proceeding(db, owner, proceeding_payload(case.id))
    with pytest.raises(PayloadValidationError) as exc:
        proceeding_service.update_proceeding(db, owner, final.id, proceeding_payload(case.id, draft=True))
    assert any(e.startswith("draft") for e in exc.value.errors)


def test_duplicate_sequence_is_a_conflict(db, case):
    values = to_record_values(validate_proceeding(proceeding_payload(case.id)))
    values = {k: v for k, v in values.items() if k != "draft"}
    db.add(Proceeding(**values, case_id=case.id, email=case.email, draft=False, sequence=1))
    db.flush()

    db.add(Proceeding(**values, case_id=case.id, email=case.email, draft=False, sequence=1))
    with pytest.raises(ConflictError):
        sequencer._flush(db, case.id)


def test_conflicts_are_retried(db, case, owner, monkeypatch):
    calls = {"n": 0}
    original = sequencer.place

    def flaky_place(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise ConflictError("Proceeding sequence conflict, retry the request")
        return original(*args, **kwargs)

    monkeypatch.setattr(sequencer, "place", flaky_place)
    proceeding = proceeding_service.create_proceeding(db, owner, proceeding_payload(case.id))
    assert calls["n"] == 2
    assert proceeding.sequence == 1


def test_conflict_surfaces_after_retries(db, case, owner, monkeypatch):
    def always_conflict(*args, **kwargs):
        raise ConflictError("Proceeding sequence conflict, retry the request")

    monkeypatch.setattr(sequencer, "place", always_conflict)
    with pytest.raises(ConflictError):
        proceeding_service.create_proceeding(db, owner, proceeding_payload(case.id))
