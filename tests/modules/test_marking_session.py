# tests/modules/test_marking_session.py

import random

import pytest

from app.rollcall.models.domain_models import AttendanceStatus, StudentRecord
from app.rollcall.modules.errors import CorruptDraft, DuplicateStudent, EmptyRoster, NoCurrentStudent, NothingToUndo
from app.rollcall.modules.marking_session import MarkingSession

P, A, U = AttendanceStatus.PRESENT, AttendanceStatus.ABSENT, AttendanceStatus.UNMARKED


@pytest.fixture
def roster():
    return [
        StudentRecord(id="s1", roll_number="1", name="Ada"),
        StudentRecord(id="s2", roll_number="2", name="Grace"),
        StudentRecord(id="s3", roll_number="3", name="Linus", register_number="R3"),
    ]


def assert_invariants(session: MarkingSession):
    snapshot = session.snapshot()
    assert set(snapshot) == {s.id for s in session.roster}
    assert 0 <= session.cursor <= len(session.roster)
    for index, student in enumerate(session.roster):
        assert (snapshot[student.id] == U) == (index >= session.cursor)


def test_new_session_starts_active_and_unmarked(roster):
    session = MarkingSession(roster)

    assert session.progress() == (0, 3)
    assert not session.is_complete
    assert session.current_student().id == "s1"
    assert session.snapshot() == {"s1": U, "s2": U, "s3": U}


def test_empty_roster_is_rejected():
    with pytest.raises(EmptyRoster):
        MarkingSession([], class_identifier="IT-A")


def test_duplicate_ids_are_rejected(roster):
    with pytest.raises(DuplicateStudent):
        MarkingSession(roster + [StudentRecord(id="s1", roll_number="9", name="Copy")])


def test_scenario_mark_undo_remark(roster):
    """Scenario A: mark, mark, undo, re-mark, finish."""
    session = MarkingSession(roster)

    session.mark(True)
    assert session.cursor == 1 and session.snapshot()["s1"] == P

    session.mark(False)
    assert session.cursor == 2 and session.snapshot()["s2"] == A

    undone = session.undo()
    assert undone.id == "s2"
    assert session.cursor == 1 and session.snapshot()["s2"] == U

    session.mark(True)
    assert session.cursor == 2 and session.snapshot()["s2"] == P

    session.mark(True)
    assert session.cursor == 3
    assert session.is_complete
    assert session.snapshot() == {"s1": P, "s2": P, "s3": P}


def test_mark_then_undo_restores_previous_state(roster):
    session = MarkingSession(roster)
    session.mark(False)
    before = (session.cursor, session.snapshot())

    session.mark(True)
    session.undo()

    assert (session.cursor, session.snapshot()) == before


def test_mark_when_complete_fails_and_leaves_state_unchanged(roster):
    session = MarkingSession(roster)
    for _ in roster:
        session.mark(True)
    before = (session.cursor, session.snapshot())

    with pytest.raises(NoCurrentStudent):
        session.mark(False)
    with pytest.raises(NoCurrentStudent):
        session.current_student()

    assert (session.cursor, session.snapshot()) == before


def test_undo_from_complete_returns_to_active(roster):
    session = MarkingSession(roster)
    for _ in roster:
        session.mark(True)

    session.undo()

    assert not session.is_complete
    assert session.current_student().id == "s3"
    assert session.snapshot()["s3"] == U


def test_undo_at_start_fails(roster):
    session = MarkingSession(roster)
    with pytest.raises(NothingToUndo):
        session.undo()
    assert session.progress() == (0, 3)


def test_snapshot_is_a_copy(roster):
    session = MarkingSession(roster)
    snapshot = session.snapshot()
    snapshot["s1"] = P
    snapshot["intruder"] = A

    assert session.snapshot() == {"s1": U, "s2": U, "s3": U}


def test_random_mark_undo_sequences_keep_invariants(roster):
    rng = random.Random(1234)
    session = MarkingSession(roster)

    for _ in range(500):
        previous_cursor = session.cursor
        if rng.random() < 0.6:
            try:
                session.mark(rng.random() < 0.5)
                assert session.cursor == previous_cursor + 1
            except NoCurrentStudent:
                assert previous_cursor == len(roster)
                assert session.cursor == previous_cursor
        else:
            try:
                session.undo()
                assert session.cursor == previous_cursor - 1
            except NothingToUndo:
                assert previous_cursor == 0
                assert session.cursor == previous_cursor
        assert_invariants(session)


# --- Restoring stored state ---

def test_restore_round_trips_a_session(roster):
    session = MarkingSession(roster)
    session.mark(True)
    session.mark(False)

    restored = MarkingSession.restore(roster, session.cursor, session.snapshot())

    assert restored.progress() == session.progress()
    assert restored.snapshot() == session.snapshot()
    assert restored.current_student().id == "s3"


@pytest.mark.parametrize("cursor, attendance", [
    (4, {"s1": P, "s2": P, "s3": P}),
    (1, {"s1": P, "s2": U}),
    (1, {"s1": P, "s2": U, "s3": U, "s4": U}),
    (1, {"s1": U, "s2": U, "s3": U}),
    (1, {"s1": P, "s2": A, "s3": U}),
])
def test_restore_rejects_state_that_breaks_invariants(roster, cursor, attendance):
    with pytest.raises(CorruptDraft):
        MarkingSession.restore(roster, cursor, attendance)


def test_restore_of_an_empty_stored_roster_is_corrupt():
    with pytest.raises(CorruptDraft):
        MarkingSession.restore([], 0, {})
