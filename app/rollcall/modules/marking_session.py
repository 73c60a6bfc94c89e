# app/rollcall/modules/marking_session.py

from typing import Dict, Iterable, Mapping, Tuple

from ..models.domain_models import AttendanceStatus, StudentRecord
from .errors import CorruptDraft, DuplicateStudent, EmptyRoster, NoCurrentStudent, NothingToUndo


def _freeze_roster(roster: Iterable[StudentRecord]) -> Tuple[StudentRecord, ...]:
    frozen = tuple(roster)
    seen = set()
    for student in frozen:
        if student.id in seen:
            raise DuplicateStudent(student.id)
        seen.add(student.id)
    return frozen


class MarkingSession:
    """
    The swipe-through state machine.

    The roster is fixed at construction. ``cursor`` points at the next student to
    mark; it only moves forward through ``mark`` and only backward through
    ``undo``, one step at a time, so ``undo`` always reverses exactly the last
    ``mark``. The session is complete once ``cursor == len(roster)``: ``mark``
    then raises ``NoCurrentStudent`` while ``undo`` is still accepted and returns
    the session to the active state.

    Not thread-safe; callers serialise access.
    """

    def __init__(self, roster: Iterable[StudentRecord], class_identifier: str = ""):
        self._roster = _freeze_roster(roster)
        if not self._roster:
            raise EmptyRoster(class_identifier)
        self._cursor = 0
        self._attendance: Dict[str, AttendanceStatus] = {
            student.id: AttendanceStatus.UNMARKED for student in self._roster
        }

    @classmethod
    def restore(cls, roster: Iterable[StudentRecord], cursor: int,
                attendance: Mapping[str, AttendanceStatus]) -> "MarkingSession":
        """Rebuilds a session from stored state, rejecting state that breaks an invariant."""
        roster = tuple(roster)
        if not roster:
            raise CorruptDraft("Stored roster is empty.")
        session = cls(roster)
        n = len(session._roster)
        if not 0 <= cursor <= n:
            raise CorruptDraft(f"Cursor {cursor} is outside the roster (0..{n}).")
        if set(attendance) != set(session._attendance):
            raise CorruptDraft("Attendance keys do not match the roster.")
        for index, student in enumerate(session._roster):
            status = AttendanceStatus(attendance[student.id])
            if (status is AttendanceStatus.UNMARKED) != (index >= cursor):
                raise CorruptDraft(f"Student '{student.id}' has status '{status.value}' at index {index} with cursor {cursor}.")
            session._attendance[student.id] = status
        session._cursor = cursor
        return session

    @property
    def roster(self) -> Tuple[StudentRecord, ...]:
        return self._roster

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def is_complete(self) -> bool:
        return self._cursor == len(self._roster)

    def current_student(self) -> StudentRecord:
        if self.is_complete:
            raise NoCurrentStudent()
        return self._roster[self._cursor]

    def mark(self, present: bool) -> StudentRecord:
        """Marks the current student and advances. Returns the student that was marked."""
        student = self.current_student()
        self._attendance[student.id] = AttendanceStatus.PRESENT if present else AttendanceStatus.ABSENT
        self._cursor += 1
        return student

    def undo(self) -> StudentRecord:
        """Steps back one student and resets it to unmarked. Returns that student."""
        if self._cursor == 0:
            raise NothingToUndo()
        self._cursor -= 1
        student = self._roster[self._cursor]
        self._attendance[student.id] = AttendanceStatus.UNMARKED
        return student

    def progress(self) -> Tuple[int, int]:
        return self._cursor, len(self._roster)

    def snapshot(self) -> Dict[str, AttendanceStatus]:
        return dict(self._attendance)
