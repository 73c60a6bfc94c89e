# app/rollcall/modules/review_buffer.py

from typing import Iterable, List, Mapping, NamedTuple, Tuple

from ..models.domain_models import AttendanceEntry, AttendanceStatus, StudentRecord
from .errors import DuplicateStudent, IncompleteSession, StudentNotFound


class ReviewCounts(NamedTuple):
    present: int
    absent: int
    total: int


class ReviewBuffer:
    """
    Editable staging copy of a completed marking session.

    Built from a snapshot, so toggling entries here never touches the session the
    snapshot came from. Entries keep roster order no matter how often they are
    toggled.
    """

    def __init__(self, entries: Iterable[Tuple[StudentRecord, bool]]):
        self._students: List[StudentRecord] = []
        self._presence = {}
        for student, is_present in entries:
            if student.id in self._presence:
                raise DuplicateStudent(student.id)
            self._students.append(student)
            self._presence[student.id] = bool(is_present)

    @classmethod
    def from_snapshot(cls, roster: Iterable[StudentRecord],
                      attendance: Mapping[str, AttendanceStatus]) -> "ReviewBuffer":
        """
        Resolves every student to an explicit boolean. Fails with IncompleteSession
        if any student is still unmarked (or missing from the snapshot); unmarked
        students are never defaulted to absent.
        """
        roster = tuple(roster)
        unmarked = [
            s.id for s in roster
            if attendance.get(s.id, AttendanceStatus.UNMARKED) == AttendanceStatus.UNMARKED
        ]
        if unmarked:
            raise IncompleteSession(unmarked)
        return cls((s, attendance[s.id] == AttendanceStatus.PRESENT) for s in roster)

    @property
    def entries(self) -> Tuple[Tuple[StudentRecord, bool], ...]:
        return tuple((s, self._presence[s.id]) for s in self._students)

    def __len__(self) -> int:
        return len(self._students)

    def is_present(self, student_id: str) -> bool:
        if student_id not in self._presence:
            raise StudentNotFound(student_id)
        return self._presence[student_id]

    def toggle(self, student_id: str) -> bool:
        """Flips one student's status and returns the new value."""
        new_value = not self.is_present(student_id)
        self._presence[student_id] = new_value
        return new_value

    def counts(self) -> ReviewCounts:
        present = sum(1 for v in self._presence.values() if v)
        total = len(self._students)
        return ReviewCounts(present=present, absent=total - present, total=total)

    def to_records(self) -> Tuple[AttendanceEntry, ...]:
        return tuple(
            AttendanceEntry(
                student_id=s.id,
                roll_number=s.roll_number,
                name=s.name,
                register_number=s.register_number,
                is_present=self._presence[s.id],
            )
            for s in self._students
        )
