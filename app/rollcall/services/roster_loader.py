from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from ..models.domain_models import StudentRecord
from ..modules.errors import ClassNotFound, DuplicateStudent, EmptyRoster, RosterUnavailable


class RosterSource(Protocol):
    """Anything that can return the raw student rows of a class table."""
    async def fetch_students(self, table_name: str) -> List[Dict[str, Any]]:
        ...


def roll_number_sort_key(student: StudentRecord) -> Tuple[int, Any, str]:
    """Numeric roll numbers sort numerically and come first; ties fall back to the id."""
    roll = student.roll_number.strip()
    if roll.isdecimal():
        return (0, int(roll), student.id)
    return (1, roll, student.id)


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _row_to_student(row: Mapping[str, Any]) -> StudentRecord:
    try:
        return StudentRecord(
            id=str(row["id"]),
            roll_number=str(row["roll_no"]),
            name=str(row["name"]),
            register_number=_optional_str(row.get("register_no")),
        )
    except KeyError as e:
        raise RosterUnavailable(f"Student row is missing the {e.args[0]!r} column.") from e


class RosterLoader:
    """
    Resolves a class identifier into the ordered, immutable roster of a marking session.
    """
    def __init__(self, source: RosterSource, class_tables: Mapping[str, str]):
        self._source = source
        self._class_tables = dict(class_tables)

    @property
    def class_identifiers(self) -> List[str]:
        return list(self._class_tables)

    def table_for(self, class_identifier: str) -> str:
        table_name = self._class_tables.get(class_identifier)
        if table_name is None:
            raise ClassNotFound(class_identifier)
        return table_name

    async def load(self, class_identifier: str) -> Tuple[StudentRecord, ...]:
        table_name = self.table_for(class_identifier)
        try:
            rows = await self._source.fetch_students(table_name)
        except ClassNotFound as e:
            raise ClassNotFound(class_identifier, e.reason) from e

        students = [_row_to_student(row) for row in rows or []]
        if not students:
            raise EmptyRoster(class_identifier)

        seen = set()
        for student in students:
            if student.id in seen:
                raise DuplicateStudent(student.id)
            seen.add(student.id)

        return tuple(sorted(students, key=roll_number_sort_key))
