# app/rollcall/models/domain_models.py

from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from enum import Enum
from typing import Optional, Tuple


class AttendanceStatus(str, Enum):
    """Per-student marking status inside a marking session."""
    UNMARKED = "unmarked"
    PRESENT = "present"
    ABSENT = "absent"


class StudentRecord(BaseModel):
    """
    One student of a class roster, mapping to a row of the class table
    (id, name, roll_no, register_no).
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique, stable student identifier")
    roll_number: str = Field(..., description="Ordering key, unique within a class")
    name: str
    register_number: Optional[str] = None


class Teacher(BaseModel):
    """The authenticated teacher, mapping to the 'teachers' table."""
    teacher_id: str = Field(..., description="Primary key of the teachers table")
    auth_user_id: str = Field(..., description="Supabase Auth user id")
    name: str
    email: str = ""


class SessionMetadata(BaseModel):
    """Everything a commit needs besides the attendance itself."""
    model_config = ConfigDict(frozen=True)

    class_identifier: str
    table_name: str
    hour: int = Field(..., ge=1)
    date: date
    teacher_id: str


class AttendanceEntry(BaseModel):
    """A single commit-ready attendance line."""
    model_config = ConfigDict(frozen=True)

    student_id: str
    roll_number: str
    name: str
    register_number: Optional[str] = None
    is_present: bool


class SessionRecord(BaseModel):
    """
    The one persistence request built per commit. Maps to an 'attendance_sessions'
    row plus its 'attendance_records' rows.
    """
    model_config = ConfigDict(frozen=True)

    class_identifier: str
    table_name: str
    hour: int
    date: date
    teacher_id: str
    marked_at: datetime
    records: Tuple[AttendanceEntry, ...]

    @property
    def present_count(self) -> int:
        return sum(1 for r in self.records if r.is_present)

    @property
    def absent_count(self) -> int:
        return len(self.records) - self.present_count


class StorageLocation(str, Enum):
    DATABASE = "database"
    LEDGER = "ledger"


class PersistOutcome(BaseModel):
    """What the persistence sink reports back: ok plus location, or an error."""
    ok: bool
    location: Optional[StorageLocation] = None
    error: Optional[str] = None


class CommitResult(BaseModel):
    record: SessionRecord
    location: StorageLocation
