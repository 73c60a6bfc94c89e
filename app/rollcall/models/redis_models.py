from pydantic import BaseModel, Field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID
from .domain_models import AttendanceStatus, StudentRecord, Teacher


class UserSessionRedis(BaseModel):
    """
    Represents a teacher's login session stored in Redis.
    """
    user_data: Teacher = Field(..., description="The teacher profile resolved at login.")
    session_id: UUID = Field(..., description="Unique ID for this specific session.")
    session_start_time: datetime = Field(..., description="The time this session began.")
    session_end_time: datetime = Field(..., description="The time this session will expire.")
    remember_me: bool = False


class DraftStage(str, Enum):
    MARKING = "marking"
    REVIEW = "review"


class ReviewEntryRedis(BaseModel):
    student_id: str
    is_present: bool


class MarkingDraftRedis(BaseModel):
    """
    An in-progress attendance session of one teacher. Holds the marking state
    machine (roster, cursor, attendance) and, once handed off, the review entries.
    A teacher has at most one draft.
    """
    draft_id: UUID
    teacher_id: str
    class_identifier: str
    table_name: str
    hour: int
    date: date
    started_at: datetime
    stage: DraftStage = DraftStage.MARKING

    roster: List[StudentRecord]
    cursor: int = 0
    attendance: Dict[str, AttendanceStatus]

    review: Optional[List[ReviewEntryRedis]] = None
