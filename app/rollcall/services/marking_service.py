import asyncio
import logging
import weakref
from datetime import date, datetime, timezone
from typing import Callable, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel

from ..db.redis_client import RedisClient
from ..models.domain_models import CommitResult, SessionMetadata, StudentRecord, Teacher
from ..models.redis_models import DraftStage, MarkingDraftRedis, ReviewEntryRedis
from ..modules.csv_export import attendance_to_csv
from ..modules.errors import (
    CommitRejected, InvalidHour, NoMarkingSession, ReviewNotStarted, RollcallError,
    SessionAlreadyStarted, SessionComplete,
)
from ..modules.marking_session import MarkingSession
from ..modules.review_buffer import ReviewBuffer
from .roster_loader import RosterLoader
from .session_committer import SessionCommitter

logger = logging.getLogger(__name__)


class ServiceError(RollcallError):
    """The draft store failed underneath the workflow."""
    pass


# --- Views returned to the API layer ---

class ClassOptions(BaseModel):
    classes: List[str]
    hours: List[int]

class MarkingStatus(BaseModel):
    draft_id: UUID
    class_identifier: str
    hour: int
    date: date
    stage: DraftStage
    marked: int
    total: int
    is_complete: bool
    current_student: Optional[StudentRecord] = None
    last_changed: Optional[StudentRecord] = None

class ReviewEntryView(BaseModel):
    student: StudentRecord
    is_present: bool

class ReviewView(BaseModel):
    draft_id: UUID
    class_identifier: str
    hour: int
    date: date
    entries: List[ReviewEntryView]
    present_count: int
    absent_count: int
    total: int


class TeacherLocks:
    """
    One asyncio.Lock per teacher, so a teacher's draft operations apply in call order.
    A lock lives only while some operation holds or waits on it.
    """
    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def for_teacher(self, teacher_id: str) -> asyncio.Lock:
        lock = self._locks.get(teacher_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[teacher_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MarkingService:
    """
    Drives a teacher's attendance draft from roster load to commit.

    Each teacher has at most one draft, kept in Redis between requests. Every
    operation runs under that teacher's lock, rebuilds the state machine from the
    draft, applies one step and writes the draft back. A failed step writes
    nothing, so the stored draft is always the last consistent state.
    """
    def __init__(self, draft_store: RedisClient, roster_loader: RosterLoader, committer: SessionCommitter,
                 locks: TeacherLocks, hours_per_day: int = 6, draft_ttl_seconds: int = 6 * 3600,
                 today: Callable[[], date] = date.today):
        self.draft_store = draft_store
        self.roster_loader = roster_loader
        self.committer = committer
        self.locks = locks
        self.hours_per_day = hours_per_day
        self.draft_ttl_seconds = draft_ttl_seconds
        self._today = today

    # --- Draft store helpers ---

    async def _get_draft(self, teacher_id: str) -> Optional[MarkingDraftRedis]:
        try:
            return await self.draft_store.get_marking_draft(teacher_id)
        except Exception as e:
            logger.error(f"Error reading the marking draft of teacher '{teacher_id}'.", exc_info=True)
            raise ServiceError("A server error occurred while reading the attendance draft.") from e

    async def _require_draft(self, teacher_id: str) -> MarkingDraftRedis:
        draft = await self._get_draft(teacher_id)
        if draft is None:
            raise NoMarkingSession("You have no attendance session in progress.")
        return draft

    async def _save_draft(self, draft: MarkingDraftRedis):
        try:
            await self.draft_store.save_marking_draft(draft, ttl=self.draft_ttl_seconds)
        except Exception as e:
            logger.error(f"Error saving marking draft {draft.draft_id}.", exc_info=True)
            raise ServiceError("A server error occurred while saving the attendance draft.") from e

    async def _delete_draft(self, teacher_id: str) -> int:
        try:
            return await self.draft_store.delete_marking_draft(teacher_id)
        except Exception as e:
            logger.error(f"Error deleting the marking draft of teacher '{teacher_id}'.", exc_info=True)
            raise ServiceError("A server error occurred while deleting the attendance draft.") from e

    # --- State rebuilding ---

    @staticmethod
    def _session_of(draft: MarkingDraftRedis) -> MarkingSession:
        return MarkingSession.restore(draft.roster, draft.cursor, draft.attendance)

    @staticmethod
    def _buffer_of(draft: MarkingDraftRedis) -> ReviewBuffer:
        if draft.stage != DraftStage.REVIEW or draft.review is None:
            raise ReviewNotStarted("Finish marking and open the preview first.")
        presence = {entry.student_id: entry.is_present for entry in draft.review}
        return ReviewBuffer((student, presence[student.id]) for student in draft.roster)

    @staticmethod
    def _require_marking(draft: MarkingDraftRedis):
        if draft.stage != DraftStage.MARKING:
            raise SessionComplete("Marking is finished for this session; edit the preview instead.")

    @staticmethod
    def _status(draft: MarkingDraftRedis, session: MarkingSession, last_changed: Optional[StudentRecord] = None) -> MarkingStatus:
        marked, total = session.progress()
        return MarkingStatus(
            draft_id=draft.draft_id,
            class_identifier=draft.class_identifier,
            hour=draft.hour,
            date=draft.date,
            stage=draft.stage,
            marked=marked,
            total=total,
            is_complete=session.is_complete,
            current_student=None if session.is_complete else session.current_student(),
            last_changed=last_changed,
        )

    @staticmethod
    def _review_view(draft: MarkingDraftRedis, buffer: ReviewBuffer) -> ReviewView:
        counts = buffer.counts()
        return ReviewView(
            draft_id=draft.draft_id,
            class_identifier=draft.class_identifier,
            hour=draft.hour,
            date=draft.date,
            entries=[ReviewEntryView(student=s, is_present=p) for s, p in buffer.entries],
            present_count=counts.present,
            absent_count=counts.absent,
            total=counts.total,
        )

    # --- Operations ---

    def list_classes(self) -> ClassOptions:
        return ClassOptions(classes=self.roster_loader.class_identifiers, hours=list(range(1, self.hours_per_day + 1)))

    async def start(self, teacher: Teacher, class_identifier: str, hour: int, on_date: Optional[date] = None) -> MarkingStatus:
        if not 1 <= hour <= self.hours_per_day:
            raise InvalidHour(f"Hour must be between 1 and {self.hours_per_day}.")

        async with self.locks.for_teacher(teacher.teacher_id):
            if await self._get_draft(teacher.teacher_id) is not None:
                logger.warning(f"Teacher '{teacher.teacher_id}' tried to start marking while a draft is in progress.")
                raise SessionAlreadyStarted("You already have an attendance session in progress. Finish or abandon it first.")

            roster = await self.roster_loader.load(class_identifier)
            session = MarkingSession(roster, class_identifier)
            draft = MarkingDraftRedis(
                draft_id=uuid4(),
                teacher_id=teacher.teacher_id,
                class_identifier=class_identifier,
                table_name=self.roster_loader.table_for(class_identifier),
                hour=hour,
                date=on_date or self._today(),
                started_at=_utcnow(),
                roster=list(session.roster),
                cursor=session.cursor,
                attendance=session.snapshot(),
            )
            await self._save_draft(draft)
            logger.info(f"Draft {draft.draft_id} started: {class_identifier} hour {hour}, {len(roster)} students.")
            return self._status(draft, session)

    async def status(self, teacher: Teacher) -> MarkingStatus:
        async with self.locks.for_teacher(teacher.teacher_id):
            draft = await self._require_draft(teacher.teacher_id)
            return self._status(draft, self._session_of(draft))

    async def mark(self, teacher: Teacher, present: bool) -> MarkingStatus:
        async with self.locks.for_teacher(teacher.teacher_id):
            draft = await self._require_draft(teacher.teacher_id)
            self._require_marking(draft)
            session = self._session_of(draft)
            student = session.mark(present)
            draft.cursor = session.cursor
            draft.attendance = session.snapshot()
            await self._save_draft(draft)
            return self._status(draft, session, last_changed=student)

    async def undo(self, teacher: Teacher) -> MarkingStatus:
        async with self.locks.for_teacher(teacher.teacher_id):
            draft = await self._require_draft(teacher.teacher_id)
            self._require_marking(draft)
            session = self._session_of(draft)
            student = session.undo()
            draft.cursor = session.cursor
            draft.attendance = session.snapshot()
            await self._save_draft(draft)
            return self._status(draft, session, last_changed=student)

    async def abandon(self, teacher: Teacher):
        async with self.locks.for_teacher(teacher.teacher_id):
            if not await self._delete_draft(teacher.teacher_id):
                raise NoMarkingSession("You have no attendance session in progress.")
            logger.info(f"Teacher '{teacher.teacher_id}' abandoned their attendance draft.")

    async def preview(self, teacher: Teacher) -> ReviewView:
        """Hands the finished marking over to an editable review. Calling it again returns the same review."""
        async with self.locks.for_teacher(teacher.teacher_id):
            draft = await self._require_draft(teacher.teacher_id)
            if draft.stage == DraftStage.REVIEW:
                return self._review_view(draft, self._buffer_of(draft))

            session = self._session_of(draft)
            buffer = ReviewBuffer.from_snapshot(session.roster, session.snapshot())
            draft.stage = DraftStage.REVIEW
            draft.review = [ReviewEntryRedis(student_id=s.id, is_present=p) for s, p in buffer.entries]
            await self._save_draft(draft)
            logger.info(f"Draft {draft.draft_id} handed off to review.")
            return self._review_view(draft, buffer)

    async def review(self, teacher: Teacher) -> ReviewView:
        async with self.locks.for_teacher(teacher.teacher_id):
            draft = await self._require_draft(teacher.teacher_id)
            return self._review_view(draft, self._buffer_of(draft))

    async def toggle(self, teacher: Teacher, student_id: str) -> ReviewView:
        async with self.locks.for_teacher(teacher.teacher_id):
            draft = await self._require_draft(teacher.teacher_id)
            buffer = self._buffer_of(draft)
            buffer.toggle(student_id)
            draft.review = [ReviewEntryRedis(student_id=s.id, is_present=p) for s, p in buffer.entries]
            await self._save_draft(draft)
            return self._review_view(draft, buffer)

    async def export_csv(self, teacher: Teacher) -> str:
        async with self.locks.for_teacher(teacher.teacher_id):
            draft = await self._require_draft(teacher.teacher_id)
            return attendance_to_csv(self._buffer_of(draft).to_records())

    async def commit(self, teacher: Teacher) -> CommitResult:
        async with self.locks.for_teacher(teacher.teacher_id):
            draft = await self._require_draft(teacher.teacher_id)
            buffer = self._buffer_of(draft)
            metadata = SessionMetadata(
                class_identifier=draft.class_identifier,
                table_name=draft.table_name,
                hour=draft.hour,
                date=draft.date,
                teacher_id=teacher.teacher_id,
            )
            try:
                result = await self.committer.commit(buffer, metadata)
            except CommitRejected as e:
                logger.warning(f"Commit of draft {draft.draft_id} rejected, draft kept for retry: {e.reason}")
                raise

            logger.info(f"Draft {draft.draft_id} committed to {result.location.value} "
                        f"({result.record.present_count} present, {result.record.absent_count} absent).")
            try:
                await self._delete_draft(teacher.teacher_id)
            except ServiceError:
                # The attendance is stored; a leftover draft only expires later.
                logger.error(f"Draft {draft.draft_id} was committed but could not be removed.")
            return result
