from datetime import datetime, timezone
from typing import Callable, Protocol

from ..models.domain_models import CommitResult, PersistOutcome, SessionMetadata, SessionRecord, StorageLocation
from ..modules.errors import CommitRejected, RecordValidationError
from ..modules.review_buffer import ReviewBuffer


class PersistenceSink(Protocol):
    """Stores a whole session record; any fallback storage happens behind this call."""
    async def persist(self, record: SessionRecord) -> PersistOutcome:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionCommitter:
    """
    Turns a finalized ReviewBuffer into exactly one persistence request.

    Either the sink accepts the full record set or the commit is reported failed
    as a whole. Not re-entrant: concurrent commits of one buffer must be
    serialised by the caller.
    """
    def __init__(self, sink: PersistenceSink, clock: Callable[[], datetime] = _utcnow):
        self._sink = sink
        self._clock = clock

    def build_record(self, buffer: ReviewBuffer, metadata: SessionMetadata) -> SessionRecord:
        records = buffer.to_records()
        if not records:
            raise RecordValidationError("Cannot commit an attendance session without students.")
        return SessionRecord(
            class_identifier=metadata.class_identifier,
            table_name=metadata.table_name,
            hour=metadata.hour,
            date=metadata.date,
            teacher_id=metadata.teacher_id,
            marked_at=self._clock(),
            records=records,
        )

    async def commit(self, buffer: ReviewBuffer, metadata: SessionMetadata) -> CommitResult:
        record = self.build_record(buffer, metadata)
        try:
            outcome = await self._sink.persist(record)
        except Exception as e:
            raise CommitRejected(f"Persistence failed: {e}") from e

        if not outcome.ok:
            raise CommitRejected(outcome.error or "Persistence was rejected.")
        return CommitResult(record=record, location=outcome.location or StorageLocation.DATABASE)
