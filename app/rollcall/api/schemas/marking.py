from pydantic import BaseModel, Field
from datetime import date as date_type, datetime
from typing import Optional

from ...models.domain_models import StorageLocation


class StartMarkingRequest(BaseModel):
    """Request model for starting a swipe-marking session."""
    class_identifier: str = Field(..., min_length=1, description="Display name of the class, e.g. 'IT-A'.")
    hour: int = Field(..., ge=1, description="Teaching hour of the day, starting at 1.")
    date: Optional[date_type] = Field(None, description="Attendance date; defaults to today.")


class MarkRequest(BaseModel):
    """One swipe: right is present, left is absent."""
    present: bool


class CommitResponse(BaseModel):
    class_identifier: str
    hour: int
    date: date_type
    marked_at: datetime
    location: StorageLocation
    present_count: int
    absent_count: int
    total: int
