from fastapi import APIRouter, Depends, HTTPException, status, Response, Request

from ..models.domain_models import Teacher
from ..modules.errors import (
    BoundaryError, ClassNotFound, DataIntegrityError, DepartmentNotFound, EmptyRoster, NoMarkingSession,
    PreconditionError, RollcallError, StateError, StudentNotFound,
)
from ..services.marking_service import ClassOptions, MarkingService, MarkingStatus, ReviewView, ServiceError
from .schemas.marking import CommitResponse, MarkRequest, StartMarkingRequest
from .auth import get_current_user
from .dependencies import get_marking_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/marking", tags=["Marking Endpoints"])


# --- HELPERS ---

def _http_error(e: RollcallError) -> HTTPException:
    """Maps workflow errors onto HTTP status codes."""
    if isinstance(e, (ClassNotFound, DepartmentNotFound, NoMarkingSession, StudentNotFound)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, EmptyRoster):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(e, PreconditionError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, (StateError, DataIntegrityError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, BoundaryError):
        code = status.HTTP_502_BAD_GATEWAY
    elif isinstance(e, ServiceError):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(e))


# === PART 1: CLASS SELECTION AND SWIPE MARKING ===

@router.get("/classes", response_model=ClassOptions, summary="List the classes and hours a session can be started for")
@limiter.limit("60/minute")
async def list_classes(request: Request, user: Teacher = Depends(get_current_user), service: MarkingService = Depends(get_marking_service)):
    return service.list_classes()

@router.post("/session", response_model=MarkingStatus, status_code=status.HTTP_201_CREATED, summary="Load the roster and start marking")
@limiter.limit("10/minute")
async def start_marking(request: Request, start_request: StartMarkingRequest, user: Teacher = Depends(get_current_user), service: MarkingService = Depends(get_marking_service)):
    try:
        return await service.start(user, start_request.class_identifier, start_request.hour, start_request.date)
    except RollcallError as e:
        raise _http_error(e)

@router.get("/session", response_model=MarkingStatus, summary="Current student and progress of the draft in progress")
@limiter.limit("120/minute")
async def get_marking_status(request: Request, user: Teacher = Depends(get_current_user), service: MarkingService = Depends(get_marking_service)):
    try:
        return await service.status(user)
    except RollcallError as e:
        raise _http_error(e)

@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT, summary="Abandon the draft in progress")
@limiter.limit("10/minute")
async def abandon_marking(request: Request, user: Teacher = Depends(get_current_user), service: MarkingService = Depends(get_marking_service)):
    try:
        await service.abandon(user)
    except RollcallError as e:
        raise _http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.post("/session/mark", response_model=MarkingStatus, summary="Mark the current student present or absent")
@limiter.limit("300/minute")
async def mark_student(request: Request, mark_request: MarkRequest, user: Teacher = Depends(get_current_user), service: MarkingService = Depends(get_marking_service)):
    try:
        return await service.mark(user, mark_request.present)
    except RollcallError as e:
        raise _http_error(e)

@router.post("/session/undo", response_model=MarkingStatus, summary="Undo the last mark")
@limiter.limit("300/minute")
async def undo_mark(request: Request, user: Teacher = Depends(get_current_user), service: MarkingService = Depends(get_marking_service)):
    try:
        return await service.undo(user)
    except RollcallError as e:
        raise _http_error(e)

# === PART 2: PREVIEW, CORRECTION AND SAVE ===

@router.post("/session/preview", response_model=ReviewView, summary="Hand the finished marking over to review")
@limiter.limit("30/minute")
async def open_preview(request: Request, user: Teacher = Depends(get_current_user), service: MarkingService = Depends(get_marking_service)):
    try:
        return await service.preview(user)
    except RollcallError as e:
        raise _http_error(e)

@router.get("/session/review", response_model=ReviewView, summary="Get the review entries and counts")
@limiter.limit("120/minute")
async def get_review(request: Request, user: Teacher = Depends(get_current_user), service: MarkingService = Depends(get_marking_service)):
    try:
        return await service.review(user)
    except RollcallError as e:
        raise _http_error(e)

@router.post("/session/review/{student_id}/toggle", response_model=ReviewView, summary="Flip one student between present and absent")
@limiter.limit("300/minute")
async def toggle_student(request: Request, student_id: str, user: Teacher = Depends(get_current_user), service: MarkingService = Depends(get_marking_service)):
    try:
        return await service.toggle(user, student_id)
    except RollcallError as e:
        raise _http_error(e)

@router.get("/session/review/csv", summary="Download the review as CSV")
@limiter.limit("30/minute")
async def export_review_csv(request: Request, user: Teacher = Depends(get_current_user), service: MarkingService = Depends(get_marking_service)):
    try:
        content = await service.export_csv(user)
    except RollcallError as e:
        raise _http_error(e)
    return Response(content=content, media_type="text/csv")

@router.post("/session/commit", response_model=CommitResponse, summary="Save the reviewed attendance")
@limiter.limit("10/minute")
async def commit_attendance(request: Request, user: Teacher = Depends(get_current_user), service: MarkingService = Depends(get_marking_service)):
    try:
        result = await service.commit(user)
    except RollcallError as e:
        raise _http_error(e)
    record = result.record
    return CommitResponse(
        class_identifier=record.class_identifier,
        hour=record.hour,
        date=record.date,
        marked_at=record.marked_at,
        location=result.location,
        present_count=record.present_count,
        absent_count=record.absent_count,
        total=len(record.records),
    )
