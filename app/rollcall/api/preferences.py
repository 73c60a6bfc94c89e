from fastapi import APIRouter, Depends, Request

from ..models.domain_models import Teacher
from ..modules.errors import RollcallError
from ..services.preferences_service import DepartmentPreference, PreferencesService
from .schemas.user import DepartmentRequest
from .auth import get_current_user
from .dependencies import get_preferences_service
from .marking import _http_error
from .utilities.limiter import limiter

router = APIRouter(prefix="/auth/me", tags=["Preferences"])


@router.get("/department", response_model=DepartmentPreference, summary="The teacher's default department")
@limiter.limit("60/minute")
async def get_default_department(request: Request, user: Teacher = Depends(get_current_user), service: PreferencesService = Depends(get_preferences_service)):
    try:
        return await service.get_department(user)
    except RollcallError as e:
        raise _http_error(e)

@router.put("/department", response_model=DepartmentPreference, summary="Save the teacher's default department")
@limiter.limit("10/minute")
async def set_default_department(request: Request, department_request: DepartmentRequest, user: Teacher = Depends(get_current_user), service: PreferencesService = Depends(get_preferences_service)):
    try:
        return await service.set_department(user, department_request.dept_code)
    except RollcallError as e:
        raise _http_error(e)
