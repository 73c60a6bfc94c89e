import logging
from typing import List, Optional, Protocol

from pydantic import BaseModel

from ..models.domain_models import Teacher
from ..modules.errors import DepartmentNotFound, RollcallError
from .marking_service import ServiceError

logger = logging.getLogger(__name__)


class PreferenceStore(Protocol):
    async def get_default_department(self, teacher_id: str) -> Optional[str]:
        ...

    async def set_default_department(self, teacher_id: str, dept_code: str):
        ...


class DepartmentPreference(BaseModel):
    default_department: Optional[str] = None
    departments: List[str]


class PreferencesService:
    """Reads and saves a teacher's default department."""
    def __init__(self, gateway: PreferenceStore, departments: List[str]):
        self.gateway = gateway
        self.departments = list(departments)

    async def get_department(self, teacher: Teacher) -> DepartmentPreference:
        try:
            current = await self.gateway.get_default_department(teacher.teacher_id)
        except Exception as e:
            logger.error(f"Error loading preferences of teacher '{teacher.teacher_id}'.", exc_info=True)
            raise ServiceError("Failed to load your preferences.") from e
        return DepartmentPreference(default_department=current, departments=self.departments)

    async def set_department(self, teacher: Teacher, dept_code: str) -> DepartmentPreference:
        dept_code = dept_code.strip().upper()
        if dept_code not in self.departments:
            raise DepartmentNotFound(dept_code)
        try:
            await self.gateway.set_default_department(teacher.teacher_id, dept_code)
        except RollcallError:
            raise
        except Exception as e:
            logger.error(f"Error saving preferences of teacher '{teacher.teacher_id}'.", exc_info=True)
            raise ServiceError("Failed to save your preference.") from e
        return DepartmentPreference(default_department=dept_code, departments=self.departments)
