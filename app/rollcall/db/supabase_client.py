import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from ..models.domain_models import PersistOutcome, SessionRecord, StorageLocation, Teacher
from ..modules.errors import ClassNotFound, DepartmentNotFound, InvalidCredentials, RosterUnavailable

logger = logging.getLogger(__name__)

# PostgREST / Postgres codes for "this relation does not exist"
MISSING_TABLE_CODES = {"42P01", "PGRST205"}

STUDENT_COLUMNS = "id, name, roll_no, register_no"


def ledger_filename(record: SessionRecord) -> str:
    millis = int(record.marked_at.timestamp() * 1000)
    return f"{record.table_name}_{record.date.isoformat()}_hour{record.hour}_{millis}.json"


def ledger_payload(record: SessionRecord) -> Dict[str, Any]:
    """The backup document written to the storage bucket when the tables reject a session."""
    return {
        "class": record.class_identifier,
        "tableName": record.table_name,
        "hour": record.hour,
        "date": record.date.isoformat(),
        "teacher_id": record.teacher_id,
        "marked_at": record.marked_at.isoformat(),
        "attendance": [
            {
                "student_id": r.student_id,
                "roll_no": r.roll_number,
                "name": r.name,
                "register_no": r.register_number,
                "is_present": r.is_present,
            }
            for r in record.records
        ],
    }


class SupabaseGateway:
    """
    Every call the application makes to Supabase: roster tables, teacher profiles,
    password sign-in, and attendance persistence with a storage-bucket fallback.

    ``data_client`` is created with the service key (bypasses RLS) and
    ``auth_client`` with the anon key, so signing a teacher in never changes the
    credentials the data client runs with.
    """
    def __init__(self, data_client: AsyncClient, auth_client: AsyncClient, ledger_bucket: str = "ledger"):
        self._data = data_client
        self._auth = auth_client
        self._ledger_bucket = ledger_bucket

    # ===== Roster =====

    async def fetch_students(self, table_name: str) -> List[Dict[str, Any]]:
        try:
            response = await (
                self._data.table(table_name)
                .select(STUDENT_COLUMNS)
                .order("roll_no")
                .execute()
            )
        except APIError as e:
            if e.code in MISSING_TABLE_CODES:
                logger.warning(f"Roster table '{table_name}' does not exist: {e.message}")
                raise ClassNotFound(table_name, f"table '{table_name}' does not exist") from e
            logger.error(f"Error fetching students from '{table_name}'.", exc_info=True)
            raise RosterUnavailable(f"Could not load students: {e.message}") from e
        except Exception as e:
            logger.error(f"Unexpected error fetching students from '{table_name}'.", exc_info=True)
            raise RosterUnavailable(f"Could not load students: {e}") from e

        logger.info(f"Fetched {len(response.data)} students from '{table_name}'.")
        return response.data

    # ===== Authentication and profiles =====

    async def verify_credentials(self, email: str, password: str) -> Tuple[str, str]:
        """Signs in with email/password. Returns (auth_user_id, email)."""
        try:
            response = await self._auth.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            logger.warning(f"Sign in failed for '{email}': {e}")
            raise InvalidCredentials(str(e)) from e

        if response.user is None:
            raise InvalidCredentials("Sign in returned no user.")
        return str(response.user.id), response.user.email or email

    async def get_teacher_profile(self, auth_user_id: str, email: str) -> Optional[Teacher]:
        """
        Looks the teacher up by auth user id. Falls back to the email column and,
        when found that way, links the auth user id to the row.
        """
        response = await (
            self._data.table("teachers")
            .select("*")
            .eq("auth_user_id", auth_user_id)
            .limit(1)
            .execute()
        )
        row = response.data[0] if response.data else None

        if row is None and email:
            response = await (
                self._data.table("teachers")
                .select("*")
                .eq("email", email)
                .limit(1)
                .execute()
            )
            row = response.data[0] if response.data else None
            if row is not None:
                logger.info(f"Teacher found by email, linking auth user '{auth_user_id}'.")
                try:
                    await (
                        self._data.table("teachers")
                        .update({"auth_user_id": auth_user_id})
                        .eq("id", row["id"])
                        .execute()
                    )
                except APIError as e:
                    logger.error(f"Failed to link auth user id: {e.message}")

        if row is None:
            return None
        return Teacher(
            teacher_id=str(row["id"]),
            auth_user_id=auth_user_id,
            name=row.get("Name") or email.split("@")[0],
            email=row.get("email") or email,
        )

    # ===== Teacher preferences =====

    async def get_default_department(self, teacher_id: str) -> Optional[str]:
        """Returns the dept_code of the teacher's default department, or None when unset."""
        response = await (
            self._data.table("teachers")
            .select("default_dept_id")
            .eq("id", teacher_id)
            .limit(1)
            .execute()
        )
        dept_id = response.data[0].get("default_dept_id") if response.data else None
        if dept_id is None:
            return None

        response = await (
            self._data.table("departments")
            .select("dept_code")
            .eq("id", dept_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            logger.warning(f"Teacher '{teacher_id}' points at missing department {dept_id}.")
            return None
        return response.data[0]["dept_code"]

    async def set_default_department(self, teacher_id: str, dept_code: str):
        response = await (
            self._data.table("departments")
            .select("id")
            .eq("dept_code", dept_code)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise DepartmentNotFound(dept_code)

        await (
            self._data.table("teachers")
            .update({
                "default_dept_id": response.data[0]["id"],
                "updated_at": datetime.now(timezone.utc).isoformat(),
            })
            .eq("id", teacher_id)
            .execute()
        )
        logger.info(f"Teacher '{teacher_id}' set default department to '{dept_code}'.")

    # ===== Persistence =====

    async def persist(self, record: SessionRecord) -> PersistOutcome:
        try:
            await self._insert_session(record)
            logger.info(f"Attendance for {record.class_identifier} hour {record.hour} saved to the database.")
            return PersistOutcome(ok=True, location=StorageLocation.DATABASE)
        except Exception as e:
            logger.warning(f"Database save failed, saving to storage as backup: {e}")

        filename = ledger_filename(record)
        try:
            await self._data.storage.from_(self._ledger_bucket).upload(
                path=filename,
                file=json.dumps(ledger_payload(record)).encode("utf-8"),
                file_options={"content-type": "application/json", "cache-control": "3600"},
            )
        except Exception as e:
            logger.error(f"Storage backup '{filename}' failed.", exc_info=True)
            return PersistOutcome(ok=False, error=f"Failed to save attendance: {e}")

        logger.info(f"Attendance saved to storage as '{filename}'.")
        return PersistOutcome(ok=True, location=StorageLocation.LEDGER)

    async def _insert_session(self, record: SessionRecord):
        session_response = await (
            self._data.table("attendance_sessions")
            .insert({
                "class_name": record.class_identifier,
                "table_name": record.table_name,
                "hour": record.hour,
                "date": record.date.isoformat(),
                "teacher_id": record.teacher_id,
                "marked_at": record.marked_at.isoformat(),
            })
            .execute()
        )
        session_id = session_response.data[0]["id"]

        rows = [
            {
                "session_id": session_id,
                "student_id": r.student_id,
                "roll_no": r.roll_number,
                "student_name": r.name,
                "is_present": r.is_present,
            }
            for r in record.records
        ]
        try:
            await self._data.table("attendance_records").insert(rows).execute()
        except Exception:
            # Leave no session row without its records.
            try:
                await self._data.table("attendance_sessions").delete().eq("id", session_id).execute()
            except Exception:
                logger.error(f"Could not remove attendance session {session_id} after a failed records insert.", exc_info=True)
            raise


async def create_supabase_gateway(url: str, anon_key: str, service_key: str, ledger_bucket: str = "ledger") -> SupabaseGateway:
    data_client = await acreate_client(url, service_key or anon_key)
    auth_client = await acreate_client(url, anon_key)
    return SupabaseGateway(data_client=data_client, auth_client=auth_client, ledger_bucket=ledger_bucket)
