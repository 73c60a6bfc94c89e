import json
import pytest
from datetime import date, datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from postgrest.exceptions import APIError

from app.rollcall.db.supabase_client import SupabaseGateway, ledger_filename, ledger_payload
from app.rollcall.models.domain_models import AttendanceEntry, SessionRecord, StorageLocation
from app.rollcall.modules.errors import ClassNotFound, DepartmentNotFound, InvalidCredentials, RosterUnavailable


def make_query(*results):
    """A chainable query builder whose execute() yields the given results in order."""
    query = MagicMock()
    for method in ("select", "order", "eq", "limit", "insert", "update", "delete"):
        getattr(query, method).return_value = query
    query.execute = AsyncMock(side_effect=[
        r if isinstance(r, Exception) else SimpleNamespace(data=r) for r in results
    ])
    return query


def make_gateway(tables=None):
    data_client = MagicMock()
    data_client.table.side_effect = lambda name: tables[name]
    bucket = MagicMock()
    bucket.upload = AsyncMock()
    data_client.storage.from_.return_value = bucket
    auth_client = MagicMock()
    auth_client.auth.sign_in_with_password = AsyncMock()
    gateway = SupabaseGateway(data_client=data_client, auth_client=auth_client, ledger_bucket="ledger")
    return gateway, data_client, auth_client, bucket


@pytest.fixture
def record() -> SessionRecord:
    return SessionRecord(
        class_identifier="IT-A",
        table_name="ita",
        hour=2,
        date=date(2025, 3, 4),
        teacher_id="7",
        marked_at=datetime(2025, 3, 4, 9, 30, tzinfo=timezone.utc),
        records=(
            AttendanceEntry(student_id="11", roll_number="1", name="Ada", register_number="5001", is_present=True),
            AttendanceEntry(student_id="12", roll_number="2", name="Grace", is_present=False),
        ),
    )


def test_ledger_filename(record):
    assert ledger_filename(record) == "ita_2025-03-04_hour2_1741080600000.json"


def test_ledger_payload(record):
    payload = ledger_payload(record)
    assert payload["class"] == "IT-A"
    assert payload["tableName"] == "ita"
    assert payload["date"] == "2025-03-04"
    assert [a["is_present"] for a in payload["attendance"]] == [True, False]
    assert payload["attendance"][0]["register_no"] == "5001"


@pytest.mark.asyncio
class TestFetchStudents:

    async def test_returns_rows(self):
        rows = [{"id": 1, "name": "Ada", "roll_no": 1, "register_no": 5001}]
        query = make_query(rows)
        gateway, data_client, _, _ = make_gateway({"ita": query})

        assert await gateway.fetch_students("ita") == rows
        data_client.table.assert_called_once_with("ita")
        query.select.assert_called_once_with("id, name, roll_no, register_no")
        query.order.assert_called_once_with("roll_no")

    async def test_missing_table(self):
        error = APIError({"message": "relation \"public.xyz\" does not exist", "code": "42P01"})
        gateway, _, _, _ = make_gateway({"xyz": make_query(error)})

        with pytest.raises(ClassNotFound):
            await gateway.fetch_students("xyz")

    async def test_other_api_error(self):
        error = APIError({"message": "permission denied", "code": "42501"})
        gateway, _, _, _ = make_gateway({"ita": make_query(error)})

        with pytest.raises(RosterUnavailable, match="permission denied"):
            await gateway.fetch_students("ita")

    async def test_network_error(self):
        gateway, _, _, _ = make_gateway({"ita": make_query(ConnectionError("timeout"))})

        with pytest.raises(RosterUnavailable, match="timeout"):
            await gateway.fetch_students("ita")


@pytest.mark.asyncio
class TestAuthentication:

    async def test_verify_credentials(self):
        gateway, _, auth_client, _ = make_gateway()
        auth_client.auth.sign_in_with_password.return_value = SimpleNamespace(
            user=SimpleNamespace(id="auth-7", email="ada@example.com")
        )

        assert await gateway.verify_credentials("ada@example.com", "pw") == ("auth-7", "ada@example.com")
        auth_client.auth.sign_in_with_password.assert_called_once_with({"email": "ada@example.com", "password": "pw"})

    async def test_bad_password(self):
        gateway, _, auth_client, _ = make_gateway()
        auth_client.auth.sign_in_with_password.side_effect = Exception("Invalid login credentials")

        with pytest.raises(InvalidCredentials):
            await gateway.verify_credentials("ada@example.com", "wrong")

    async def test_no_user_returned(self):
        gateway, _, auth_client, _ = make_gateway()
        auth_client.auth.sign_in_with_password.return_value = SimpleNamespace(user=None)

        with pytest.raises(InvalidCredentials):
            await gateway.verify_credentials("ada@example.com", "pw")

    async def test_profile_by_auth_user_id(self):
        teachers = make_query([{"id": 7, "Name": "Dr. Ada Lovelace", "email": "ada@example.com"}])
        gateway, _, _, _ = make_gateway({"teachers": teachers})

        teacher = await gateway.get_teacher_profile("auth-7", "ada@example.com")

        assert teacher.teacher_id == "7"
        assert teacher.name == "Dr. Ada Lovelace"
        teachers.eq.assert_called_once_with("auth_user_id", "auth-7")

    async def test_profile_by_email_links_auth_user(self):
        teachers = make_query([], [{"id": 7, "Name": None, "email": "ada@example.com"}], [])
        gateway, _, _, _ = make_gateway({"teachers": teachers})

        teacher = await gateway.get_teacher_profile("auth-7", "ada@example.com")

        assert teacher.teacher_id == "7"
        assert teacher.name == "ada"
        teachers.update.assert_called_once_with({"auth_user_id": "auth-7"})

    async def test_no_profile(self):
        gateway, _, _, _ = make_gateway({"teachers": make_query([], [])})
        assert await gateway.get_teacher_profile("auth-9", "nobody@example.com") is None


@pytest.mark.asyncio
class TestPersist:

    async def test_saved_to_database(self, record):
        sessions = make_query([{"id": 501}])
        records = make_query([{}, {}])
        gateway, _, _, bucket = make_gateway({"attendance_sessions": sessions, "attendance_records": records})

        outcome = await gateway.persist(record)

        assert outcome.ok and outcome.location == StorageLocation.DATABASE
        session_row = sessions.insert.call_args[0][0]
        assert session_row["class_name"] == "IT-A"
        assert session_row["hour"] == 2
        rows = records.insert.call_args[0][0]
        assert [r["session_id"] for r in rows] == [501, 501]
        assert [r["is_present"] for r in rows] == [True, False]
        bucket.upload.assert_not_called()

    async def test_records_failure_removes_session_and_uses_ledger(self, record):
        sessions = make_query([{"id": 501}], [])
        records = make_query(APIError({"message": "insert failed", "code": "23505"}))
        gateway, data_client, _, bucket = make_gateway({"attendance_sessions": sessions, "attendance_records": records})

        outcome = await gateway.persist(record)

        sessions.delete.assert_called_once()
        sessions.eq.assert_called_once_with("id", 501)
        assert outcome.ok and outcome.location == StorageLocation.LEDGER
        data_client.storage.from_.assert_called_once_with("ledger")
        kwargs = bucket.upload.call_args.kwargs
        assert kwargs["path"] == ledger_filename(record)
        assert json.loads(kwargs["file"])["tableName"] == "ita"

    async def test_both_paths_fail(self, record):
        sessions = make_query(ConnectionError("db down"))
        gateway, _, _, bucket = make_gateway({"attendance_sessions": sessions})
        bucket.upload.side_effect = Exception("bucket not found")

        outcome = await gateway.persist(record)

        assert not outcome.ok
        assert "bucket not found" in outcome.error


@pytest.mark.asyncio
class TestDefaultDepartment:

    async def test_get_joins_department_code(self):
        teachers = make_query([{"default_dept_id": 3}])
        departments = make_query([{"dept_code": "CS"}])
        gateway, _, _, _ = make_gateway({"teachers": teachers, "departments": departments})

        assert await gateway.get_default_department("7") == "CS"
        teachers.eq.assert_called_once_with("id", "7")
        departments.eq.assert_called_once_with("id", 3)

    async def test_get_when_unset(self):
        teachers = make_query([{"default_dept_id": None}])
        gateway, data_client, _, _ = make_gateway({"teachers": teachers})

        assert await gateway.get_default_department("7") is None
        data_client.table.assert_called_once_with("teachers")

    async def test_set_resolves_code_and_updates_teacher(self):
        departments = make_query([{"id": 4}])
        teachers = make_query([])
        gateway, _, _, _ = make_gateway({"teachers": teachers, "departments": departments})

        await gateway.set_default_department("7", "MECH")

        departments.eq.assert_called_once_with("dept_code", "MECH")
        update = teachers.update.call_args[0][0]
        assert update["default_dept_id"] == 4
        assert "updated_at" in update
        teachers.eq.assert_called_once_with("id", "7")

    async def test_set_unknown_code(self):
        departments = make_query([])
        teachers = make_query()
        gateway, _, _, _ = make_gateway({"teachers": teachers, "departments": departments})

        with pytest.raises(DepartmentNotFound):
            await gateway.set_default_department("7", "ARTS")
        teachers.update.assert_not_called()
