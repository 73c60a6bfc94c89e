import pytest
from unittest.mock import AsyncMock

from app.rollcall.modules.errors import ClassNotFound, DuplicateStudent, EmptyRoster, RosterUnavailable
from app.rollcall.services.roster_loader import RosterLoader

CLASS_TABLES = {"IT-A": "ita", "IT-B": "itb"}


def make_loader(rows=None, side_effect=None):
    source = AsyncMock()
    source.fetch_students.return_value = rows
    source.fetch_students.side_effect = side_effect
    return RosterLoader(source=source, class_tables=CLASS_TABLES), source


@pytest.mark.asyncio
class TestRosterLoader:

    async def test_load_sorts_by_roll_number(self):
        loader, source = make_loader(rows=[
            {"id": 3, "name": "Linus", "roll_no": 10, "register_no": 9003},
            {"id": 1, "name": "Ada", "roll_no": 2, "register_no": 9001},
            {"id": 2, "name": "Grace", "roll_no": 1, "register_no": None},
        ])

        roster = await loader.load("IT-A")

        source.fetch_students.assert_called_once_with("ita")
        assert [s.name for s in roster] == ["Grace", "Ada", "Linus"]
        assert roster[0].id == "2"
        assert roster[0].register_number is None
        assert roster[1].register_number == "9001"

    async def test_numeric_roll_numbers_come_before_text_ones(self):
        loader, _ = make_loader(rows=[
            {"id": "a", "name": "A", "roll_no": "L-01"},
            {"id": "b", "name": "B", "roll_no": "12"},
            {"id": "c", "name": "C", "roll_no": "3"},
        ])

        roster = await loader.load("IT-A")

        assert [s.roll_number for s in roster] == ["3", "12", "L-01"]

    async def test_repeated_loads_return_identical_ordering(self):
        rows = [
            {"id": "x", "name": "X", "roll_no": 5},
            {"id": "y", "name": "Y", "roll_no": 4},
        ]
        loader, _ = make_loader(rows=rows)

        assert await loader.load("IT-B") == await loader.load("IT-B")

    async def test_unknown_class_never_reaches_the_source(self):
        loader, source = make_loader(rows=[])

        with pytest.raises(ClassNotFound):
            await loader.load("CSE-Z")

        source.fetch_students.assert_not_called()

    async def test_missing_table_is_reported_for_the_class(self):
        loader, _ = make_loader(side_effect=ClassNotFound("ita", "table 'ita' does not exist"))

        with pytest.raises(ClassNotFound) as exc_info:
            await loader.load("IT-A")

        assert exc_info.value.class_identifier == "IT-A"

    async def test_empty_class(self):
        loader, _ = make_loader(rows=[])

        with pytest.raises(EmptyRoster):
            await loader.load("IT-A")

    async def test_duplicate_students(self):
        loader, _ = make_loader(rows=[
            {"id": 1, "name": "Ada", "roll_no": 1},
            {"id": 1, "name": "Ada again", "roll_no": 2},
        ])

        with pytest.raises(DuplicateStudent):
            await loader.load("IT-A")

    async def test_malformed_row(self):
        loader, _ = make_loader(rows=[{"id": 1, "name": "No roll number"}])

        with pytest.raises(RosterUnavailable):
            await loader.load("IT-A")

    async def test_source_failure_propagates(self):
        loader, _ = make_loader(side_effect=RosterUnavailable("timeout"))

        with pytest.raises(RosterUnavailable, match="timeout"):
            await loader.load("IT-A")

    async def test_unicode_digit_roll_numbers_sort_as_text(self):
        loader, _ = make_loader(rows=[
            {"id": "a", "name": "A", "roll_no": "²"},
            {"id": "b", "name": "B", "roll_no": "2"},
            {"id": "c", "name": "C", "roll_no": "٣"},
        ])

        roster = await loader.load("IT-A")

        assert [s.roll_number for s in roster] == ["2", "٣", "²"]
