# app/rollcall/modules/csv_export.py

import csv
import io
from typing import Iterable

from ..models.domain_models import AttendanceEntry

CSV_HEADER = ["roll_no", "name", "present/absent"]


def attendance_to_csv(records: Iterable[AttendanceEntry]) -> str:
    """
    Renders attendance lines as CSV, one row per student in the given order.

    Example:
        roll_no,name,present/absent
        1,Ada,present
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for record in records:
        writer.writerow([record.roll_number, record.name, "present" if record.is_present else "absent"])
    return buffer.getvalue()
