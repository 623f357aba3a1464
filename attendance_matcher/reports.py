"""
Attendance reports.

Daily summary counts over the attendance records of one date.
"""

from dataclasses import asdict, dataclass
from typing import Dict, Iterable

from .attendance import AttendanceRecord, AttendanceStatus


@dataclass(frozen=True)
class AttendanceSummary:
    date: str
    total_employees: int
    present: int
    late: int
    absent: int

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        return {
            'date': data['date'],
            'totalEmployees': data['total_employees'],
            'presentToday': data['present'],
            'lateToday': data['late'],
            'absentToday': data['absent'],
        }


def summarize(day: str, total_employees: int, records: Iterable[AttendanceRecord]) -> AttendanceSummary:
    """
    Count present, late and absent identities for a day.

    Absent is whoever is enrolled but has no record, floored at zero
    (records may exist for identities whose profile was since removed).
    """
    present = late = 0
    for record in records:
        if record.status is AttendanceStatus.PRESENT:
            present += 1
        elif record.status is AttendanceStatus.LATE:
            late += 1

    return AttendanceSummary(
        date=day,
        total_employees=total_employees,
        present=present,
        late=late,
        absent=max(0, total_employees - present - late),
    )
