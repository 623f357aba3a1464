"""
Attendance recording module.

Decides present/late from the check-in time and writes at most one
attendance row per identity per calendar date.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List, Optional

from .backend import BackendClient
from .exceptions import BackendRequestError, StoreUnavailable
from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_LATE_CUTOFF = time(9, 30)
DEFAULT_LOCATION = 'Main Office'

_RECORD_COLUMNS = 'id,user_id,date,time_in,status,location,notes,profiles(name)'


class AttendanceStatus(str, Enum):
    PRESENT = 'present'
    LATE = 'late'


@dataclass(frozen=True)
class AttendanceRecord:
    record_id: Optional[str]
    identity_id: str
    date: str
    time_in: str
    status: AttendanceStatus
    location: str
    notes: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'AttendanceRecord':
        profile = row.get('profiles') or {}
        return cls(
            record_id=str(row['id']) if row.get('id') is not None else None,
            identity_id=row['user_id'],
            date=row['date'],
            time_in=row['time_in'],
            status=AttendanceStatus(row['status']),
            location=row.get('location') or DEFAULT_LOCATION,
            notes=row.get('notes'),
            name=profile.get('name') if isinstance(profile, dict) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.record_id,
            'userId': self.identity_id,
            'userName': self.name,
            'date': self.date,
            'timeIn': self.time_in,
            'status': self.status.value,
            'location': self.location,
            'notes': self.notes,
        }


@dataclass(frozen=True)
class AttendanceOutcome:
    """Result of a check-in: the day's record and whether this call created it."""

    record: AttendanceRecord
    created: bool


def decide_status(now: datetime, cutoff: time = DEFAULT_LATE_CUTOFF) -> AttendanceStatus:
    """Strictly before the cutoff is present; at or after it is late."""
    if now.time() < cutoff:
        return AttendanceStatus.PRESENT
    return AttendanceStatus.LATE


class SupabaseAttendanceRecorder:
    """
    Attendance recorder backed by the `attendance` table.

    The table must carry a unique constraint on (user_id, date); inserts
    rely on it to stay idempotent when two kiosks race.
    """

    def __init__(self, client: BackendClient):
        self.client = client

    def find_record(self, identity_id: str, day: date) -> Optional[AttendanceRecord]:
        rows = self.client.select('attendance', {
            'select': _RECORD_COLUMNS,
            'user_id': f'eq.{identity_id}',
            'date': f'eq.{day.isoformat()}',
            'limit': '1',
        })
        return AttendanceRecord.from_row(rows[0]) if rows else None

    def has_record_today(self, identity_id: str, day: Optional[date] = None) -> bool:
        return self.find_record(identity_id, day or date.today()) is not None

    def insert(
        self,
        identity_id: str,
        day: date,
        time_in: time,
        status: AttendanceStatus,
        location: str,
        notes: Optional[str] = None,
    ) -> Optional[AttendanceRecord]:
        """
        Insert an attendance row.

        Returns:
            The stored record, or None if a row for (identity, day) already existed

        Raises:
            StoreUnavailable: If the backend cannot be reached
            BackendRequestError: If the backend rejects the row
        """
        row = {
            'user_id': identity_id,
            'date': day.isoformat(),
            'time_in': time_in.strftime('%H:%M:%S'),
            'status': status.value,
            'location': location,
            'notes': notes,
        }

        try:
            rows = self.client.insert(
                'attendance',
                row,
                on_conflict='user_id,date',
                resolution='ignore-duplicates',
            )
        except BackendRequestError as e:
            if e.status_code == 409:
                return None
            raise

        if not rows:
            return None
        return AttendanceRecord.from_row(rows[0])

    def list_for_date(self, day: date) -> List[AttendanceRecord]:
        rows = self.client.select('attendance', {
            'select': _RECORD_COLUMNS,
            'date': f'eq.{day.isoformat()}',
            'order': 'time_in.asc',
        })
        return [AttendanceRecord.from_row(row) for row in rows]

    def list_records(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        identity_id: Optional[str] = None,
        status: Optional[AttendanceStatus] = None,
    ) -> List[AttendanceRecord]:
        """
        Attendance history filtered by date range, identity and status.

        Both date bounds are inclusive; omitted filters are not applied.
        Newest records come first.
        """
        date_filters = []
        if date_from is not None:
            date_filters.append(f'gte.{date_from.isoformat()}')
        if date_to is not None:
            date_filters.append(f'lte.{date_to.isoformat()}')

        params: Dict[str, Any] = {
            'select': _RECORD_COLUMNS,
            'order': 'date.desc,time_in.desc',
        }
        if date_filters:
            # requests repeats the key for a list value: date=gte.X&date=lte.Y
            params['date'] = date_filters if len(date_filters) > 1 else date_filters[0]
        if identity_id:
            params['user_id'] = f'eq.{identity_id}'
        if status is not None:
            params['status'] = f'eq.{AttendanceStatus(status).value}'

        rows = self.client.select('attendance', params)
        return [AttendanceRecord.from_row(row) for row in rows]

    def list_recent(self, limit: int = 20) -> List[AttendanceRecord]:
        rows = self.client.select('attendance', {
            'select': _RECORD_COLUMNS,
            'order': 'date.desc,time_in.desc',
            'limit': str(max(1, int(limit))),
        })
        return [AttendanceRecord.from_row(row) for row in rows]


def record_attendance(
    recorder: SupabaseAttendanceRecorder,
    identity_id: str,
    now: datetime,
    cutoff: time = DEFAULT_LATE_CUTOFF,
    location: Optional[str] = None,
    notes: Optional[str] = None,
) -> AttendanceOutcome:
    """
    Record a check-in unless the identity already has one for today.

    A repeated check-in on the same date is not an error: the existing
    record is returned with created=False.

    Args:
        recorder: Attendance recorder
        identity_id: Recognized identity
        now: Local check-in time
        cutoff: Late cutoff
        location: Capture location (defaults to the main office)
        notes: Optional free-text notes

    Returns:
        AttendanceOutcome with the day's record
    """
    day = now.date()

    existing = recorder.find_record(identity_id, day)
    if existing is not None:
        logger.info(f'Attendance already recorded for {identity_id} on {day}')
        return AttendanceOutcome(record=existing, created=False)

    status = decide_status(now, cutoff)
    inserted = recorder.insert(
        identity_id=identity_id,
        day=day,
        time_in=now.time(),
        status=status,
        location=location or DEFAULT_LOCATION,
        notes=notes,
    )

    if inserted is None:
        # Lost a race with another kiosk; the other insert won
        existing = recorder.find_record(identity_id, day)
        if existing is None:
            raise StoreUnavailable(f'Attendance for {identity_id} neither inserted nor found')
        return AttendanceOutcome(record=existing, created=False)

    logger.info(f'📤 Attendance recorded for {identity_id}: {status.value} at {inserted.time_in}')
    return AttendanceOutcome(record=inserted, created=True)
