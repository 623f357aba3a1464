import dataclasses
import json
from datetime import date, datetime, time
from types import SimpleNamespace

import numpy as np
import pytest

from attendance_matcher.attendance import AttendanceRecord
from attendance_matcher.config import load_config
from attendance_matcher.exceptions import FaceNotFound, StoreUnavailable
from attendance_matcher.recognition.embedding import (
    Identity,
    ReferenceEntry,
    ReferenceSet,
    to_embedding,
)


def make_config(**overrides):
    base = load_config()
    defaults = dict(
        supabase_url='http://backend.test',
        supabase_key='test-key',
        kiosk_id='test-kiosk',
        match_threshold=0.6,
        embedding_dim=2,
        late_cutoff=time(9, 30),
        default_location='Main Office',
        store_retry_attempts=3,
        store_retry_delay=0.0,
        store_retry_backoff=2.0,
        enable_preprocessing=False,
        min_face_height_pixels=40,
        min_blur_variance=50.0,
    )
    defaults.update(overrides)
    return dataclasses.replace(base, **defaults)


@pytest.fixture
def config():
    return make_config()


class FakeResponse:
    def __init__(self, status_code=200, body=None, headers=None):
        self.status_code = status_code
        self._body = body
        self.headers = headers or {}
        self.content = b'' if body is None else json.dumps(body).encode()
        self.text = self.content.decode()

    def json(self):
        return json.loads(self.content)


class FakeSession:
    """Stands in for requests.Session; responses are queued per (method, table)."""

    def __init__(self):
        self.headers = {}
        self.calls = []
        self._responses = {}

    def queue(self, method, table, status_code=200, body=None, headers=None, error=None):
        self._responses.setdefault((method, table), []).append(
            error or FakeResponse(status_code, body, headers)
        )

    def request(self, method, url, timeout=None, params=None, json=None, headers=None):
        table = url.rsplit('/', 1)[-1]
        self.calls.append(SimpleNamespace(
            method=method, table=table, url=url, timeout=timeout,
            params=params or {}, json=json, headers=headers or {},
        ))
        queued = self._responses.get((method, table))
        if not queued:
            raise AssertionError(f'Unexpected request {method} {table}')
        response = queued.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def session():
    return FakeSession()


class InMemoryStore:
    """Embedding store kept in dicts, in insertion order."""

    def __init__(self):
        self.profiles = {}
        self.samples = {}
        self.failures = 0
        self.fetch_calls = 0

    def _maybe_fail(self):
        if self.failures > 0:
            self.failures -= 1
            raise StoreUnavailable('backend down')

    def fetch_all(self):
        self.fetch_calls += 1
        self._maybe_fail()
        return ReferenceSet(
            ReferenceEntry(identity=self.profiles[user_id], embedding=embedding)
            for user_id, embeddings in self.samples.items()
            for embedding in embeddings
        )

    def append(self, identity_id, embedding):
        self._maybe_fail()
        self.samples.setdefault(identity_id, []).append(to_embedding(embedding))
        return len(self.samples[identity_id])

    def ensure_profile(self, identity_id, name, employee_id=None, department=None):
        self._maybe_fail()
        return self.profiles.setdefault(
            identity_id,
            Identity(identity_id, name, employee_id=employee_id, department=department),
        )

    def update_profile(self, identity_id, name=None, employee_id=None, department=None):
        current = self.profiles[identity_id]
        self.profiles[identity_id] = dataclasses.replace(
            current,
            name=name or current.name,
            employee_id=employee_id if employee_id is not None else current.employee_id,
            department=department if department is not None else current.department,
        )

    def count_identities(self):
        return len(self.profiles)

    def enroll(self, identity_id, name, *vectors):
        self.ensure_profile(identity_id, name)
        for vector in vectors:
            self.append(identity_id, vector)


class InMemoryRecorder:
    """Attendance recorder enforcing one row per (identity, date)."""

    def __init__(self):
        self.rows = {}

    def find_record(self, identity_id, day):
        return self.rows.get((identity_id, day.isoformat()))

    def has_record_today(self, identity_id, day=None):
        return self.find_record(identity_id, day or date.today()) is not None

    def insert(self, identity_id, day, time_in, status, location, notes=None):
        key = (identity_id, day.isoformat())
        if key in self.rows:
            return None
        record = AttendanceRecord(
            record_id=str(len(self.rows) + 1),
            identity_id=identity_id,
            date=day.isoformat(),
            time_in=time_in.strftime('%H:%M:%S'),
            status=status,
            location=location,
            notes=notes,
        )
        self.rows[key] = record
        return record

    def list_for_date(self, day):
        return [r for (_, d), r in self.rows.items() if d == day.isoformat()]

    def list_records(self, date_from=None, date_to=None, identity_id=None, status=None):
        records = [
            r for r in self.rows.values()
            if (date_from is None or r.date >= date_from.isoformat())
            and (date_to is None or r.date <= date_to.isoformat())
            and (identity_id is None or r.identity_id == identity_id)
            and (status is None or r.status is status)
        ]
        return sorted(records, key=lambda r: (r.date, r.time_in), reverse=True)

    def list_recent(self, limit=20):
        return sorted(self.rows.values(), key=lambda r: (r.date, r.time_in), reverse=True)[:limit]


class FakeExtractor:
    """Treats the "image" as the embedding itself; None means no face."""

    ready = True

    def extract(self, image):
        if image is None:
            raise FaceNotFound('No face detected')
        return to_embedding(image)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def recorder():
    return InMemoryRecorder()


class FixedClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 3, 4, 9, 0, 0))


def noise_image(height=200, width=200, seed=0):
    rng = np.random.RandomState(seed)
    return rng.randint(0, 256, size=(height, width, 3), dtype=np.uint8)
