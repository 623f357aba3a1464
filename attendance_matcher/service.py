"""
Recognition service.

Orchestrates the recognition flows:
- identify: capture -> embedding -> reference set -> match (login)
- check_in: identify, then record attendance (kiosk)
- register_face: capture -> embedding -> append to identity's samples

Backend reads and writes are retried with exponential backoff on
StoreUnavailable. All other errors propagate unchanged.
"""

import dataclasses
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, List, Optional, TypeVar

import numpy as np

from .attendance import (
    AttendanceOutcome,
    AttendanceRecord,
    AttendanceStatus,
    SupabaseAttendanceRecorder,
    record_attendance,
)
from .config import Config
from .exceptions import DimensionMismatch, InvalidThreshold, StoreUnavailable
from .face_app import FaceExtractor
from .logging_config import get_logger
from .recognition.embedding import Identity, ReferenceSet, to_embedding
from .recognition.matching import Matched, MatchResult, NoMatch, best_distances, match
from .reports import AttendanceSummary, summarize
from .store import SupabaseEmbeddingStore
from .utils.timing import retry_with_backoff

logger = get_logger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class CheckInResult:
    match: MatchResult
    attendance: Optional[AttendanceOutcome] = None

    @property
    def matched(self) -> bool:
        return isinstance(self.match, Matched)


@dataclass(frozen=True)
class RegistrationResult:
    identity: Identity
    samples: int


class AttendanceMatcherService:
    """
    Wires extractor, embedding store and attendance recorder together.

    Args:
        config: Service configuration
        extractor: Initialized face extractor
        store: Embedding store
        recorder: Attendance recorder
        clock: Returns local "now"; injectable for tests
    """

    def __init__(
        self,
        config: Config,
        extractor: FaceExtractor,
        store: SupabaseEmbeddingStore,
        recorder: SupabaseAttendanceRecorder,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.config = config
        self.extractor = extractor
        self.store = store
        self.recorder = recorder
        self.clock = clock
        self._sleep = sleep

    def _with_retry(self, func: Callable[[], T]) -> T:
        kwargs = {'sleep': self._sleep} if self._sleep is not None else {}
        return retry_with_backoff(
            func,
            max_attempts=self.config.store_retry_attempts,
            initial_delay=self.config.store_retry_delay,
            backoff_factor=self.config.store_retry_backoff,
            retry_on=(StoreUnavailable,),
            **kwargs,
        )

    def load_reference_set(self) -> ReferenceSet:
        return self._with_retry(self.store.fetch_all)

    def match_embedding(self, probe: np.ndarray) -> MatchResult:
        """
        Match an already extracted embedding against a fresh reference set.

        Raises:
            DimensionMismatch, InvalidThreshold: Wiring/configuration faults
            StoreUnavailable: If the store stays unreachable after retries
        """
        reference_set = self.load_reference_set()

        try:
            result = match(probe, reference_set, self.config.match_threshold)
        except (DimensionMismatch, InvalidThreshold) as e:
            logger.error(f'❌ Matcher misconfigured: {e}')
            raise

        if logger.isEnabledFor(logging.DEBUG):
            nearest = sorted(best_distances(probe, reference_set), key=lambda c: c[1])[:3]
            logger.debug('Nearest identities: ' + ', '.join(
                f'{identity.identity_id}={distance:.3f}' for identity, distance in nearest
            ))

        if isinstance(result, Matched):
            logger.info(
                f'✅ Recognized {result.identity.name} ({result.identity.identity_id}) '
                f'distance={result.distance:.3f}'
            )
        elif result.distance is None:
            logger.warning('No reference embeddings enrolled, cannot match')
        else:
            logger.info(
                f'Face not recognized (best distance {result.distance:.3f} '
                f'>= {self.config.match_threshold})'
            )
        return result

    def identify(self, image: np.ndarray) -> MatchResult:
        """
        Identify the person in a captured image.

        Raises:
            FaceNotFound: If no usable face is in the image
        """
        probe = self.extractor.extract(image)
        return self.match_embedding(probe)

    def check_in(
        self,
        image: np.ndarray,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> CheckInResult:
        """
        Identify the person in the image and record today's attendance.

        An unrecognized face yields a CheckInResult with no attendance.
        """
        result = self.identify(image)
        if isinstance(result, NoMatch):
            return CheckInResult(match=result)

        now = self.clock()
        outcome = self._with_retry(lambda: record_attendance(
            self.recorder,
            result.identity.identity_id,
            now,
            cutoff=self.config.late_cutoff,
            location=location or self.config.default_location,
            notes=notes,
        ))
        return CheckInResult(match=result, attendance=outcome)

    def register_embedding(
        self,
        identity_id: str,
        embedding: np.ndarray,
        name: Optional[str] = None,
        employee_id: Optional[str] = None,
        department: Optional[str] = None,
    ) -> RegistrationResult:
        """
        Bind an embedding to an identity, creating the profile if needed.

        Earlier samples of the identity are kept.
        """
        if not identity_id or not identity_id.strip():
            raise ValueError('identity_id cannot be empty')

        embedding = to_embedding(embedding)
        if embedding.size != self.config.embedding_dim:
            raise DimensionMismatch(
                expected=self.config.embedding_dim,
                actual=embedding.size,
                identity_id=identity_id,
            )

        identity = self._with_retry(lambda: self.store.ensure_profile(
            identity_id,
            name=name or identity_id,
            employee_id=employee_id,
            department=department,
        ))
        samples = self._with_retry(lambda: self.store.append(identity_id, embedding))

        changes = {
            key: value
            for key, value in (('employee_id', employee_id), ('department', department))
            if value is not None and value != getattr(identity, key)
        }
        if changes:
            self._with_retry(lambda: self.store.update_profile(identity_id, **changes))
            identity = dataclasses.replace(identity, **changes)

        return RegistrationResult(identity=identity, samples=samples)

    def register_face(
        self,
        identity_id: str,
        image: np.ndarray,
        name: Optional[str] = None,
        employee_id: Optional[str] = None,
        department: Optional[str] = None,
    ) -> RegistrationResult:
        """Extract an embedding from the image and register it."""
        embedding = self.extractor.extract(image)
        return self.register_embedding(
            identity_id,
            embedding,
            name=name,
            employee_id=employee_id,
            department=department,
        )

    def attendance_summary(self, day: Optional[date] = None) -> AttendanceSummary:
        day = day or self.clock().date()
        total = self._with_retry(self.store.count_identities)
        records = self._with_retry(lambda: self.recorder.list_for_date(day))
        return summarize(day.isoformat(), total, records)

    def today_attendance(self) -> List[AttendanceRecord]:
        day = self.clock().date()
        return self._with_retry(lambda: self.recorder.list_for_date(day))

    def recent_attendance(self, limit: int = 20) -> List[AttendanceRecord]:
        return self._with_retry(lambda: self.recorder.list_recent(limit))

    def attendance_records(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        identity_id: Optional[str] = None,
        status: Optional[AttendanceStatus] = None,
    ) -> List[AttendanceRecord]:
        """
        Filtered attendance history, newest first.

        Raises:
            ValueError: If date_from is after date_to
        """
        if date_from is not None and date_to is not None and date_from > date_to:
            raise ValueError(f'date_from {date_from} is after date_to {date_to}')

        return self._with_retry(lambda: self.recorder.list_records(
            date_from=date_from,
            date_to=date_to,
            identity_id=identity_id,
            status=status,
        ))
