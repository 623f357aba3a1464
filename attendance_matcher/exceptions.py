"""
Error taxonomy for Attendance Matcher.

Recoverable conditions (no face, backend down) and configuration faults
(dimension mismatch, bad threshold) are separate classes so callers can
react to each without string matching. A rejected match is not an error:
it is returned as a `NoMatch` result.
"""


class AttendanceMatcherError(Exception):
    """Base exception for the attendance matcher."""


class FaceNotFound(AttendanceMatcherError):
    """Raised when no usable face is found in a captured image."""


class ExtractorNotReady(AttendanceMatcherError):
    """Raised when the embedding extractor is used before initialization."""


class DimensionMismatch(AttendanceMatcherError):
    """Raised when two embeddings of different length are compared."""

    def __init__(self, expected: int, actual: int, identity_id: str = ''):
        self.expected = expected
        self.actual = actual
        self.identity_id = identity_id
        owner = f' (identity {identity_id})' if identity_id else ''
        super().__init__(
            f'Embedding dimension mismatch: expected {expected}, got {actual}{owner}'
        )


class InvalidThreshold(AttendanceMatcherError):
    """Raised when a match threshold is negative or not a finite number."""

    def __init__(self, threshold: float):
        self.threshold = threshold
        super().__init__(f'Invalid match threshold: {threshold!r}')


class StoreUnavailable(AttendanceMatcherError):
    """Raised when the embedding store or attendance recorder cannot be reached."""


class BackendRequestError(AttendanceMatcherError):
    """Raised when the backend rejects a request (4xx); retrying will not help."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(f'Backend rejected request ({status_code}): {message}')
