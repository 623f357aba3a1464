"""
Configuration module for Attendance Matcher.

Loads configuration from environment variables with sensible defaults.
All settings are immutable after initialization.
"""

import os
from dataclasses import dataclass
from datetime import time
from typing import Tuple


@dataclass(frozen=True)
class Config:
    """
    Immutable configuration for Attendance Matcher.

    Backend Integration:
        supabase_url: Base URL of the hosted backend (e.g., https://xyz.supabase.co)
        supabase_key: API key sent as `apikey` and bearer token
        request_timeout: Timeout in seconds for every backend request

    Service Identity:
        service_name: Name of this service instance
        kiosk_id: Logical identifier of the capture point (for logging)
        api_port: Port for Flask HTTP server

    Matching:
        match_threshold: Euclidean distance threshold (lower = stricter)
        embedding_dim: Expected embedding length for this deployment

    Attendance:
        late_cutoff: Local time at/after which a check-in is late
        default_location: Location recorded when the caller gives none

    Store Retries:
        store_retry_attempts: Attempts for a backend call before giving up
        store_retry_delay: Initial delay between attempts in seconds
        store_retry_backoff: Delay multiplier after each failed attempt

    InsightFace:
        insightface_model: Model pack name passed to FaceAnalysis
        insightface_det_size: Detection size for InsightFace (width, height)

    Quality Thresholds:
        min_face_height_pixels: Minimum face height in pixels to accept
        min_blur_variance: Minimum Laplacian variance (higher = sharper required)

    Preprocessing:
        enable_preprocessing: Enable image enhancement before detection
        clahe_clip_limit: CLAHE contrast limiting (higher = more contrast)
        denoise_strength: Denoising strength (0-10, higher = more smoothing)

    System:
        debug_mode: Enable debug logging
    """

    # Backend
    supabase_url: str
    supabase_key: str
    request_timeout: float

    # Service
    service_name: str
    kiosk_id: str
    api_port: int

    # Matching
    match_threshold: float
    embedding_dim: int

    # Attendance
    late_cutoff: time
    default_location: str

    # Retries
    store_retry_attempts: int
    store_retry_delay: float
    store_retry_backoff: float

    # InsightFace
    insightface_model: str
    insightface_det_size: Tuple[int, int]

    # Quality
    min_face_height_pixels: int
    min_blur_variance: float

    # Preprocessing
    enable_preprocessing: bool
    clahe_clip_limit: float
    denoise_strength: int

    # System
    debug_mode: bool


def parse_cutoff(raw: str) -> time:
    """
    Parse a HH:MM cutoff string.

    Args:
        raw: Time of day such as "09:30"

    Returns:
        datetime.time for the cutoff

    Raises:
        ValueError: If the string is not a valid HH:MM time
    """
    hours, _, minutes = raw.strip().partition(':')
    return time(hour=int(hours), minute=int(minutes or 0))


def parse_det_size(raw: str) -> Tuple[int, int]:
    """Parse "640x640" or "640,640" into a (width, height) tuple."""
    parts = raw.lower().replace('x', ',').split(',')
    if len(parts) != 2:
        raise ValueError(f'Invalid detection size: {raw!r}')
    return int(parts[0]), int(parts[1])


def load_config() -> Config:
    """
    Load configuration from environment variables.

    Returns:
        Config: Immutable configuration object
    """
    service_name = os.getenv('SERVICE_NAME', 'attendance-matcher')

    return Config(
        # Backend
        supabase_url=os.getenv('SUPABASE_URL', 'http://localhost:54321').rstrip('/'),
        supabase_key=os.getenv('SUPABASE_KEY', ''),
        request_timeout=float(os.getenv('REQUEST_TIMEOUT', '10')),

        # Service
        service_name=service_name,
        kiosk_id=os.getenv('KIOSK_ID', service_name),
        api_port=int(os.getenv('API_PORT', '5001')),

        # Matching
        match_threshold=float(os.getenv('MATCH_THRESHOLD', '0.6')),
        embedding_dim=int(os.getenv('EMBEDDING_DIM', '512')),

        # Attendance
        late_cutoff=parse_cutoff(os.getenv('LATE_CUTOFF', '09:30')),
        default_location=os.getenv('DEFAULT_LOCATION', 'Main Office'),

        # Retries
        store_retry_attempts=int(os.getenv('STORE_RETRY_ATTEMPTS', '3')),
        store_retry_delay=float(os.getenv('STORE_RETRY_DELAY', '0.5')),
        store_retry_backoff=float(os.getenv('STORE_RETRY_BACKOFF', '2.0')),

        # InsightFace
        insightface_model=os.getenv('INSIGHTFACE_MODEL', 'buffalo_l'),
        insightface_det_size=parse_det_size(os.getenv('INSIGHTFACE_DET_SIZE', '640x640')),

        # Quality
        min_face_height_pixels=int(os.getenv('MIN_FACE_HEIGHT', '40')),
        min_blur_variance=float(os.getenv('MIN_BLUR_VAR', '50.0')),

        # Preprocessing
        enable_preprocessing=os.getenv('ENABLE_PREPROCESSING', 'true').lower() == 'true',
        clahe_clip_limit=float(os.getenv('CLAHE_CLIP', '2.0')),
        denoise_strength=int(os.getenv('DENOISE_STRENGTH', '5')),

        # System
        debug_mode=os.getenv('DEBUG', 'false').lower() == 'true',
    )
