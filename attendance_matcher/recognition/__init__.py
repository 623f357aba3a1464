"""
Recognition algorithms package.

Contains modules for:
- Embedding data model
- Embedding matching
- Face quality assessment
- Image preprocessing
"""

from .embedding import Identity, ReferenceEntry, ReferenceSet, to_embedding
from .matching import (
    DEFAULT_THRESHOLD,
    Matched,
    MatchResult,
    NoMatch,
    NoMatchReason,
    best_distances,
    euclidean_distance,
    faces_match,
    match,
)
from .preprocessing import enhance_capture
from .quality import FaceQuality, assess_face, compute_blur_score

__all__ = [
    'Identity',
    'ReferenceEntry',
    'ReferenceSet',
    'to_embedding',
    'DEFAULT_THRESHOLD',
    'Matched',
    'MatchResult',
    'NoMatch',
    'NoMatchReason',
    'best_distances',
    'euclidean_distance',
    'faces_match',
    'match',
    'enhance_capture',
    'FaceQuality',
    'assess_face',
    'compute_blur_score',
]
