"""
Embedding matching module.

Matches a probe embedding against the reference set using Euclidean
distance. An identity with several stored embeddings is as close as its
nearest one; the globally nearest identity wins and is accepted only if
its distance is strictly below the threshold.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple, Union

import numpy as np

from ..exceptions import DimensionMismatch, InvalidThreshold
from .embedding import Identity, ReferenceSet

DEFAULT_THRESHOLD = 0.6


class NoMatchReason(str, Enum):
    EMPTY_REFERENCE_SET = 'empty_reference_set'
    ABOVE_THRESHOLD = 'above_threshold'


@dataclass(frozen=True)
class Matched:
    """Probe accepted as `identity` at `distance`."""

    identity: Identity
    distance: float

    @property
    def matched(self) -> bool:
        return True


@dataclass(frozen=True)
class NoMatch:
    """
    Probe rejected.

    `distance` is the best distance found, or None when the reference
    set was empty.
    """

    reason: NoMatchReason
    distance: Union[float, None] = None

    @property
    def matched(self) -> bool:
        return False


MatchResult = Union[Matched, NoMatch]


def validate_threshold(threshold: float) -> float:
    """
    Check that a threshold is a finite, non-negative number.

    Raises:
        InvalidThreshold: If the threshold is negative, NaN or infinite
    """
    try:
        value = float(threshold)
    except (TypeError, ValueError):
        raise InvalidThreshold(threshold) from None

    if not math.isfinite(value) or value < 0:
        raise InvalidThreshold(threshold)
    return value


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    """
    Euclidean distance between two embeddings.

    Raises:
        DimensionMismatch: If the embeddings differ in length
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatch(expected=a.size, actual=b.size)
    return float(np.sqrt(np.sum((a - b) ** 2)))


def faces_match(a: np.ndarray, b: np.ndarray, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """True if two embeddings are closer than the threshold."""
    return euclidean_distance(a, b) < validate_threshold(threshold)


def _distances(probe: np.ndarray, reference_set: ReferenceSet) -> np.ndarray:
    probe = np.asarray(probe, dtype=np.float64)
    if probe.ndim != 1:
        raise ValueError(f'Probe must be a 1D vector, got shape {probe.shape}')
    if not np.all(np.isfinite(probe)):
        raise ValueError('Probe contains non-finite values')

    for entry in reference_set:
        if entry.embedding.shape != probe.shape:
            raise DimensionMismatch(
                expected=probe.size,
                actual=entry.embedding.size,
                identity_id=entry.identity.identity_id,
            )

    matrix = np.vstack([entry.embedding for entry in reference_set])
    return np.sqrt(np.sum((matrix - probe) ** 2, axis=1))


def best_distances(
    probe: np.ndarray,
    reference_set: ReferenceSet
) -> List[Tuple[Identity, float]]:
    """
    Minimum distance per identity, in first-seen order.

    Args:
        probe: Embedding to compare
        reference_set: Labelled reference embeddings

    Returns:
        List of (identity, min distance) pairs
    """
    if not reference_set:
        return []

    distances = _distances(probe, reference_set)
    best: dict = {}
    for entry, distance in zip(reference_set, distances):
        key = entry.identity.identity_id
        if key not in best or distance < best[key][1]:
            best[key] = (entry.identity, float(distance))
    return list(best.values())


def match(
    probe: np.ndarray,
    reference_set: ReferenceSet,
    threshold: float = DEFAULT_THRESHOLD
) -> MatchResult:
    """
    Match a probe embedding against the reference set.

    The minimum over all entries is also the minimum over each identity's
    nearest embedding, so a single argmin gives the winning identity.
    np.argmin returns the first occurrence of the minimum, which makes
    ties resolve to the earliest entry in traversal order.

    Args:
        probe: Embedding to match
        reference_set: Labelled reference embeddings
        threshold: Acceptance distance (strict less-than)

    Returns:
        Matched(identity, distance) or NoMatch(reason, distance)

    Raises:
        InvalidThreshold: If threshold is negative or not finite
        DimensionMismatch: If any reference differs in length from probe
    """
    threshold = validate_threshold(threshold)

    if not reference_set:
        return NoMatch(reason=NoMatchReason.EMPTY_REFERENCE_SET)

    distances = _distances(probe, reference_set)
    best_idx = int(np.argmin(distances))
    best_distance = float(distances[best_idx])

    if best_distance < threshold:
        return Matched(
            identity=reference_set.entries[best_idx].identity,
            distance=best_distance,
        )

    return NoMatch(reason=NoMatchReason.ABOVE_THRESHOLD, distance=best_distance)
