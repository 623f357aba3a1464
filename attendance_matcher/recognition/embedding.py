"""
Embedding data model.

Embeddings are plain 1-D numpy arrays, copied on creation and flagged
read-only so a stored reference can never be mutated in place. Identities
and the reference set built around them are immutable value objects.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np


def to_embedding(values: Iterable[float]) -> np.ndarray:
    """
    Convert a sequence of numbers into an immutable embedding.

    Args:
        values: Ordered numeric values (list, tuple or array)

    Returns:
        Read-only float64 vector

    Raises:
        ValueError: If values are not a non-empty flat vector of finite numbers
    """
    vector = np.array(values, dtype=np.float64)

    if vector.ndim != 1:
        raise ValueError(f'Embedding must be a 1D vector, got shape {vector.shape}')
    if vector.size == 0:
        raise ValueError('Embedding must not be empty')
    if not np.all(np.isfinite(vector)):
        raise ValueError('Embedding contains non-finite values')

    vector.setflags(write=False)
    return vector


def embedding_to_list(embedding: np.ndarray) -> List[float]:
    """Serialize an embedding as a JSON-friendly list of floats."""
    return [float(v) for v in embedding]


@dataclass(frozen=True)
class Identity:
    """An enrolled person. Only `identity_id` takes part in matching."""

    identity_id: str
    name: str
    employee_id: Optional[str] = None
    department: Optional[str] = None


@dataclass(frozen=True, eq=False)
class ReferenceEntry:
    """One stored embedding and the identity that owns it."""

    identity: Identity
    embedding: np.ndarray


class ReferenceSet:
    """
    Ordered collection of (identity, embedding) pairs.

    Order is the traversal order used for tie-breaking during matching.
    An identity may appear in several entries; nothing is deduplicated.
    """

    def __init__(self, entries: Iterable[ReferenceEntry] = ()):
        self._entries: Tuple[ReferenceEntry, ...] = tuple(entries)

    @classmethod
    def from_pairs(
        cls,
        pairs: Iterable[Tuple[Identity, Iterable[float]]]
    ) -> 'ReferenceSet':
        """
        Build a reference set from (identity, vector) pairs.

        Args:
            pairs: Identity and raw embedding values, in traversal order

        Returns:
            ReferenceSet with every vector converted via to_embedding
        """
        return cls(
            ReferenceEntry(identity=identity, embedding=to_embedding(values))
            for identity, values in pairs
        )

    @classmethod
    def from_identities(
        cls,
        identities: Iterable[Tuple[Identity, Sequence[Iterable[float]]]]
    ) -> 'ReferenceSet':
        """Build a reference set from identities that own several vectors each."""
        return cls.from_pairs(
            (identity, values)
            for identity, vectors in identities
            for values in vectors
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ReferenceEntry]:
        return iter(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    @property
    def entries(self) -> Tuple[ReferenceEntry, ...]:
        return self._entries

    def identities(self) -> List[Identity]:
        """Distinct identities in first-seen order."""
        seen = {}
        for entry in self._entries:
            seen.setdefault(entry.identity.identity_id, entry.identity)
        return list(seen.values())

    def embeddings_for(self, identity_id: str) -> List[np.ndarray]:
        return [
            entry.embedding
            for entry in self._entries
            if entry.identity.identity_id == identity_id
        ]
