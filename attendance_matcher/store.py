"""
Embedding store module.

Loads enrolled identities and their reference embeddings from the backend
and appends newly registered embeddings.

Tables:
    profiles(user_id, name, email, employee_id, department, created_at, updated_at)
    face_data(user_id, descriptors, created_at, updated_at)

`descriptors` is a JSON array of embeddings. Registration appends to it,
so an identity accumulates reference samples over time.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

import numpy as np

from .backend import BackendClient
from .exceptions import DimensionMismatch
from .logging_config import get_logger
from .recognition.embedding import (
    Identity,
    ReferenceEntry,
    ReferenceSet,
    embedding_to_list,
    to_embedding,
)

logger = get_logger(__name__)

PLACEHOLDER_EMAIL_DOMAIN = 'example.com'


def _now_iso() -> str:
    return datetime.now().isoformat(timespec='seconds')


def parse_descriptors(raw: Any) -> List[np.ndarray]:
    """
    Parse a stored `descriptors` value.

    Accepts a JSON array of arrays, a single flat array (legacy rows
    that held one encoding) or either of those serialized as a string.

    Raises:
        ValueError: If the value cannot be read as embeddings
    """
    if isinstance(raw, str):
        raw = json.loads(raw)

    if not isinstance(raw, list) or not raw:
        raise ValueError('descriptors must be a non-empty list')

    if all(isinstance(v, (int, float)) for v in raw):
        return [to_embedding(raw)]

    return [to_embedding(values) for values in raw]


def _identity_from_row(row: Dict[str, Any]) -> Identity:
    return Identity(
        identity_id=row['user_id'],
        name=row.get('name') or row['user_id'],
        employee_id=row.get('employee_id'),
        department=row.get('department'),
    )


class SupabaseEmbeddingStore:
    """Embedding store backed by the `profiles` and `face_data` tables."""

    def __init__(self, client: BackendClient):
        self.client = client

    def fetch_all(self) -> ReferenceSet:
        """
        Load the full reference set.

        Identities are traversed in enrollment order (`face_data.created_at`,
        then `user_id`), embeddings in the order they were appended. Rows
        whose descriptors cannot be parsed are skipped with a warning.

        Returns:
            ReferenceSet (possibly empty)

        Raises:
            StoreUnavailable: If the backend cannot be reached
        """
        profiles = self.client.select('profiles', {
            'select': 'user_id,name,employee_id,department',
        })
        face_rows = self.client.select('face_data', {
            'select': 'user_id,descriptors',
            'order': 'created_at.asc,user_id.asc',
        })

        identities = {row['user_id']: _identity_from_row(row) for row in profiles}
        entries: List[ReferenceEntry] = []

        for row in face_rows:
            user_id = row.get('user_id')
            identity = identities.get(user_id)
            if identity is None:
                logger.warning(f'Face data for {user_id} has no profile, using id as name')
                identity = Identity(identity_id=user_id, name=user_id)

            try:
                descriptors = parse_descriptors(row.get('descriptors'))
            except (ValueError, TypeError) as e:
                logger.warning(f'Skipping unreadable descriptors for {user_id}: {e}')
                continue

            entries.extend(
                ReferenceEntry(identity=identity, embedding=embedding)
                for embedding in descriptors
            )

        logger.info(
            f'Loaded {len(entries)} embeddings for '
            f'{len({e.identity.identity_id for e in entries})} identities'
        )
        return ReferenceSet(entries)

    def embeddings_for(self, identity_id: str) -> List[np.ndarray]:
        """Stored embeddings of one identity, in append order."""
        rows = self.client.select('face_data', {
            'select': 'descriptors',
            'user_id': f'eq.{identity_id}',
        })
        if not rows or rows[0].get('descriptors') in (None, [], ''):
            return []
        return parse_descriptors(rows[0]['descriptors'])

    def append(self, identity_id: str, embedding: np.ndarray) -> int:
        """
        Append an embedding to an identity's stored samples.

        Prior samples are kept. The read-then-upsert is not atomic: two
        registrations for the same identity at the same moment can lose
        one sample, which the next registration recovers from.

        Args:
            identity_id: Identity to enroll the sample for
            embedding: Extracted embedding

        Returns:
            Number of samples now stored for the identity

        Raises:
            DimensionMismatch: If the embedding length differs from stored samples
            StoreUnavailable: If the backend cannot be reached
        """
        embedding = to_embedding(embedding)
        existing = self.embeddings_for(identity_id)

        if existing and existing[0].size != embedding.size:
            raise DimensionMismatch(
                expected=existing[0].size,
                actual=embedding.size,
                identity_id=identity_id,
            )

        descriptors = [embedding_to_list(e) for e in existing]
        descriptors.append(embedding_to_list(embedding))

        self.client.insert(
            'face_data',
            {
                'user_id': identity_id,
                'descriptors': descriptors,
                'updated_at': _now_iso(),
            },
            on_conflict='user_id',
            resolution='merge-duplicates',
        )

        logger.info(f'✅ Stored sample {len(descriptors)} for {identity_id}')
        return len(descriptors)

    def get_profile(self, identity_id: str) -> Optional[Identity]:
        rows = self.client.select('profiles', {
            'select': 'user_id,name,employee_id,department',
            'user_id': f'eq.{identity_id}',
        })
        return _identity_from_row(rows[0]) if rows else None

    def ensure_profile(
        self,
        identity_id: str,
        name: str,
        employee_id: Optional[str] = None,
        department: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Identity:
        """
        Return the identity's profile, creating it if missing.

        An existing profile is returned untouched; use update_profile to
        change its metadata.
        """
        profile = self.get_profile(identity_id)
        if profile is not None:
            return profile

        now = _now_iso()
        rows = self.client.insert('profiles', {
            'user_id': identity_id,
            'name': name,
            'email': email or f'{identity_id}@{PLACEHOLDER_EMAIL_DOMAIN}',
            'employee_id': employee_id,
            'department': department,
            'created_at': now,
            'updated_at': now,
        })
        logger.info(f'Created profile for {name} ({identity_id})')
        return _identity_from_row(rows[0]) if rows else Identity(
            identity_id=identity_id,
            name=name,
            employee_id=employee_id,
            department=department,
        )

    def update_profile(
        self,
        identity_id: str,
        name: Optional[str] = None,
        employee_id: Optional[str] = None,
        department: Optional[str] = None,
    ) -> None:
        """Update denormalized profile metadata; None values are left as they are."""
        values = {
            key: value
            for key, value in (
                ('name', name),
                ('employee_id', employee_id),
                ('department', department),
            )
            if value is not None
        }
        if not values:
            return

        values['updated_at'] = _now_iso()
        self.client.update('profiles', {'user_id': f'eq.{identity_id}'}, values)
        logger.debug(f'Updated profile {identity_id}: {sorted(values)}')

    def count_identities(self) -> int:
        return self.client.count('profiles')
