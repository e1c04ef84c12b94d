"""
Duplicate detection against persisted records.

A record is identified by its external id (e.g. a T247 ID column) and by its
exact title. Both keys are stored with unique constraints, so the lookup here
is two indexed queries at most and a racing insert fails in the database.
"""

import hashlib
from dataclasses import dataclass
from typing import Any, Optional

from tendertrack.database.models import Tender


@dataclass(frozen=True)
class IdentityKey:
    field: str  # "external_id" or "title_digest"
    value: str


def title_digest(title: str) -> str:
    """SHA-256 hex digest of the exact, case-sensitive title."""
    return hashlib.sha256(title.encode("utf-8")).hexdigest()


def identity_keys(title: str, external_id: Optional[str] = None) -> list[IdentityKey]:
    """Identity keys in lookup order: external id first, then title."""
    keys = []
    if external_id:
        keys.append(IdentityKey("external_id", external_id))
    if title:
        keys.append(IdentityKey("title_digest", title_digest(title)))
    return keys


class DuplicateDetector:
    """
    Finds the persisted record a candidate row duplicates.

    Candidates are any objects with ``title`` and ``external_id`` attributes.
    Keys of candidates accepted earlier in the same upload are remembered so
    repeated rows within one file are caught without a query.
    """

    def __init__(self, store, model=Tender):
        self.store = store
        self.model = model
        self._seen: set[IdentityKey] = set()

    def keys(self, candidate: Any) -> list[IdentityKey]:
        return identity_keys(candidate.title, getattr(candidate, "external_id", None))

    def seen_in_upload(self, candidate: Any) -> bool:
        return any(key in self._seen for key in self.keys(candidate))

    def remember(self, candidate: Any) -> None:
        self._seen.update(self.keys(candidate))

    def find_existing(self, candidate: Any):
        """Persisted record sharing any identity key with the candidate, or None."""
        for key in self.keys(candidate):
            existing = self.store.find_by_identity(key, self.model)
            if existing is not None:
                return existing
        return None

    def is_duplicate(self, candidate: Any) -> bool:
        if self.seen_in_upload(candidate):
            return True
        return self.find_existing(candidate) is not None
