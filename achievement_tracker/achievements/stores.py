"""
Storage contracts for the two backing stores, with in-memory implementations.

The reference authority store owns workflow state; the content store owns
achievement documents. Neither knows about the other. Every call accepts an
optional Deadline which is checked before the call does any work.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set

from .deadline import Deadline, check_deadline
from .enums import Status
from .errors import ConflictError, NotFoundError
from .primitives import generate_ulid
from .schemas import (
    AchievementContent,
    AchievementReference,
    ReferenceFilter,
    ReferencePage,
)

# Never changed by conditional_update
IMMUTABLE_REFERENCE_FIELDS = frozenset({"id", "student_id", "content_id", "created_at"})

# Replaced by ContentStore.update
MUTABLE_CONTENT_FIELDS = (
    "title",
    "description",
    "details",
    "attachments",
    "tags",
    "points",
    "updated_at",
)


def check_update_fields(fields: Dict[str, Any]) -> None:
    forbidden = IMMUTABLE_REFERENCE_FIELDS.intersection(fields)
    if forbidden:
        raise ValueError(f"Immutable reference fields cannot be updated: {sorted(forbidden)}")


class ReferenceStore(ABC):
    """Reference authority store contract."""

    @abstractmethod
    def create(
        self, reference: AchievementReference, deadline: Optional[Deadline] = None
    ) -> AchievementReference:
        """Persist a new reference. Raises ConflictError if the id exists."""

    @abstractmethod
    def get(
        self, reference_id: str, deadline: Optional[Deadline] = None
    ) -> Optional[AchievementReference]:
        """Return the reference or None."""

    @abstractmethod
    def conditional_update(
        self,
        reference_id: str,
        expected_status: Status,
        fields: Dict[str, Any],
        deadline: Optional[Deadline] = None,
    ) -> bool:
        """Apply ``fields`` only if the persisted status is ``expected_status``.

        Returns False when zero records were affected.
        """

    @abstractmethod
    def list(
        self, criteria: ReferenceFilter, deadline: Optional[Deadline] = None
    ) -> ReferencePage:
        """Return one page of references, newest first.

        Deleted references are excluded unless ``criteria.status`` is deleted.
        """

    @abstractmethod
    def content_ids(self, deadline: Optional[Deadline] = None) -> Set[str]:
        """Return every content id referenced by any record."""


class ContentStore(ABC):
    """Content store contract. Holds no workflow knowledge."""

    @abstractmethod
    def create(
        self, content: AchievementContent, deadline: Optional[Deadline] = None
    ) -> str:
        """Persist new content and return its assigned id."""

    @abstractmethod
    def get(
        self, content_id: str, deadline: Optional[Deadline] = None
    ) -> Optional[AchievementContent]:
        """Return the content or None."""

    @abstractmethod
    def update(
        self,
        content_id: str,
        content: AchievementContent,
        deadline: Optional[Deadline] = None,
    ) -> None:
        """Replace the mutable fields. Raises NotFoundError if absent."""

    @abstractmethod
    def delete(self, content_id: str, deadline: Optional[Deadline] = None) -> bool:
        """Remove the content. Returns False if nothing was removed."""

    @abstractmethod
    def list_ids(self, deadline: Optional[Deadline] = None) -> List[str]:
        """Return all content ids."""


class InMemoryReferenceStore(ReferenceStore):
    """Thread-safe in-memory reference store for tests and local runs."""

    def __init__(self) -> None:
        self._records: Dict[str, AchievementReference] = {}
        self._lock = threading.Lock()

    def create(self, reference, deadline=None):
        check_deadline(deadline, "reference.create")
        with self._lock:
            if reference.id in self._records:
                raise ConflictError(
                    f"Achievement reference '{reference.id}' already exists"
                )
            self._records[reference.id] = reference.model_copy(deep=True)
        return reference

    def get(self, reference_id, deadline=None):
        check_deadline(deadline, "reference.get")
        with self._lock:
            record = self._records.get(reference_id)
            return record.model_copy(deep=True) if record else None

    def conditional_update(self, reference_id, expected_status, fields, deadline=None):
        check_deadline(deadline, "reference.conditional_update")
        check_update_fields(fields)
        with self._lock:
            record = self._records.get(reference_id)
            if record is None or record.status != expected_status:
                return False
            self._records[reference_id] = record.model_copy(update=dict(fields))
            return True

    def list(self, criteria, deadline=None):
        check_deadline(deadline, "reference.list")
        with self._lock:
            records = list(self._records.values())

        if criteria.status is not None:
            records = [r for r in records if r.status == criteria.status]
        else:
            records = [r for r in records if r.status != Status.DELETED]
        if criteria.student_ids is not None:
            owners = set(criteria.student_ids)
            records = [r for r in records if r.student_id in owners]

        records.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        page = records[criteria.offset : criteria.offset + criteria.limit]
        return ReferencePage(
            items=[r.model_copy(deep=True) for r in page], total=len(records)
        )

    def content_ids(self, deadline=None):
        check_deadline(deadline, "reference.content_ids")
        with self._lock:
            return {r.content_id for r in self._records.values()}


class InMemoryContentStore(ContentStore):
    """Thread-safe in-memory content store for tests and local runs."""

    def __init__(self) -> None:
        self._documents: Dict[str, AchievementContent] = {}
        self._lock = threading.Lock()

    def create(self, content, deadline=None):
        check_deadline(deadline, "content.create")
        content_id = generate_ulid()
        with self._lock:
            self._documents[content_id] = content.model_copy(
                update={"id": content_id}, deep=True
            )
        return content_id

    def get(self, content_id, deadline=None):
        check_deadline(deadline, "content.get")
        with self._lock:
            document = self._documents.get(content_id)
            return document.model_copy(deep=True) if document else None

    def update(self, content_id, content, deadline=None):
        check_deadline(deadline, "content.update")
        with self._lock:
            existing = self._documents.get(content_id)
            if existing is None:
                raise NotFoundError(f"Content '{content_id}' not found")
            changes = {field: getattr(content, field) for field in MUTABLE_CONTENT_FIELDS}
            self._documents[content_id] = existing.model_copy(update=changes, deep=True)

    def delete(self, content_id, deadline=None):
        check_deadline(deadline, "content.delete")
        with self._lock:
            return self._documents.pop(content_id, None) is not None

    def list_ids(self, deadline=None):
        check_deadline(deadline, "content.list_ids")
        with self._lock:
            return sorted(self._documents)
