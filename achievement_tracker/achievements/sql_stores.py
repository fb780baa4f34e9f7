"""
SQLAlchemy implementations of the store contracts.

SqlReferenceStore is the relational reference authority store. SqlContentStore
keeps each achievement's content as a JSON document in a separate database.
Each call runs in its own short transaction so concurrent requests never share
a session.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Set

from sqlalchemy import delete, desc, func, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..db.models import AchievementDocumentModel, AchievementReferenceModel
from .deadline import Deadline, check_deadline
from .enums import Status
from .errors import ConflictError, NotFoundError, StoreError
from .primitives import generate_ulid
from .schemas import (
    AchievementContent,
    AchievementReference,
    ReferenceFilter,
    ReferencePage,
)
from .stores import (
    MUTABLE_CONTENT_FIELDS,
    ContentStore,
    ReferenceStore,
    check_update_fields,
)


@contextmanager
def _transaction(
    session_factory: sessionmaker, deadline: Optional[Deadline], operation: str
) -> Iterator[Session]:
    """Open a session, begin a transaction and translate driver errors."""
    check_deadline(deadline, operation)
    session = session_factory()
    try:
        with session.begin():
            if deadline is not None and session.get_bind().dialect.name == "postgresql":
                timeout_ms = max(1, int(deadline.remaining() * 1000))
                session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
            yield session
    except IntegrityError as exc:
        raise ConflictError(
            f"{operation} violated a uniqueness constraint", operation=operation
        ) from exc
    except SQLAlchemyError as exc:
        raise StoreError(f"{operation} failed: {exc}", operation=operation) from exc
    finally:
        session.close()


def _to_reference(row: AchievementReferenceModel) -> AchievementReference:
    return AchievementReference.model_validate(row.to_dict())


def _column_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v.value if isinstance(v, Status) else v for k, v in fields.items()}


class SqlReferenceStore(ReferenceStore):
    """Reference authority store backed by a relational database."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def create(self, reference, deadline=None):
        with _transaction(self._session_factory, deadline, "reference.create") as session:
            if session.get(AchievementReferenceModel, reference.id) is not None:
                raise ConflictError(
                    f"Achievement reference '{reference.id}' already exists"
                )
            session.add(
                AchievementReferenceModel(
                    id=reference.id,
                    student_id=reference.student_id,
                    content_id=reference.content_id,
                    status=reference.status.value,
                    submitted_at=reference.submitted_at,
                    verified_at=reference.verified_at,
                    verified_by=reference.verified_by,
                    rejection_note=reference.rejection_note,
                    created_at=reference.created_at,
                    updated_at=reference.updated_at,
                )
            )
        return reference

    def get(self, reference_id, deadline=None):
        with _transaction(self._session_factory, deadline, "reference.get") as session:
            row = session.get(AchievementReferenceModel, reference_id)
            return _to_reference(row) if row is not None else None

    def conditional_update(self, reference_id, expected_status, fields, deadline=None):
        check_update_fields(fields)
        stmt = (
            update(AchievementReferenceModel)
            .where(
                AchievementReferenceModel.id == reference_id,
                AchievementReferenceModel.status == expected_status.value,
            )
            .values(**_column_values(fields))
            .execution_options(synchronize_session=False)
        )
        with _transaction(
            self._session_factory, deadline, "reference.conditional_update"
        ) as session:
            result = session.execute(stmt)
            return result.rowcount == 1

    def list(self, criteria: ReferenceFilter, deadline=None) -> ReferencePage:
        conditions = []
        if criteria.status is not None:
            conditions.append(AchievementReferenceModel.status == criteria.status.value)
        else:
            conditions.append(AchievementReferenceModel.status != Status.DELETED.value)
        if criteria.student_ids is not None:
            conditions.append(AchievementReferenceModel.student_id.in_(criteria.student_ids))

        query = (
            select(AchievementReferenceModel)
            .where(*conditions)
            .order_by(
                desc(AchievementReferenceModel.created_at),
                desc(AchievementReferenceModel.id),
            )
            .offset(criteria.offset)
            .limit(criteria.limit)
        )
        count_query = (
            select(func.count()).select_from(AchievementReferenceModel).where(*conditions)
        )

        with _transaction(self._session_factory, deadline, "reference.list") as session:
            total = session.execute(count_query).scalar_one()
            rows = session.execute(query).scalars().all()
            return ReferencePage(items=[_to_reference(r) for r in rows], total=total)

    def content_ids(self, deadline=None) -> Set[str]:
        with _transaction(
            self._session_factory, deadline, "reference.content_ids"
        ) as session:
            return set(
                session.execute(select(AchievementReferenceModel.content_id)).scalars()
            )


class SqlContentStore(ContentStore):
    """Content store keeping achievement content as JSON documents."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def create(self, content, deadline=None) -> str:
        content_id = generate_ulid()
        document = content.model_copy(update={"id": content_id}).model_dump(mode="json")
        with _transaction(self._session_factory, deadline, "content.create") as session:
            session.add(
                AchievementDocumentModel(
                    id=content_id,
                    student_id=content.student_id,
                    document=document,
                    created_at=content.created_at,
                    updated_at=content.updated_at,
                )
            )
        return content_id

    def get(self, content_id, deadline=None) -> Optional[AchievementContent]:
        with _transaction(self._session_factory, deadline, "content.get") as session:
            row = session.get(AchievementDocumentModel, content_id)
            if row is None:
                return None
            return AchievementContent.model_validate(row.document)

    def update(self, content_id, content, deadline=None) -> None:
        replacement = content.model_dump(mode="json")
        with _transaction(self._session_factory, deadline, "content.update") as session:
            row = session.get(AchievementDocumentModel, content_id)
            if row is None:
                raise NotFoundError(f"Content '{content_id}' not found")
            document = dict(row.document)
            for field in MUTABLE_CONTENT_FIELDS:
                document[field] = replacement[field]
            # Reassign so the JSON column is flagged dirty
            row.document = document
            row.updated_at = content.updated_at

    def delete(self, content_id, deadline=None) -> bool:
        stmt = delete(AchievementDocumentModel).where(
            AchievementDocumentModel.id == content_id
        )
        with _transaction(self._session_factory, deadline, "content.delete") as session:
            return session.execute(stmt).rowcount > 0

    def list_ids(self, deadline=None) -> List[str]:
        query = select(AchievementDocumentModel.id).order_by(AchievementDocumentModel.id)
        with _transaction(self._session_factory, deadline, "content.list_ids") as session:
            return list(session.execute(query).scalars())
