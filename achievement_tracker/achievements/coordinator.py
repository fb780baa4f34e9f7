"""
Consistency coordinator for the achievement lifecycle.

The coordinator is the only entry point callers use. It authorizes every
operation through the AccessPolicy and then talks to the two stores in a fixed
order. No transaction spans both stores:

- create writes content first, then the reference that points at it. If the
  reference write fails, the content is deleted under its own short deadline;
  if that also fails the orphan is logged for manual reconciliation.
- reads resolve the reference first (it decides status and access) and then
  fetch content by the stored pointer. Missing content is a data integrity
  failure, never a 404.
- transitions read the reference, authorize, check the status guard and then
  issue a conditional write keyed on the expected prior status. Losing that
  race is a Conflict.
- content edits (update, attach) re-read the reference after writing. If it
  left draft in the meantime the previous content is restored and the edit
  is a Conflict.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog
from pydantic import ValidationError as SchemaValidationError

from .deadline import Deadline
from .enums import TRANSITIONS, Operation, Status
from .errors import (
    ConflictError,
    DataIntegrityError,
    InvalidTransitionError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from .files import FileMetadata, FileStorage, FileUpload
from .policy import AccessPolicy, Principal
from .primitives import utc_now
from .schemas import (
    AchievementContent,
    AchievementCreate,
    AchievementReference,
    AchievementUpdate,
    Actor,
    Attachment,
    Pagination,
    ReferenceFilter,
    build_history,
    merge_view,
    normalize_details,
)
from .stores import ContentStore, ReferenceStore

logger = structlog.get_logger()

DEFAULT_COMPENSATION_TIMEOUT_SECONDS = 3.0
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_PAGE_SIZE = 100


def _schema_messages(exc: SchemaValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in error['loc']) or 'details'}: {error['msg']}"
        for error in exc.errors()
    ]


def reference_view(reference: AchievementReference) -> Dict[str, Any]:
    """Caller-facing view of the workflow record alone."""
    return reference.model_dump(mode="json", exclude={"content_id"})


class AchievementCoordinator:
    """Orchestrates achievement operations across both stores.

    Usage:
        coordinator = AchievementCoordinator(references, contents, policy, files)
        view = coordinator.create(actor, AchievementCreate(...), deadline=Deadline.after(5))
    """

    def __init__(
        self,
        references: ReferenceStore,
        contents: ContentStore,
        policy: AccessPolicy,
        files: Optional[FileStorage] = None,
        compensation_timeout_seconds: float = DEFAULT_COMPENSATION_TIMEOUT_SECONDS,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
    ):
        self.references = references
        self.contents = contents
        self.policy = policy
        self.files = files
        self.compensation_timeout_seconds = compensation_timeout_seconds
        self.max_upload_bytes = max_upload_bytes
        self.max_page_size = max_page_size

    # -------------------------------------------------------------------------
    # Shared steps
    # -------------------------------------------------------------------------

    def _load_reference(
        self, reference_id: str, deadline: Optional[Deadline]
    ) -> AchievementReference:
        reference = self.references.get(reference_id, deadline=deadline)
        if reference is None:
            raise NotFoundError("Achievement not found", reference_id=reference_id)
        return reference

    def _load_content(
        self, reference: AchievementReference, deadline: Optional[Deadline]
    ) -> AchievementContent:
        content = self.contents.get(reference.content_id, deadline=deadline)
        if content is None:
            logger.error(
                "orphan_reference",
                reference_id=reference.id,
                content_id=reference.content_id,
            )
            raise DataIntegrityError(
                "Achievement content is missing for an existing reference",
                reference_id=reference.id,
            )
        if content.student_id != reference.student_id:
            logger.error(
                "content_owner_mismatch",
                reference_id=reference.id,
                content_id=reference.content_id,
            )
            raise DataIntegrityError(
                "Achievement content belongs to a different student",
                reference_id=reference.id,
            )
        return content

    @staticmethod
    def _guard(reference: AchievementReference, operation: Operation) -> None:
        required, _ = TRANSITIONS[operation]
        if reference.status != required:
            raise InvalidTransitionError(
                operation=operation.value,
                current_status=reference.status.value,
                required_status=required.value,
            )

    def _authorized(
        self,
        actor: Actor,
        reference_id: str,
        operation: Operation,
        deadline: Optional[Deadline],
    ) -> Tuple[Principal, AchievementReference]:
        """Resolve the actor, load the reference, authorize and check the guard."""
        principal = self.policy.resolve(actor)
        reference = self._load_reference(reference_id, deadline)
        self.policy.authorize(principal, operation, reference)
        self._guard(reference, operation)
        return principal, reference

    def _transition(
        self,
        actor: Actor,
        reference_id: str,
        operation: Operation,
        deadline: Optional[Deadline],
        **extra: Any,
    ) -> AchievementReference:
        principal, reference = self._authorized(actor, reference_id, operation, deadline)
        expected, target = TRANSITIONS[operation]

        now = utc_now()
        fields: Dict[str, Any] = {"status": target, "updated_at": now}
        if target == Status.SUBMITTED:
            fields["submitted_at"] = now
        elif target == Status.VERIFIED:
            fields["verified_at"] = now
            fields["verified_by"] = principal.profile_id or principal.user_id
        fields.update(extra)

        applied = self.references.conditional_update(
            reference.id, expected, fields, deadline=deadline
        )
        if not applied:
            current = self.references.get(reference.id, deadline=deadline)
            current_status = current.status.value if current else None
            logger.info(
                "achievement_transition_conflict",
                reference_id=reference.id,
                operation=operation.value,
                expected_status=expected.value,
                current_status=current_status,
            )
            raise ConflictError(
                f"Achievement changed concurrently; cannot {operation.value}",
                current_status=current_status,
                reference_id=reference.id,
            )

        logger.info(
            "achievement_transition",
            reference_id=reference.id,
            operation=operation.value,
            old_status=expected.value,
            new_status=target.value,
            actor_role=principal.role.value,
            actor_id=principal.user_id,
        )
        return reference.model_copy(update=fields)

    def _discard_orphan(self, content_id: str, student_id: str) -> None:
        """Best-effort removal of content whose reference was never written."""
        deadline = Deadline.after(self.compensation_timeout_seconds)
        try:
            removed = self.contents.delete(content_id, deadline=deadline)
        except Exception:
            logger.error(
                "orphan_content_requires_reconciliation",
                content_id=content_id,
                student_id=student_id,
                exc_info=True,
            )
            return
        logger.warning("orphan_content_removed", content_id=content_id, removed=removed)

    def _ensure_still_draft(
        self, reference: AchievementReference, previous: AchievementContent
    ) -> None:
        """Undo a content write that raced with a transition out of draft.

        Content is only mutable while the reference is draft, so after
        writing it the reference is read again; if it moved on, the previous
        content is put back and the edit fails with a Conflict.
        """
        deadline = Deadline.after(self.compensation_timeout_seconds)
        current = self.references.get(reference.id, deadline=deadline)
        if current is not None and current.status == Status.DRAFT:
            return

        current_status = current.status.value if current else None
        try:
            self.contents.update(reference.content_id, previous, deadline=deadline)
        except Exception:
            logger.error(
                "content_changed_after_draft_requires_reconciliation",
                reference_id=reference.id,
                content_id=reference.content_id,
                current_status=current_status,
                exc_info=True,
            )
            raise
        logger.info(
            "content_edit_reverted",
            reference_id=reference.id,
            current_status=current_status,
        )
        raise ConflictError(
            "Achievement left draft while its content was being edited",
            current_status=current_status,
            reference_id=reference.id,
        )

    def _remove_files(self, stored: Sequence[Attachment]) -> None:
        """Best-effort removal of files stored for a failed attach."""
        for attachment in stored:
            try:
                self.files.remove(attachment)
            except OSError:
                logger.warning(
                    "attachment_cleanup_failed",
                    file_url=attachment.file_url,
                    exc_info=True,
                )

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def create(
        self,
        actor: Actor,
        request: AchievementCreate,
        deadline: Optional[Deadline] = None,
    ) -> Dict[str, Any]:
        """Create a draft achievement: content first, then its reference."""
        principal = self.policy.resolve(actor)
        student_id = self.policy.authorize_create(principal, request.student_id)

        now = utc_now()
        content = AchievementContent(
            student_id=student_id,
            achievement_type=request.achievement_type,
            title=request.title,
            description=request.description,
            details=request.details,
            attachments=request.attachments,
            tags=request.tags,
            points=request.points,
            created_at=now,
            updated_at=now,
        )
        content_id = self.contents.create(content, deadline=deadline)

        reference = AchievementReference(
            student_id=student_id,
            content_id=content_id,
            status=Status.DRAFT,
            created_at=now,
            updated_at=now,
        )
        try:
            self.references.create(reference, deadline=deadline)
        except Exception:
            self._discard_orphan(content_id, student_id)
            raise

        logger.info(
            "achievement_created",
            reference_id=reference.id,
            student_id=student_id,
            achievement_type=request.achievement_type.value,
            actor_role=principal.role.value,
            actor_id=principal.user_id,
        )
        view = merge_view(reference, content.model_copy(update={"id": content_id}))
        view["reference_id"] = reference.id
        return view

    def get(
        self, actor: Actor, reference_id: str, deadline: Optional[Deadline] = None
    ) -> Dict[str, Any]:
        """Return the merged reference and content of one achievement."""
        principal = self.policy.resolve(actor)
        reference = self._load_reference(reference_id, deadline)
        self.policy.authorize_view(principal, reference)
        content = self._load_content(reference, deadline)
        return merge_view(reference, content)

    def list(
        self,
        actor: Actor,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
        deadline: Optional[Deadline] = None,
    ) -> Dict[str, Any]:
        """List achievements visible to the actor, newest first.

        Deleted records are included only when ``status`` is "deleted".
        """
        try:
            status_filter = Status(status) if status else None
        except ValueError:
            raise ValidationError(
                f"Invalid status '{status}'. Valid statuses: "
                f"{', '.join(s.value for s in Status)}",
                field="status",
            ) from None
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive integers")
        limit = min(limit, self.max_page_size)

        principal = self.policy.resolve(actor)
        criteria = ReferenceFilter(
            status=status_filter,
            student_ids=self.policy.visibility_scope(principal),
            page=page,
            limit=limit,
        )
        result = self.references.list(criteria, deadline=deadline)
        items = [
            merge_view(reference, self._load_content(reference, deadline))
            for reference in result.items
        ]
        return {
            "items": items,
            "pagination": Pagination.build(page, limit, result.total).model_dump(),
        }

    def update(
        self,
        actor: Actor,
        reference_id: str,
        update: AchievementUpdate,
        deadline: Optional[Deadline] = None,
    ) -> Dict[str, Any]:
        """Apply a partial content update to a draft achievement."""
        changes = update.changes()
        if not changes:
            raise ValidationError("No fields to update")

        _, reference = self._authorized(actor, reference_id, Operation.UPDATE, deadline)
        content = self._load_content(reference, deadline)

        if "details" in changes:
            supplied = dict(changes["details"])
            details = dict(content.details)
            existing_custom = details.get("custom_fields")
            if isinstance(supplied.get("custom_fields"), dict) and isinstance(
                existing_custom, dict
            ):
                supplied["custom_fields"] = {**existing_custom, **supplied["custom_fields"]}
            details.update(supplied)
            try:
                changes["details"] = normalize_details(content.achievement_type, details)
            except SchemaValidationError as exc:
                raise ValidationError(
                    "Invalid achievement details", errors=_schema_messages(exc)
                ) from exc

        updated = content.model_copy(update={**changes, "updated_at": utc_now()})
        self.contents.update(reference.content_id, updated, deadline=deadline)
        self._ensure_still_draft(reference, content)

        logger.info(
            "achievement_updated",
            reference_id=reference.id,
            fields=sorted(changes),
        )
        return merge_view(reference, updated)

    def attach(
        self,
        actor: Actor,
        reference_id: str,
        uploads: Sequence[FileUpload],
        deadline: Optional[Deadline] = None,
    ) -> Dict[str, Any]:
        """Store uploaded files and append their descriptors to draft content."""
        if not uploads:
            raise ValidationError("No files uploaded")
        for upload in uploads:
            if not upload.content:
                raise ValidationError(
                    f"File '{upload.file_name}' is empty", file_name=upload.file_name
                )
            if len(upload.content) > self.max_upload_bytes:
                raise ValidationError(
                    f"File '{upload.file_name}' exceeds {self.max_upload_bytes} bytes",
                    file_name=upload.file_name,
                )
        if self.files is None:
            raise StoreError("File storage is not configured")

        _, reference = self._authorized(actor, reference_id, Operation.ATTACH, deadline)
        content = self._load_content(reference, deadline)

        stored = []
        try:
            for upload in uploads:
                metadata = FileMetadata(
                    namespace=reference.id,
                    file_name=upload.file_name,
                    mime_type=upload.mime_type,
                )
                try:
                    stored.append(self.files.store(upload.content, metadata))
                except OSError as exc:
                    raise StoreError(
                        f"Failed to store file '{upload.file_name}'"
                    ) from exc

            updated = content.model_copy(
                update={
                    "attachments": [*content.attachments, *stored],
                    "updated_at": utc_now(),
                }
            )
            self.contents.update(reference.content_id, updated, deadline=deadline)
            self._ensure_still_draft(reference, content)
        except Exception:
            self._remove_files(stored)
            raise

        logger.info(
            "achievement_files_attached",
            reference_id=reference.id,
            count=len(stored),
        )
        return {
            "achievement": merge_view(reference, updated),
            "new_attachments": [a.model_dump(mode="json") for a in stored],
        }

    def submit(
        self, actor: Actor, reference_id: str, deadline: Optional[Deadline] = None
    ) -> Dict[str, Any]:
        """draft -> submitted."""
        reference = self._transition(actor, reference_id, Operation.SUBMIT, deadline)
        return reference_view(reference)

    def verify(
        self, actor: Actor, reference_id: str, deadline: Optional[Deadline] = None
    ) -> Dict[str, Any]:
        """submitted -> verified."""
        reference = self._transition(actor, reference_id, Operation.VERIFY, deadline)
        return reference_view(reference)

    def reject(
        self,
        actor: Actor,
        reference_id: str,
        rejection_note: Optional[str],
        deadline: Optional[Deadline] = None,
    ) -> Dict[str, Any]:
        """submitted -> rejected. The note is required and checked first."""
        note = (rejection_note or "").strip()
        if not note:
            raise ValidationError("Rejection note is required", field="rejection_note")
        reference = self._transition(
            actor, reference_id, Operation.REJECT, deadline, rejection_note=note
        )
        return reference_view(reference)

    def delete(
        self, actor: Actor, reference_id: str, deadline: Optional[Deadline] = None
    ) -> Dict[str, Any]:
        """draft -> deleted (tombstone; content is kept)."""
        reference = self._transition(actor, reference_id, Operation.DELETE, deadline)
        return reference_view(reference)

    def find_orphan_content(self, deadline: Optional[Deadline] = None) -> List[str]:
        """Content ids that no reference points at.

        These are left behind when both a reference write and its
        compensating delete failed.
        """
        referenced = self.references.content_ids(deadline=deadline)
        return [
            content_id
            for content_id in self.contents.list_ids(deadline=deadline)
            if content_id not in referenced
        ]

    def history(
        self, actor: Actor, reference_id: str, deadline: Optional[Deadline] = None
    ) -> Dict[str, Any]:
        """Lifecycle events of one achievement."""
        principal = self.policy.resolve(actor)
        reference = self._load_reference(reference_id, deadline)
        self.policy.authorize_view(principal, reference)
        content = self._load_content(reference, deadline)

        events = build_history(reference)
        return {
            "achievement_id": reference.id,
            "title": content.title,
            "current_status": reference.status.value,
            "total_history": len(events),
            "history": [event.model_dump(mode="json") for event in events],
        }
