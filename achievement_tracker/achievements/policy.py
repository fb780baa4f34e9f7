"""
Access policy for achievement records.

Decides who may see and change which achievement, given the caller's role,
the caller's resolved profile id and the mentorship relation between the
owning student and their current advisor.

Policy Rules:
- Admin: sees every record; may perform every operation. Creating requires an
  explicit, existing target student.
- Advisor: sees only records of current advisees; may verify and reject them;
  never creates or edits content.
- Student: sees only own records; may create for themselves and update,
  attach, submit and delete own records; never verifies or rejects.

A failed check raises AccessDeniedError. Record existence is checked by the
caller before the policy runs, so NotFound and AccessDenied never overlap.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from .enums import Operation, Role
from .errors import AccessDeniedError, NotFoundError, ValidationError
from .identity import IdentityResolver
from .schemas import AchievementReference, Actor

# Content-side operations: owning student or admin
EDIT_OPERATIONS = frozenset(
    {Operation.UPDATE, Operation.ATTACH, Operation.SUBMIT, Operation.DELETE}
)

# Verifier-side operations: advisor of the owning student or admin
REVIEW_OPERATIONS = frozenset({Operation.VERIFY, Operation.REJECT})


class Principal(BaseModel):
    """An actor with its role-specific profile id resolved."""

    model_config = ConfigDict(frozen=True)

    role: Role
    user_id: str
    profile_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class AccessPolicy:
    """Role and mentorship based access decisions."""

    def __init__(self, identity: IdentityResolver):
        self.identity = identity

    def resolve(self, actor: Actor) -> Principal:
        """Resolve the actor's profile id for its role."""
        if actor.role == Role.ADMIN:
            return Principal(role=actor.role, user_id=actor.user_id)

        if actor.role == Role.STUDENT:
            profile_id = self.identity.resolve_student(actor.user_id)
            if profile_id is None:
                raise AccessDeniedError("User is not a student or student profile not found")
        else:
            profile_id = self.identity.resolve_advisor(actor.user_id)
            if profile_id is None:
                raise AccessDeniedError("User is not an advisor or advisor profile not found")

        return Principal(role=actor.role, user_id=actor.user_id, profile_id=profile_id)

    def _is_owner(self, principal: Principal, reference: AchievementReference) -> bool:
        return principal.role == Role.STUDENT and principal.profile_id == reference.student_id

    def _is_advisor_of(self, principal: Principal, reference: AchievementReference) -> bool:
        return principal.role == Role.ADVISOR and self.identity.is_advisee(
            reference.student_id, principal.profile_id
        )

    def visibility_scope(self, principal: Principal) -> Optional[List[str]]:
        """Owner ids the principal may list; None means unrestricted."""
        if principal.is_admin:
            return None
        if principal.role == Role.STUDENT:
            return [principal.profile_id]
        return self.identity.list_advisees(principal.profile_id)

    def can_view(self, principal: Principal, reference: AchievementReference) -> bool:
        return (
            principal.is_admin
            or self._is_owner(principal, reference)
            or self._is_advisor_of(principal, reference)
        )

    def authorize_view(self, principal: Principal, reference: AchievementReference) -> None:
        if not self.can_view(principal, reference):
            raise AccessDeniedError("Access denied")

    def authorize(
        self,
        principal: Principal,
        operation: Operation,
        reference: AchievementReference,
    ) -> None:
        """Check that the principal may perform ``operation`` on the record."""
        if principal.is_admin:
            return

        if operation in EDIT_OPERATIONS:
            if self._is_owner(principal, reference):
                return
            if principal.role == Role.ADVISOR:
                raise AccessDeniedError(
                    f"Advisors cannot {operation.value} achievements",
                    operation=operation.value,
                )
            raise AccessDeniedError("Not your achievement", operation=operation.value)

        if operation in REVIEW_OPERATIONS:
            if self._is_advisor_of(principal, reference):
                return
            if principal.role == Role.STUDENT:
                raise AccessDeniedError(
                    f"Students cannot {operation.value} achievements",
                    operation=operation.value,
                )
            raise AccessDeniedError(
                "You are not the advisor of this student", operation=operation.value
            )

        raise AccessDeniedError(f"Unknown operation '{operation}'")

    def authorize_create(
        self, principal: Principal, requested_student_id: Optional[str]
    ) -> str:
        """Return the student the new achievement belongs to."""
        if principal.role == Role.STUDENT:
            if requested_student_id and requested_student_id != principal.profile_id:
                raise AccessDeniedError("Students can only create their own achievements")
            return principal.profile_id

        if principal.is_admin:
            if not requested_student_id:
                raise ValidationError(
                    "student_id is required when creating achievement as admin",
                    field="student_id",
                )
            if not self.identity.student_exists(requested_student_id):
                raise NotFoundError(
                    "Student not found", student_id=requested_student_id
                )
            return requested_student_id

        raise AccessDeniedError("Advisors cannot create achievements")
