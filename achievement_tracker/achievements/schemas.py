"""
Achievement schemas.

AchievementReference is the workflow record owned by the reference authority
store. AchievementContent is the document owned by the content store. The
*Create / *Update / RejectRequest models are the validated request shapes
accepted at the API boundary.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Type

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    constr,
    field_validator,
    model_validator,
)

from .enums import AchievementType, Role, Status
from .primitives import generate_ulid, utc_now


# =============================================================================
# Structured details, one shape per achievement type
# =============================================================================


class Period(BaseModel):
    """Start and end of an engagement (e.g. an organization position)."""

    model_config = ConfigDict(extra="forbid")

    start: date
    end: Optional[date] = None

    @model_validator(mode="after")
    def _end_after_start(self) -> "Period":
        if self.end is not None and self.end < self.start:
            raise ValueError("period.end must not be before period.start")
        return self


class BaseDetails(BaseModel):
    """Fields every achievement type may carry."""

    model_config = ConfigDict(extra="forbid")

    event_date: Optional[date] = None
    location: Optional[constr(max_length=256)] = None
    organizer: Optional[constr(max_length=256)] = None
    score: Optional[int] = Field(None, ge=0)
    custom_fields: Optional[Dict[str, Any]] = None


class AcademicDetails(BaseDetails):
    pass


class OtherDetails(BaseDetails):
    pass


class CompetitionDetails(BaseDetails):
    competition_name: Optional[constr(max_length=256)] = None
    competition_level: Optional[constr(max_length=64)] = None
    rank: Optional[int] = Field(None, ge=1)
    medal_type: Optional[constr(max_length=64)] = None


class PublicationDetails(BaseDetails):
    publication_type: Optional[constr(max_length=64)] = None
    publication_title: Optional[constr(max_length=512)] = None
    authors: Optional[List[constr(min_length=1, max_length=256)]] = None
    publisher: Optional[constr(max_length=256)] = None
    issn: Optional[constr(max_length=32)] = None


class OrganizationDetails(BaseDetails):
    organization_name: Optional[constr(max_length=256)] = None
    position: Optional[constr(max_length=128)] = None
    period: Optional[Period] = None


class CertificationDetails(BaseDetails):
    certification_name: Optional[constr(max_length=256)] = None
    issued_by: Optional[constr(max_length=256)] = None
    certification_number: Optional[constr(max_length=128)] = None
    valid_until: Optional[date] = None


DETAILS_MODELS: Dict[AchievementType, Type[BaseDetails]] = {
    AchievementType.ACADEMIC: AcademicDetails,
    AchievementType.COMPETITION: CompetitionDetails,
    AchievementType.ORGANIZATION: OrganizationDetails,
    AchievementType.PUBLICATION: PublicationDetails,
    AchievementType.CERTIFICATION: CertificationDetails,
    AchievementType.OTHER: OtherDetails,
}


def normalize_details(
    achievement_type: AchievementType, details: Dict[str, Any]
) -> Dict[str, Any]:
    """Validate details against the shape for ``achievement_type``.

    Returns the JSON-ready document form with unset fields omitted.
    Raises pydantic.ValidationError on unknown keys or bad values.
    """
    model = DETAILS_MODELS[achievement_type]
    return model.model_validate(details).model_dump(mode="json", exclude_none=True)


def _normalize_tags(tags: List[str]) -> List[str]:
    """Strip, drop empties and de-duplicate while keeping first-seen order."""
    cleaned = (tag.strip() for tag in tags)
    return list(dict.fromkeys(tag for tag in cleaned if tag))


# =============================================================================
# Stored records
# =============================================================================


class Attachment(BaseModel):
    """Descriptor of a stored file. Raw bytes never live in the content store."""

    model_config = ConfigDict(extra="forbid")

    id: constr(min_length=1, max_length=128) = Field(default_factory=generate_ulid)
    file_name: constr(min_length=1, max_length=255)
    file_url: constr(min_length=1, max_length=2000)
    mime_type: constr(min_length=1, max_length=128) = "application/octet-stream"
    size_bytes: int = Field(..., ge=0)
    uploaded_at: datetime = Field(default_factory=utc_now)


class AchievementReference(BaseModel):
    """Canonical workflow record for one achievement.

    Invariants:
    - content_id is set at creation and never changes
    - verified_at and verified_by are set together, only when verified
    - rejection_note is non-empty if and only if status is rejected
    """

    model_config = ConfigDict(extra="forbid")

    id: constr(min_length=1, max_length=36) = Field(default_factory=generate_ulid)
    student_id: constr(min_length=1, max_length=128)
    content_id: constr(min_length=1, max_length=128)
    status: Status = Status.DRAFT
    submitted_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    rejection_note: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _check_invariants(self) -> "AchievementReference":
        if (self.verified_at is None) != (self.verified_by is None):
            raise ValueError("verified_at and verified_by must be set together")
        if self.verified_by is not None and self.status != Status.VERIFIED:
            raise ValueError("verified_by is only set on verified records")
        has_note = bool(self.rejection_note and self.rejection_note.strip())
        if has_note != (self.status == Status.REJECTED):
            raise ValueError("rejection_note must be non-empty exactly when rejected")
        return self


class AchievementContent(BaseModel):
    """Rich achievement content held by the content store."""

    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = Field(None, description="Assigned by the content store")
    student_id: constr(min_length=1, max_length=128)
    achievement_type: AchievementType
    title: constr(min_length=1, max_length=255)
    description: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)
    attachments: List[Attachment] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    points: int = Field(0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# Requests
# =============================================================================


class AchievementCreate(BaseModel):
    """Schema for creating a new achievement."""

    model_config = ConfigDict(extra="forbid")

    achievement_type: AchievementType
    title: constr(strip_whitespace=True, min_length=1, max_length=255)
    description: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)
    attachments: List[Attachment] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    points: int = Field(0, ge=0)
    student_id: Optional[constr(min_length=1, max_length=128)] = Field(
        None, description="Target student; required when an admin creates on behalf"
    )

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, tags: List[str]) -> List[str]:
        return _normalize_tags(tags)

    @model_validator(mode="after")
    def _validate_details(self) -> "AchievementCreate":
        self.details = normalize_details(self.achievement_type, self.details)
        return self


class AchievementUpdate(BaseModel):
    """Partial update of draft content. Only supplied fields change.

    ``details`` keys are merged into the stored details and the result is
    revalidated against the record's achievement type.
    """

    model_config = ConfigDict(extra="forbid")

    title: Optional[constr(strip_whitespace=True, min_length=1, max_length=255)] = None
    description: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    points: Optional[int] = Field(None, ge=0)

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, tags: Optional[List[str]]) -> Optional[List[str]]:
        return None if tags is None else _normalize_tags(tags)

    def changes(self) -> Dict[str, Any]:
        """Fields explicitly supplied with a non-null value."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


class RejectRequest(BaseModel):
    """Body of a reject call."""

    model_config = ConfigDict(extra="forbid")

    rejection_note: str = ""


class Actor(BaseModel):
    """The authenticated caller: role plus the identity issued by auth."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    role: Role
    user_id: constr(min_length=1, max_length=128)


# =============================================================================
# Listing
# =============================================================================


class ReferenceFilter(BaseModel):
    """Filter for listing references.

    ``student_ids`` of None means no owner scoping (admin view); an empty list
    matches nothing.
    """

    status: Optional[Status] = None
    student_ids: Optional[List[str]] = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class ReferencePage(BaseModel):
    """One page of references plus the total matching count."""

    items: List[AchievementReference]
    total: int


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0,
        )


class HistoryEvent(BaseModel):
    """One lifecycle step, derived from the reference's timestamps."""

    status: Status
    timestamp: datetime
    note: str
    verified_by: Optional[str] = None


def build_history(reference: AchievementReference) -> List[HistoryEvent]:
    """Reconstruct the lifecycle of a record from its reference."""
    events = [
        HistoryEvent(
            status=Status.DRAFT,
            timestamp=reference.created_at,
            note="Achievement created",
        )
    ]
    if reference.submitted_at is not None:
        events.append(
            HistoryEvent(
                status=Status.SUBMITTED,
                timestamp=reference.submitted_at,
                note="Submitted for verification",
            )
        )
    if reference.status == Status.VERIFIED:
        events.append(
            HistoryEvent(
                status=Status.VERIFIED,
                timestamp=reference.verified_at,
                note="Achievement verified",
                verified_by=reference.verified_by,
            )
        )
    elif reference.status == Status.REJECTED:
        events.append(
            HistoryEvent(
                status=Status.REJECTED,
                timestamp=reference.updated_at,
                note=f"Achievement rejected: {reference.rejection_note}",
            )
        )
    elif reference.status == Status.DELETED:
        events.append(
            HistoryEvent(
                status=Status.DELETED,
                timestamp=reference.updated_at,
                note="Achievement deleted",
            )
        )
    return events


CONTENT_VIEW_FIELDS = (
    "achievement_type",
    "title",
    "description",
    "details",
    "attachments",
    "tags",
    "points",
)


def merge_view(
    reference: AchievementReference, content: AchievementContent
) -> Dict[str, Any]:
    """Assemble the caller-facing view of one achievement.

    The content id is an internal pointer and is not part of the view.
    """
    document = content.model_dump(mode="json")
    view = reference.model_dump(mode="json", exclude={"content_id"})
    for key in CONTENT_VIEW_FIELDS:
        view[key] = document[key]
    view["content_updated_at"] = document["updated_at"]
    return view
