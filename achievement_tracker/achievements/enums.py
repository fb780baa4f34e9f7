"""
Canonical enums for the achievement lifecycle.
"""

from enum import Enum
from typing import Dict, FrozenSet, Tuple


class Status(str, Enum):
    """Lifecycle states of an achievement record."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    VERIFIED = "verified"
    REJECTED = "rejected"
    DELETED = "deleted"


class AchievementType(str, Enum):
    """Closed set of achievement categories."""

    ACADEMIC = "academic"
    COMPETITION = "competition"
    ORGANIZATION = "organization"
    PUBLICATION = "publication"
    CERTIFICATION = "certification"
    OTHER = "other"


class Role(str, Enum):
    """Caller roles known to the access policy."""

    ADMIN = "admin"
    ADVISOR = "advisor"
    STUDENT = "student"


class Operation(str, Enum):
    """Operations guarded by the lifecycle state machine."""

    UPDATE = "update"
    ATTACH = "attach"
    SUBMIT = "submit"
    VERIFY = "verify"
    REJECT = "reject"
    DELETE = "delete"


# Operation -> (required current status, resulting status)
TRANSITIONS: Dict[Operation, Tuple[Status, Status]] = {
    Operation.UPDATE: (Status.DRAFT, Status.DRAFT),
    Operation.ATTACH: (Status.DRAFT, Status.DRAFT),
    Operation.SUBMIT: (Status.DRAFT, Status.SUBMITTED),
    Operation.VERIFY: (Status.SUBMITTED, Status.VERIFIED),
    Operation.REJECT: (Status.SUBMITTED, Status.REJECTED),
    Operation.DELETE: (Status.DRAFT, Status.DELETED),
}

TERMINAL_STATUSES: FrozenSet[Status] = frozenset(
    {Status.VERIFIED, Status.REJECTED, Status.DELETED}
)


def allowed_next(status: Status) -> FrozenSet[Status]:
    """Return the statuses reachable from ``status`` in one step."""
    return frozenset(
        post
        for pre, post in TRANSITIONS.values()
        if pre == status and post != status
    )
