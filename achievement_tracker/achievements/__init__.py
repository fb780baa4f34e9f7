"""
Achievement lifecycle engine.

Two stores, one workflow:

- ReferenceStore: canonical workflow state (status, timestamps, verifier)
- ContentStore: rich, type-variant content and attachment descriptors
- AccessPolicy: role and mentorship based authorization
- AchievementCoordinator: the only entry point; orders cross-store writes,
  compensates failed creates and applies transitions as conditional writes

Lifecycle:
    draft -> submitted -> verified | rejected
    draft -> deleted
"""

# Enums
from .enums import (
    TRANSITIONS,
    AchievementType,
    Operation,
    Role,
    Status,
    allowed_next,
)

# Errors
from .errors import (
    AccessDeniedError,
    AchievementError,
    ConflictError,
    DataIntegrityError,
    InvalidTransitionError,
    NotFoundError,
    StoreError,
    StoreTimeoutError,
    UnauthenticatedError,
    ValidationError,
)

# Schemas
from .schemas import (
    AchievementContent,
    AchievementCreate,
    AchievementReference,
    AchievementUpdate,
    Actor,
    Attachment,
    RejectRequest,
)

# Collaborators
from .deadline import Deadline
from .files import FileStorage, FileUpload, LocalFileStorage
from .identity import DirectoryIdentityResolver, IdentityResolver
from .stores import (
    ContentStore,
    InMemoryContentStore,
    InMemoryReferenceStore,
    ReferenceStore,
)
from .sql_stores import SqlContentStore, SqlReferenceStore

# Policy and coordination
from .policy import AccessPolicy, Principal
from .coordinator import AchievementCoordinator

__all__ = [
    # Enums
    "TRANSITIONS",
    "AchievementType",
    "Operation",
    "Role",
    "Status",
    "allowed_next",
    # Errors
    "AccessDeniedError",
    "AchievementError",
    "ConflictError",
    "DataIntegrityError",
    "InvalidTransitionError",
    "NotFoundError",
    "StoreError",
    "StoreTimeoutError",
    "UnauthenticatedError",
    "ValidationError",
    # Schemas
    "AchievementContent",
    "AchievementCreate",
    "AchievementReference",
    "AchievementUpdate",
    "Actor",
    "Attachment",
    "RejectRequest",
    # Collaborators
    "Deadline",
    "FileStorage",
    "FileUpload",
    "LocalFileStorage",
    "DirectoryIdentityResolver",
    "IdentityResolver",
    "ContentStore",
    "InMemoryContentStore",
    "InMemoryReferenceStore",
    "ReferenceStore",
    "SqlContentStore",
    "SqlReferenceStore",
    # Policy and coordination
    "AccessPolicy",
    "Principal",
    "AchievementCoordinator",
]
