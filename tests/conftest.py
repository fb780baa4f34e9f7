"""Test configuration and fixtures."""

import pytest

from achievement_tracker.achievements import (
    AccessPolicy,
    AchievementCoordinator,
    AchievementCreate,
    AchievementType,
    Actor,
    DirectoryIdentityResolver,
    InMemoryContentStore,
    InMemoryReferenceStore,
    LocalFileStorage,
    Role,
    SqlContentStore,
    SqlReferenceStore,
)
from achievement_tracker.db.base import (
    create_store_engine,
    drop_databases,
    get_session_factory,
    init_databases,
)

# Student S (stu-1) is advised by adv-1; stu-2 by adv-2; stu-3 has no advisor
STUDENTS = {"user-s1": "stu-1", "user-s2": "stu-2", "user-s3": "stu-3"}
ADVISORS = {"user-a1": "adv-1", "user-a2": "adv-2"}
ASSIGNMENTS = {"stu-1": "adv-1", "stu-2": "adv-2", "stu-3": None}

STUDENT = Actor(role=Role.STUDENT, user_id="user-s1")
OTHER_STUDENT = Actor(role=Role.STUDENT, user_id="user-s2")
ADVISOR = Actor(role=Role.ADVISOR, user_id="user-a1")
OTHER_ADVISOR = Actor(role=Role.ADVISOR, user_id="user-a2")
ADMIN = Actor(role=Role.ADMIN, user_id="admin-1")


def make_create(**overrides) -> AchievementCreate:
    """Create a valid create request with optional overrides."""
    defaults = {
        "achievement_type": AchievementType.COMPETITION,
        "title": "Hackathon Winner",
        "description": "First place at the national hackathon",
        "details": {"competition_name": "NatHack", "rank": 1},
        "tags": ["coding", "teamwork"],
        "points": 100,
    }
    defaults.update(overrides)
    return AchievementCreate(**defaults)


@pytest.fixture
def identity() -> DirectoryIdentityResolver:
    return DirectoryIdentityResolver(
        students=STUDENTS, advisors=ADVISORS, assignments=ASSIGNMENTS
    )


@pytest.fixture
def policy(identity) -> AccessPolicy:
    return AccessPolicy(identity)


@pytest.fixture
def references() -> InMemoryReferenceStore:
    return InMemoryReferenceStore()


@pytest.fixture
def contents() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def file_storage(tmp_path) -> LocalFileStorage:
    return LocalFileStorage(tmp_path / "uploads", url_prefix="/uploads/achievements")


@pytest.fixture
def coordinator(references, contents, policy, file_storage) -> AchievementCoordinator:
    """Coordinator over in-memory stores."""
    return AchievementCoordinator(
        references=references,
        contents=contents,
        policy=policy,
        files=file_storage,
        max_upload_bytes=1024,
    )


@pytest.fixture
def sql_session_factories():
    """Two separate in-memory SQLite databases, one per store."""
    reference_engine = create_store_engine("sqlite:///:memory:")
    content_engine = create_store_engine("sqlite:///:memory:")
    init_databases(reference_engine, content_engine)
    yield get_session_factory(reference_engine), get_session_factory(content_engine)
    drop_databases(reference_engine, content_engine)
    reference_engine.dispose()
    content_engine.dispose()


@pytest.fixture
def sql_references(sql_session_factories) -> SqlReferenceStore:
    reference_factory, _ = sql_session_factories
    return SqlReferenceStore(reference_factory)


@pytest.fixture
def sql_contents(sql_session_factories) -> SqlContentStore:
    _, content_factory = sql_session_factories
    return SqlContentStore(content_factory)


@pytest.fixture
def sql_coordinator(sql_references, sql_contents, policy, file_storage) -> AchievementCoordinator:
    """Coordinator over SQL stores."""
    return AchievementCoordinator(
        references=sql_references,
        contents=sql_contents,
        policy=policy,
        files=file_storage,
    )
