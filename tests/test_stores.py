"""
Tests for the store contracts.

Every test runs against both the in-memory fakes and the SQLAlchemy stores
(two separate in-memory SQLite databases).
"""

from datetime import datetime, timedelta, timezone

import pytest

from achievement_tracker.achievements import (
    AchievementContent,
    AchievementReference,
    AchievementType,
    Attachment,
    ConflictError,
    Deadline,
    NotFoundError,
    Status,
    StoreTimeoutError,
)
from achievement_tracker.achievements.schemas import ReferenceFilter

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "sql"])
def stores(request):
    """(reference store, content store) for each backend."""
    if request.param == "memory":
        return request.getfixturevalue("references"), request.getfixturevalue("contents")
    return request.getfixturevalue("sql_references"), request.getfixturevalue("sql_contents")


def make_content(student_id: str = "stu-1", **overrides) -> AchievementContent:
    defaults = {
        "student_id": student_id,
        "achievement_type": AchievementType.PUBLICATION,
        "title": "Paper on graph search",
        "description": "Accepted at a workshop",
        "details": {"publication_title": "Faster BFS", "authors": ["A", "B"]},
        "tags": ["research"],
        "points": 40,
        "created_at": BASE_TIME,
        "updated_at": BASE_TIME,
    }
    defaults.update(overrides)
    return AchievementContent(**defaults)


def make_reference(offset_minutes: int = 0, **overrides) -> AchievementReference:
    created = BASE_TIME + timedelta(minutes=offset_minutes)
    defaults = {
        "student_id": "stu-1",
        "content_id": f"content-{offset_minutes}-{overrides.get('student_id', 'stu-1')}",
        "created_at": created,
        "updated_at": created,
    }
    defaults.update(overrides)
    return AchievementReference(**defaults)


class TestReferenceStore:
    """Tests for the reference authority store contract."""

    def test_create_and_get(self, stores):
        references, _ = stores
        reference = references.create(make_reference())

        fetched = references.get(reference.id)
        assert fetched == reference
        assert fetched.status == Status.DRAFT

    def test_get_missing_returns_none(self, stores):
        references, _ = stores
        assert references.get("does-not-exist") is None

    def test_duplicate_id_conflicts(self, stores):
        references, _ = stores
        reference = references.create(make_reference())
        with pytest.raises(ConflictError):
            references.create(reference.model_copy(update={"content_id": "other"}))

    def test_conditional_update_applies_on_expected_status(self, stores):
        references, _ = stores
        reference = references.create(make_reference())
        submitted_at = BASE_TIME + timedelta(hours=1)

        applied = references.conditional_update(
            reference.id,
            Status.DRAFT,
            {"status": Status.SUBMITTED, "submitted_at": submitted_at, "updated_at": submitted_at},
        )

        assert applied is True
        fetched = references.get(reference.id)
        assert fetched.status == Status.SUBMITTED
        assert fetched.submitted_at == submitted_at

    def test_second_conditional_update_loses(self, stores):
        references, _ = stores
        reference = references.create(make_reference())
        fields = {"status": Status.SUBMITTED, "updated_at": BASE_TIME}

        assert references.conditional_update(reference.id, Status.DRAFT, fields) is True
        assert references.conditional_update(reference.id, Status.DRAFT, fields) is False
        assert references.get(reference.id).status == Status.SUBMITTED

    def test_conditional_update_missing_record(self, stores):
        references, _ = stores
        assert (
            references.conditional_update("missing", Status.DRAFT, {"status": Status.SUBMITTED})
            is False
        )

    def test_conditional_update_rejects_immutable_fields(self, stores):
        references, _ = stores
        reference = references.create(make_reference())
        with pytest.raises(ValueError):
            references.conditional_update(
                reference.id, Status.DRAFT, {"content_id": "elsewhere"}
            )

    def test_list_excludes_deleted_by_default(self, stores):
        references, _ = stores
        kept = references.create(make_reference(0))
        gone = references.create(make_reference(1))
        references.conditional_update(gone.id, Status.DRAFT, {"status": Status.DELETED})

        page = references.list(ReferenceFilter())
        assert [r.id for r in page.items] == [kept.id]
        assert page.total == 1

        deleted = references.list(ReferenceFilter(status=Status.DELETED))
        assert [r.id for r in deleted.items] == [gone.id]

    def test_list_newest_first_with_paging(self, stores):
        references, _ = stores
        created = [references.create(make_reference(i)) for i in range(5)]

        first = references.list(ReferenceFilter(page=1, limit=2))
        second = references.list(ReferenceFilter(page=2, limit=2))

        assert first.total == 5
        assert [r.id for r in first.items] == [created[4].id, created[3].id]
        assert [r.id for r in second.items] == [created[2].id, created[1].id]

    def test_list_scoped_by_owner(self, stores):
        references, _ = stores
        mine = references.create(make_reference(0, student_id="stu-1"))
        references.create(make_reference(1, student_id="stu-2"))

        page = references.list(ReferenceFilter(student_ids=["stu-1"]))
        assert [r.id for r in page.items] == [mine.id]

    def test_list_empty_scope_matches_nothing(self, stores):
        references, _ = stores
        references.create(make_reference())
        assert references.list(ReferenceFilter(student_ids=[])).total == 0

    def test_content_ids(self, stores):
        references, _ = stores
        reference = references.create(make_reference())
        assert references.content_ids() == {reference.content_id}

    def test_expired_deadline(self, stores):
        references, _ = stores
        with pytest.raises(StoreTimeoutError):
            references.get("anything", deadline=Deadline.after(-1))


class TestContentStore:
    """Tests for the content store contract."""

    def test_create_assigns_id(self, stores):
        _, contents = stores
        content_id = contents.create(make_content())

        fetched = contents.get(content_id)
        assert fetched.id == content_id
        assert fetched.title == "Paper on graph search"
        assert fetched.details == {"publication_title": "Faster BFS", "authors": ["A", "B"]}
        assert fetched.created_at == BASE_TIME

    def test_get_missing_returns_none(self, stores):
        _, contents = stores
        assert contents.get("missing") is None

    def test_update_replaces_mutable_fields_only(self, stores):
        _, contents = stores
        content_id = contents.create(make_content())
        original = contents.get(content_id)
        later = BASE_TIME + timedelta(days=1)

        contents.update(
            content_id,
            original.model_copy(
                update={
                    "title": "Revised",
                    "student_id": "stu-2",
                    "attachments": [
                        Attachment(
                            file_name="paper.pdf",
                            file_url="/uploads/achievements/x/paper.pdf",
                            size_bytes=10,
                        )
                    ],
                    "updated_at": later,
                }
            ),
        )

        fetched = contents.get(content_id)
        assert fetched.title == "Revised"
        assert fetched.student_id == "stu-1"
        assert fetched.attachments[0].file_name == "paper.pdf"
        assert fetched.updated_at == later
        assert fetched.created_at == BASE_TIME

    def test_update_missing(self, stores):
        _, contents = stores
        with pytest.raises(NotFoundError):
            contents.update("missing", make_content())

    def test_delete(self, stores):
        _, contents = stores
        content_id = contents.create(make_content())
        assert contents.delete(content_id) is True
        assert contents.get(content_id) is None
        assert contents.delete(content_id) is False

    def test_list_ids(self, stores):
        _, contents = stores
        ids = {contents.create(make_content()) for _ in range(3)}
        assert set(contents.list_ids()) == ids

    def test_expired_deadline(self, stores):
        _, contents = stores
        with pytest.raises(StoreTimeoutError):
            contents.create(make_content(), deadline=Deadline.after(-1))
        assert contents.list_ids() == []
