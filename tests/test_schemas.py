"""Unit tests for achievement enums and schemas."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from achievement_tracker.achievements.enums import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    AchievementType,
    Operation,
    Status,
    allowed_next,
)
from achievement_tracker.achievements.schemas import (
    AchievementContent,
    AchievementReference,
    AchievementUpdate,
    Pagination,
    ReferenceFilter,
    build_history,
    merge_view,
    normalize_details,
)
from tests.conftest import make_create

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestTransitionTable:
    """Tests for the lifecycle state machine."""

    def test_draft_moves_to_submitted_or_deleted(self):
        assert allowed_next(Status.DRAFT) == {Status.SUBMITTED, Status.DELETED}

    def test_submitted_moves_to_verified_or_rejected(self):
        assert allowed_next(Status.SUBMITTED) == {Status.VERIFIED, Status.REJECTED}

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES))
    def test_terminal_statuses_have_no_exits(self, status):
        assert allowed_next(status) == frozenset()

    def test_content_edits_require_draft(self):
        assert TRANSITIONS[Operation.UPDATE] == (Status.DRAFT, Status.DRAFT)
        assert TRANSITIONS[Operation.ATTACH] == (Status.DRAFT, Status.DRAFT)

    def test_rejected_is_terminal(self):
        assert Status.REJECTED in TERMINAL_STATUSES


class TestAchievementCreate:
    """Tests for create request validation."""

    def test_valid_create(self):
        request = make_create()
        assert request.achievement_type == AchievementType.COMPETITION
        assert request.title == "Hackathon Winner"
        assert request.details == {"competition_name": "NatHack", "rank": 1}

    def test_title_is_stripped(self):
        assert make_create(title="  Dean's List  ").title == "Dean's List"

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            make_create(title="   ")

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            make_create(achievement_type="sports")

    def test_negative_points_rejected(self):
        with pytest.raises(ValidationError):
            make_create(points=-5)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            make_create(status="verified")

    def test_tags_are_cleaned(self):
        request = make_create(tags=[" ai ", "", "ai", "ml"])
        assert request.tags == ["ai", "ml"]

    def test_details_must_match_type(self):
        with pytest.raises(ValidationError):
            make_create(
                achievement_type=AchievementType.ACADEMIC,
                details={"competition_name": "NatHack"},
            )

    def test_rank_must_be_positive(self):
        with pytest.raises(ValidationError):
            make_create(details={"rank": 0})

    def test_organization_period_order(self):
        with pytest.raises(ValidationError):
            make_create(
                achievement_type=AchievementType.ORGANIZATION,
                details={"period": {"start": "2025-06-01", "end": "2025-01-01"}},
            )


class TestNormalizeDetails:
    def test_dates_are_serialized(self):
        details = normalize_details(
            AchievementType.CERTIFICATION,
            {"certification_name": "AWS SA", "valid_until": "2027-01-31"},
        )
        assert details == {"certification_name": "AWS SA", "valid_until": "2027-01-31"}

    def test_custom_fields_pass_through(self):
        details = normalize_details(
            AchievementType.OTHER, {"custom_fields": {"mentor": "Dr. Rao"}}
        )
        assert details["custom_fields"] == {"mentor": "Dr. Rao"}


class TestAchievementUpdate:
    def test_changes_only_include_supplied_fields(self):
        update = AchievementUpdate(title="New title")
        assert update.changes() == {"title": "New title"}

    def test_explicit_null_is_ignored(self):
        update = AchievementUpdate(title=None, points=5)
        assert update.changes() == {"points": 5}

    def test_empty_update_has_no_changes(self):
        assert AchievementUpdate().changes() == {}


class TestAchievementReference:
    """Tests for reference invariants."""

    def test_defaults_to_draft(self):
        reference = AchievementReference(student_id="stu-1", content_id="c-1")
        assert reference.status == Status.DRAFT
        assert reference.id

    def test_verified_fields_set_together(self):
        with pytest.raises(ValidationError):
            AchievementReference(
                student_id="stu-1",
                content_id="c-1",
                status=Status.VERIFIED,
                verified_at=NOW,
            )

    def test_verified_by_only_when_verified(self):
        with pytest.raises(ValidationError):
            AchievementReference(
                student_id="stu-1",
                content_id="c-1",
                status=Status.SUBMITTED,
                verified_at=NOW,
                verified_by="adv-1",
            )

    def test_rejected_requires_note(self):
        with pytest.raises(ValidationError):
            AchievementReference(
                student_id="stu-1", content_id="c-1", status=Status.REJECTED
            )

    def test_note_only_when_rejected(self):
        with pytest.raises(ValidationError):
            AchievementReference(
                student_id="stu-1", content_id="c-1", rejection_note="nope"
            )


class TestListingModels:
    def test_offset(self):
        assert ReferenceFilter(page=3, limit=10).offset == 20

    def test_pagination_rounds_up(self):
        assert Pagination.build(2, 10, 25).total_pages == 3

    def test_pagination_empty(self):
        assert Pagination.build(1, 10, 0).total_pages == 0


class TestViews:
    def _pair(self, **reference_fields):
        content = AchievementContent(
            id="c-1",
            student_id="stu-1",
            achievement_type=AchievementType.ACADEMIC,
            title="Dean's List",
            points=20,
            created_at=NOW,
            updated_at=NOW,
        )
        reference = AchievementReference(
            student_id="stu-1",
            content_id="c-1",
            created_at=NOW,
            updated_at=NOW,
            **reference_fields,
        )
        return reference, content

    def test_merge_view_hides_content_pointer(self):
        reference, content = self._pair()
        view = merge_view(reference, content)
        assert "content_id" not in view
        assert view["id"] == reference.id
        assert view["title"] == "Dean's List"
        assert view["status"] == "draft"

    def test_history_of_verified_record(self):
        submitted = NOW + timedelta(days=1)
        verified = NOW + timedelta(days=2)
        reference, _ = self._pair(
            status=Status.VERIFIED,
            submitted_at=submitted,
            verified_at=verified,
            verified_by="adv-1",
        )
        events = build_history(reference)
        assert [e.status for e in events] == [
            Status.DRAFT,
            Status.SUBMITTED,
            Status.VERIFIED,
        ]
        assert events[-1].verified_by == "adv-1"

    def test_history_of_rejected_record(self):
        reference, _ = self._pair(
            status=Status.REJECTED,
            submitted_at=NOW,
            rejection_note="Missing certificate",
        )
        events = build_history(reference)
        assert events[-1].status == Status.REJECTED
        assert "Missing certificate" in events[-1].note
