"""Create achievement_references table

Revision ID: 001_achievement_references
Revises:
Create Date: 2026-10-19

"""
import sqlalchemy as sa
from alembic import op

# revision identifiers
revision = "001_achievement_references"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "achievement_references",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("student_id", sa.String(128), nullable=False),
        sa.Column("content_id", sa.String(128), nullable=False, unique=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_by", sa.String(128), nullable=True),
        sa.Column("rejection_note", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('draft', 'submitted', 'verified', 'rejected', 'deleted')",
            name="ck_achievement_references_status",
        ),
    )

    op.create_index(
        "ix_achievement_references_student_id", "achievement_references", ["student_id"]
    )
    op.create_index(
        "ix_achievement_references_status", "achievement_references", ["status"]
    )
    op.create_index(
        "ix_achievement_references_student_status",
        "achievement_references",
        ["student_id", "status"],
    )
    op.create_index(
        "ix_achievement_references_created_at", "achievement_references", ["created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_achievement_references_created_at", "achievement_references")
    op.drop_index("ix_achievement_references_student_status", "achievement_references")
    op.drop_index("ix_achievement_references_status", "achievement_references")
    op.drop_index("ix_achievement_references_student_id", "achievement_references")
    op.drop_table("achievement_references")
