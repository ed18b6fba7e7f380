"""create assessment tables

Revision ID: a1c4e2f09b7d
Revises:
Create Date: 2026-10-17 09:12:40.118302

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a1c4e2f09b7d"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

json_type = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def timestamps():
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def create_indexes(table: str, *columns: str, unique: Sequence[str] = ()) -> None:
    for column in columns:
        op.create_index(
            op.f(f"ix_{table}_{column}"), table, [column], unique=column in unique
        )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("permissions", json_type, nullable=False),
        *timestamps(),
    )
    create_indexes("users", "id", "email", unique=("email",))

    op.create_table(
        "courses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("content_type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        *timestamps(),
    )
    create_indexes("courses", "id", "title", unique=("title",))

    op.create_table(
        "questions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("question_type", sa.String(30), nullable=False),
        sa.Column("text_raw", sa.Text(), nullable=False),
        sa.Column("text_html", sa.Text(), nullable=True),
        sa.Column("context_raw", sa.Text(), nullable=True),
        sa.Column("context_html", sa.Text(), nullable=True),
        sa.Column("options", json_type, nullable=True),
        sa.Column("true_false_answer", sa.Boolean(), nullable=True),
        sa.Column("correct_answers", json_type, nullable=True),
        sa.Column("numerical_answer", sa.Float(), nullable=True),
        sa.Column("numerical_tolerance", sa.Float(), nullable=True),
        sa.Column("requires_manual_grading", sa.Boolean(), nullable=False),
        sa.Column("case_sensitive", sa.Boolean(), nullable=False),
        sa.Column("feedback", sa.Text(), nullable=True),
        *timestamps(),
    )
    create_indexes("questions", "id", "question_type")

    op.create_table(
        "sections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("score_group", sa.String(30), nullable=True),
        *timestamps(),
        sa.UniqueConstraint("course_id", "position"),
    )
    create_indexes("sections", "id", "course_id")

    # Lesson and quiz modules share one table keyed by module_type
    op.create_table(
        "modules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("module_type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("sections.id"), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("progress_bar", sa.Boolean(), nullable=True),
        sa.Column("time_limit_minutes", sa.Integer(), nullable=True),
        sa.Column("passing_score_percentage", sa.Integer(), nullable=True),
        sa.Column("max_attempts", sa.Integer(), nullable=True),
        sa.Column("question_shuffle", sa.Boolean(), nullable=True),
        sa.Column("shuffle_options", sa.Boolean(), nullable=True),
        sa.Column("timer_end_behavior", sa.String(30), nullable=True),
        sa.Column("direction", sa.Text(), nullable=True),
        sa.Column("is_sat", sa.Boolean(), nullable=True),
        *timestamps(),
    )
    create_indexes("modules", "id", "module_type", "section_id")

    op.create_table(
        "lesson_contents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.Column("content_type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
        *timestamps(),
    )
    create_indexes("lesson_contents", "id", "module_id")

    op.create_table(
        "quiz_strands",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("shuffle_questions", sa.Boolean(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
    )
    create_indexes("quiz_strands", "id", "module_id")

    op.create_table(
        "module_questions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=True),
        sa.Column(
            "strand_id", sa.Integer(), sa.ForeignKey("quiz_strands.id"), nullable=True
        ),
        sa.Column(
            "question_id",
            sa.Integer(),
            sa.ForeignKey("questions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
    )
    create_indexes("module_questions", "id", "module_id", "strand_id")

    op.create_table(
        "quiz_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("sections.id"), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("source_fingerprint", sa.String(64), nullable=False),
        sa.Column("settings", json_type, nullable=False),
        sa.Column("questions", json_type, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("module_id", "version"),
    )
    create_indexes("quiz_snapshots", "id", "module_id")

    op.create_table(
        "enrollments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("progress_percentage", sa.Integer(), nullable=False),
        sa.Column("grade", sa.Float(), nullable=True),
        sa.Column("completed_modules", json_type, nullable=False),
        sa.Column("completed_content_ids", json_type, nullable=False),
        sa.Column("quiz_points_earned", sa.Float(), nullable=False),
        sa.Column("quiz_points_possible", sa.Float(), nullable=False),
        sa.Column("last_active_module_id", sa.Integer(), nullable=True),
        sa.Column(
            "enrolled_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("last_accessed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "course_id"),
    )
    create_indexes("enrollments", "id", "user_id", "course_id")

    op.create_table(
        "practice_test_attempts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column(
            "enrollment_id", sa.Integer(), sa.ForeignKey("enrollments.id"), nullable=True
        ),
        sa.Column("section_ids", json_type, nullable=False),
        sa.Column("snapshot_ids", json_type, nullable=False),
        sa.Column("overall_score", sa.Float(), nullable=False),
        sa.Column("overall_total_points", sa.Float(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("attempt_number", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_active_quiz_module_id", sa.Integer(), nullable=True),
        sa.Column("last_active_quiz_attempt_id", sa.Integer(), nullable=True),
        sa.Column("sat_score_details", json_type, nullable=True),
        sa.Column("section_scores", json_type, nullable=False),
        *timestamps(),
    )
    create_indexes(
        "practice_test_attempts", "id", "user_id", "course_id", "enrollment_id", "status"
    )

    op.create_table(
        "quiz_attempts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.Column(
            "enrollment_id", sa.Integer(), sa.ForeignKey("enrollments.id"), nullable=True
        ),
        sa.Column(
            "practice_test_attempt_id",
            sa.Integer(),
            sa.ForeignKey("practice_test_attempts.id"),
            nullable=True,
        ),
        sa.Column(
            "snapshot_id", sa.Integer(), sa.ForeignKey("quiz_snapshots.id"), nullable=False
        ),
        sa.Column("shuffled_question_order", json_type, nullable=False),
        sa.Column("questions_attempted_details", json_type, nullable=False),
        sa.Column("annotations", json_type, nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("remaining_time", sa.Integer(), nullable=True),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("total_points_possible", sa.Float(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("last_active_question_index", sa.Integer(), nullable=False),
        sa.Column("is_auto_submitted", sa.Boolean(), nullable=False),
        *timestamps(),
    )
    create_indexes(
        "quiz_attempts",
        "id",
        "user_id",
        "module_id",
        "enrollment_id",
        "practice_test_attempt_id",
        "snapshot_id",
        "status",
    )


def downgrade() -> None:
    for table in (
        "quiz_attempts",
        "practice_test_attempts",
        "enrollments",
        "quiz_snapshots",
        "module_questions",
        "quiz_strands",
        "lesson_contents",
        "modules",
        "sections",
        "questions",
        "courses",
        "users",
    ):
        op.drop_table(table)
