"""Initial schema: survey, photographer, session, result and job tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _vector_column(name: str) -> sa.Column:
    return sa.Column(name, postgresql.JSONB, nullable=True)


def upgrade() -> None:
    # ── 1. survey_questions ─────────────────────────────────────────
    op.create_table(
        "survey_questions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("question_order", sa.Integer, nullable=False, index=True),
        sa.Column("question_key", sa.String(100), unique=True, nullable=False),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column(
            "question_type",
            sa.String(20),
            server_default="single_choice",
            nullable=False,
            comment="single_choice / image_choice",
        ),
        sa.Column("dimension_weights", postgresql.JSONB, nullable=False),
        sa.Column("is_active", sa.Boolean, server_default="true", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # ── 2. survey_choices ───────────────────────────────────────────
    op.create_table(
        "survey_choices",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "question_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("survey_questions.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("choice_order", sa.Integer, server_default="0", nullable=False),
        sa.Column("label", sa.Text, nullable=False),
        _vector_column("embedding"),
        sa.Column("embedding_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean, server_default="true", nullable=False),
    )

    # ── 3. survey_images ────────────────────────────────────────────
    op.create_table(
        "survey_images",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "question_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("survey_questions.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("image_order", sa.Integer, server_default="0", nullable=False),
        sa.Column("image_url", sa.Text, nullable=False),
        sa.Column("image_label", sa.Text, nullable=True),
        _vector_column("embedding"),
        sa.Column("embedding_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean, server_default="true", nullable=False),
    )

    # ── 4. photographer_profiles ────────────────────────────────────
    op.create_table(
        "photographer_profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("style_emotion_description", sa.Text, nullable=True),
        _vector_column("style_emotion_embedding"),
        sa.Column("communication_psychology_description", sa.Text, nullable=True),
        _vector_column("communication_psychology_embedding"),
        sa.Column("purpose_story_description", sa.Text, nullable=True),
        _vector_column("purpose_story_embedding"),
        sa.Column("companion_description", sa.Text, nullable=True),
        _vector_column("companion_embedding"),
        sa.Column("embeddings_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "profile_completed",
            sa.Boolean,
            server_default="false",
            nullable=False,
            index=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(
            "NOT profile_completed OR ("
            "style_emotion_embedding IS NOT NULL AND "
            "communication_psychology_embedding IS NOT NULL AND "
            "purpose_story_embedding IS NOT NULL AND "
            "companion_embedding IS NOT NULL)",
            name="ck_profile_completed_requires_vectors",
        ),
    )

    # ── 5. matching_sessions ────────────────────────────────────────
    op.create_table(
        "matching_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("session_token", sa.String(64), unique=True, nullable=False),
        sa.Column(
            "status",
            sa.String(20),
            server_default="started",
            nullable=False,
            comment="started / answering / ready / scored",
        ),
        sa.Column(
            "answers_version",
            sa.Integer,
            server_default="0",
            nullable=False,
            comment="bumped on every recorded answer",
        ),
        sa.Column("aggregate_vectors", postgresql.JSONB, nullable=True),
        sa.Column("degraded_dimensions", postgresql.JSONB, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("ready_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )

    # ── 6. session_answers ──────────────────────────────────────────
    op.create_table(
        "session_answers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("matching_sessions.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "question_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("survey_questions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "choice_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("survey_choices.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "image_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("survey_images.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "answered_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("session_id", "question_id", name="uq_session_answer_question"),
    )

    # ── 7. matching_result_sets ─────────────────────────────────────
    op.create_table(
        "matching_result_sets",
        sa.Column(
            "session_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("matching_sessions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("weights", postgresql.JSONB, nullable=False),
        sa.Column("top_k", sa.Integer, nullable=False),
        sa.Column("candidates_scored", sa.Integer, server_default="0", nullable=False),
        sa.Column(
            "computed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # ── 8. matching_results ─────────────────────────────────────────
    op.create_table(
        "matching_results",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("matching_result_sets.session_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "photographer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("photographer_profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("rank_position", sa.Integer, nullable=False),
        sa.Column("total_score", sa.Float, nullable=False),
        sa.Column("style_emotion_score", sa.Float, nullable=False),
        sa.Column("communication_psychology_score", sa.Float, nullable=False),
        sa.Column("purpose_story_score", sa.Float, nullable=False),
        sa.Column("companion_score", sa.Float, nullable=False),
        sa.UniqueConstraint("session_id", "rank_position", name="uq_result_rank"),
    )

    # ── 9. embedding_jobs ───────────────────────────────────────────
    op.create_table(
        "embedding_jobs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "job_type",
            sa.String(40),
            nullable=False,
            comment="choice_embedding / image_embedding / photographer_profile",
        ),
        sa.Column("target_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column(
            "status",
            sa.String(20),
            server_default="pending",
            nullable=False,
            index=True,
            comment="pending / processing / completed / failed",
        ),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_embedding_jobs_target_status",
        "embedding_jobs",
        ["job_type", "target_id", "status"],
    )


def downgrade() -> None:
    # Drop in reverse order (children / dependents first).
    op.drop_index("ix_embedding_jobs_target_status", table_name="embedding_jobs")
    op.drop_table("embedding_jobs")
    op.drop_table("matching_results")
    op.drop_table("matching_result_sets")
    op.drop_table("session_answers")
    op.drop_table("matching_sessions")
    op.drop_table("photographer_profiles")
    op.drop_table("survey_images")
    op.drop_table("survey_choices")
    op.drop_table("survey_questions")
