"""
photomatch — Survey content models (questions, text choices, image choices).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from photomatch.database import Base, JSONType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SurveyQuestion(Base):
    __tablename__ = "survey_questions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    question_order: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    question_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="single_choice",
        comment="single_choice / image_choice",
    )
    dimension_weights: Mapped[dict] = mapped_column(
        JSONType, nullable=False, default=dict,
        comment="Per-dimension weight map, e.g. {'style_emotion': 1.0}",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    # ── Relationships ──────────────────────────────────────────────
    choices: Mapped[list["SurveyChoice"]] = relationship(
        "SurveyChoice", back_populates="question", lazy="selectin",
        order_by="SurveyChoice.choice_order",
    )
    images: Mapped[list["SurveyImage"]] = relationship(
        "SurveyImage", back_populates="question", lazy="selectin",
        order_by="SurveyImage.image_order",
    )

    def __repr__(self) -> str:
        return f"<SurveyQuestion #{self.question_order} {self.question_key!r}>"


class SurveyChoice(Base):
    __tablename__ = "survey_choices"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    question_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("survey_questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    choice_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    label: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    embedding_generated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    question: Mapped["SurveyQuestion"] = relationship("SurveyQuestion", back_populates="choices")

    def __repr__(self) -> str:
        return f"<SurveyChoice {self.id} {self.label[:30]!r}>"


class SurveyImage(Base):
    __tablename__ = "survey_images"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    question_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("survey_questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    image_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    image_label: Mapped[str | None] = mapped_column(Text, nullable=True)
    embedding: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    embedding_generated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    question: Mapped["SurveyQuestion"] = relationship("SurveyQuestion", back_populates="images")
