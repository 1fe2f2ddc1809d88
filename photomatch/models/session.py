"""
photomatch — Matching session and answer models.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from photomatch.database import Base, JSONType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MatchingSession(Base):
    __tablename__ = "matching_sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    session_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="started",
        comment="started / answering / ready / scored",
    )
    answers_version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="bumped on every recorded answer"
    )
    aggregate_vectors: Mapped[dict | None] = mapped_column(
        JSONType, nullable=True, comment="{dimension: unit vector}"
    )
    degraded_dimensions: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    ready_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    answers: Mapped[list["SessionAnswer"]] = relationship(
        "SessionAnswer", back_populates="session", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<MatchingSession {self.id} status={self.status}>"


class SessionAnswer(Base):
    __tablename__ = "session_answers"
    __table_args__ = (
        UniqueConstraint("session_id", "question_id", name="uq_session_answer_question"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("matching_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("survey_questions.id", ondelete="CASCADE"), nullable=False
    )
    choice_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("survey_choices.id", ondelete="CASCADE"), nullable=True
    )
    image_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("survey_images.id", ondelete="CASCADE"), nullable=True
    )
    answered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    session: Mapped["MatchingSession"] = relationship("MatchingSession", back_populates="answers")
