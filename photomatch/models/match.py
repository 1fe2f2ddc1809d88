"""
photomatch — Persisted result sets.

``matching_result_sets`` is keyed by session id: the primary key is the
single-writer-wins constraint for finalisation.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from photomatch.database import Base, JSONType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MatchingResultSet(Base):
    __tablename__ = "matching_result_sets"

    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("matching_sessions.id", ondelete="CASCADE"), primary_key=True
    )
    weights: Mapped[dict] = mapped_column(JSONType, nullable=False)
    top_k: Mapped[int] = mapped_column(Integer, nullable=False)
    candidates_scored: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    results: Mapped[list["MatchingResult"]] = relationship(
        "MatchingResult", back_populates="result_set", cascade="all, delete-orphan",
        order_by="MatchingResult.rank_position",
    )


class MatchingResult(Base):
    __tablename__ = "matching_results"
    __table_args__ = (
        UniqueConstraint("session_id", "rank_position", name="uq_result_rank"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("matching_result_sets.session_id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    photographer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("photographer_profiles.id", ondelete="CASCADE"), nullable=False
    )
    rank_position: Mapped[int] = mapped_column(Integer, nullable=False)
    total_score: Mapped[float] = mapped_column(Float, nullable=False)
    style_emotion_score: Mapped[float] = mapped_column(Float, nullable=False)
    communication_psychology_score: Mapped[float] = mapped_column(Float, nullable=False)
    purpose_story_score: Mapped[float] = mapped_column(Float, nullable=False)
    companion_score: Mapped[float] = mapped_column(Float, nullable=False)

    result_set: Mapped["MatchingResultSet"] = relationship(
        "MatchingResultSet", back_populates="results"
    )

    def __repr__(self) -> str:
        return f"<MatchingResult #{self.rank_position} {self.photographer_id} {self.total_score:.3f}>"
