"""
photomatch — Photographer profile model.

Four dimension descriptions, each with an optional embedding.
``profile_completed`` is true exactly when all four embeddings are present.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from photomatch.database import Base, JSONType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PhotographerProfile(Base):
    __tablename__ = "photographer_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)

    style_emotion_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    style_emotion_embedding: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    communication_psychology_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    communication_psychology_embedding: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    purpose_story_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    purpose_story_embedding: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    companion_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    companion_embedding: Mapped[list | None] = mapped_column(JSONType, nullable=True)

    embeddings_generated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    profile_completed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<PhotographerProfile {self.id} complete={self.profile_completed}>"
