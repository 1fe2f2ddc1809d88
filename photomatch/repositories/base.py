"""
Narrow data-access interfaces for the matching core.

Each service depends only on the protocol it needs; the SQLAlchemy
repository implements all of them, and tests substitute in-memory fakes.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol, Sequence

from photomatch.domain import (
    AnsweredChoice,
    CandidateProfile,
    Dimension,
    DimensionWeights,
    EmbeddingKind,
    EmbeddingSource,
    EmbeddingTarget,
    MatchResult,
    SessionSnapshot,
    Vector,
)


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class EmbeddingJobRecord:
    job_id: uuid.UUID
    target: EmbeddingTarget
    status: JobStatus
    error_message: str | None = None
    created_at: datetime | None = None
    processed_at: datetime | None = None


@dataclass(frozen=True)
class EmbeddingCoverage:
    """How many targets of one kind exist and how many carry their vector."""

    total: int
    generated: int

    @property
    def pending(self) -> int:
        return self.total - self.generated


# -------------------------------------------------------------------------
# Protocols
# -------------------------------------------------------------------------


class VectorStore(Protocol):
    async def get_embedding_source(self, target: EmbeddingTarget) -> EmbeddingSource:
        """Return what ``target`` needs embedded; raise ``NotFoundError`` if absent."""
        ...

    async def store_vector(
        self,
        target: EmbeddingTarget,
        vector: Vector,
        generated_at: datetime,
        dimension: Dimension | None = None,
    ) -> None:
        """Overwrite one vector and its timestamp.

        Photographer profiles need ``dimension``; ``profile_completed`` is
        recomputed in the same write.
        """
        ...

    async def update_label(self, target: EmbeddingTarget, label: str) -> None:
        """Replace a choice or image label and reset its vector to pending."""
        ...

    async def list_missing_targets(self) -> list[EmbeddingTarget]: ...

    async def count_embedding_coverage(self) -> dict[EmbeddingKind, EmbeddingCoverage]:
        """Totals per kind over active choices, active images and every profile.

        A profile counts as generated only once all four vectors are stored.
        """
        ...


class SessionStore(Protocol):
    async def create_session(self) -> SessionSnapshot: ...

    async def get_session(self, session_id: uuid.UUID) -> SessionSnapshot | None: ...

    async def record_answer(
        self, session_id: uuid.UUID, question_id: uuid.UUID, choice_id: uuid.UUID
    ) -> SessionSnapshot: ...

    async def get_answered_choices(self, session_id: uuid.UUID) -> list[AnsweredChoice]: ...

    async def save_aggregates(
        self,
        session_id: uuid.UUID,
        vectors: dict[Dimension, Vector],
        degraded: Sequence[Dimension],
        answers_version: int,
    ) -> SessionSnapshot:
        """Persist the four aggregate vectors and move the session to ``ready``.

        The move is a compare-and-set on ``answers_version``: if an answer was
        recorded after the aggregated answers were read, raise
        ``AnswersChangedError`` and leave the session untouched.  A ``scored``
        session keeps its status (administrative recompute).
        """
        ...


class CandidateStore(Protocol):
    async def list_candidates(self, complete_only: bool = False) -> list[CandidateProfile]: ...


class ResultStore(Protocol):
    async def save_result_set(
        self,
        session_id: uuid.UUID,
        results: Sequence[MatchResult],
        weights: DimensionWeights,
        top_k: int,
        candidates_scored: int,
        replace: bool = False,
    ) -> None:
        """Atomically write the full ranked set and mark the session ``scored``.

        Raises ``PersistenceConflict`` if a set already exists and
        ``replace`` is false.
        """
        ...

    async def get_results(self, session_id: uuid.UUID) -> list[MatchResult]: ...


class JobQueue(Protocol):
    async def enqueue_job(self, target: EmbeddingTarget) -> tuple[uuid.UUID, bool]:
        """Return ``(job_id, created)``; an existing pending job is reused."""
        ...

    async def list_pending_jobs(self, limit: int | None = None) -> list[EmbeddingJobRecord]: ...

    async def update_job_status(
        self, job_id: uuid.UUID, status: JobStatus, error_message: str | None = None
    ) -> None: ...


class MatchingRepository(VectorStore, SessionStore, CandidateStore, ResultStore, JobQueue, Protocol):
    """Everything the service layer needs from storage."""
