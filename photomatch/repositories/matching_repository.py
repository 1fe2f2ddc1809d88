"""
SQLAlchemy implementation of the matching data-access protocols.

Every public method opens its own session and transaction, so each write is
durable on return and no ORM state leaks across calls.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timezone
from typing import Any, Sequence

import structlog
from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from photomatch.domain import (
    DIMENSIONS,
    AnsweredChoice,
    CandidateProfile,
    Dimension,
    DimensionWeights,
    EmbeddingKind,
    EmbeddingSource,
    EmbeddingTarget,
    ImageRef,
    MatchResult,
    SessionSnapshot,
    SessionStatus,
    Vector,
    ensure_transition,
    vector_state,
)
from photomatch.exceptions import (
    AnswersChangedError,
    InvalidSessionTransition,
    NotFoundError,
    PersistenceConflict,
    ValidationError,
)
from photomatch.models.embedding_job import EmbeddingJob
from photomatch.models.match import MatchingResult, MatchingResultSet
from photomatch.models.photographer import PhotographerProfile
from photomatch.models.session import MatchingSession, SessionAnswer
from photomatch.models.survey import SurveyChoice, SurveyImage, SurveyQuestion
from photomatch.repositories.base import EmbeddingCoverage, EmbeddingJobRecord, JobStatus

logger = structlog.get_logger(__name__)

_ANSWERABLE = (SessionStatus.STARTED.value, SessionStatus.ANSWERING.value)
_AGGREGATABLE = (SessionStatus.ANSWERING.value, SessionStatus.READY.value)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_dimension_weights(raw: dict[str, Any] | None) -> dict[Dimension, float]:
    """Convert a stored weight map to ``{Dimension: weight}``, dropping unknown keys."""
    parsed: dict[Dimension, float] = {}
    for key, value in (raw or {}).items():
        try:
            dim = Dimension(key)
        except ValueError:
            logger.warning("unknown_dimension_weight_key", key=key)
            continue
        parsed[dim] = float(value or 0.0)
    return parsed


def _snapshot(row: MatchingSession) -> SessionSnapshot:
    return SessionSnapshot(
        session_id=row.id,
        status=SessionStatus(row.status),
        session_token=row.session_token,
        created_at=row.created_at,
        ready_at=row.ready_at,
        completed_at=row.completed_at,
        answers_version=row.answers_version or 0,
    )


def _candidate(row: PhotographerProfile) -> CandidateProfile:
    return CandidateProfile(
        candidate_id=row.id,
        created_at=row.created_at,
        vectors={
            dim: vector_state(getattr(row, f"{dim.value}_embedding"), row.embeddings_generated_at)
            for dim in DIMENSIONS
        },
        profile_completed=bool(row.profile_completed),
    )


def _result(row: MatchingResult) -> MatchResult:
    return MatchResult(
        session_id=row.session_id,
        candidate_id=row.photographer_id,
        rank=row.rank_position,
        total_score=row.total_score,
        dimension_scores={dim: getattr(row, f"{dim.value}_score") for dim in DIMENSIONS},
    )


def _job(row: EmbeddingJob) -> EmbeddingJobRecord:
    return EmbeddingJobRecord(
        job_id=row.id,
        target=EmbeddingTarget(EmbeddingKind(row.job_type), row.target_id),
        status=JobStatus(row.status),
        error_message=row.error_message,
        created_at=row.created_at,
        processed_at=row.processed_at,
    )


class SqlAlchemyMatchingRepository:
    """Implements VectorStore, SessionStore, CandidateStore, ResultStore and JobQueue."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # -------------------------------------------------------------------------
    # Internal lookups
    # -------------------------------------------------------------------------

    @staticmethod
    async def _load_session(db: AsyncSession, session_id: uuid.UUID) -> MatchingSession:
        row = await db.get(MatchingSession, session_id)
        if row is None:
            raise NotFoundError("Session", session_id)
        return row

    @staticmethod
    async def _load_target_row(db: AsyncSession, target: EmbeddingTarget):
        model = {
            EmbeddingKind.CHOICE: SurveyChoice,
            EmbeddingKind.IMAGE: SurveyImage,
            EmbeddingKind.PHOTOGRAPHER_PROFILE: PhotographerProfile,
        }[target.kind]
        row = await db.get(model, target.target_id)
        if row is None:
            raise NotFoundError(target.kind.value, target.target_id)
        return row

    # -------------------------------------------------------------------------
    # VectorStore
    # -------------------------------------------------------------------------

    async def get_embedding_source(self, target: EmbeddingTarget) -> EmbeddingSource:
        async with self._session_factory() as db:
            row = await self._load_target_row(db, target)
            if target.kind is EmbeddingKind.CHOICE:
                return EmbeddingSource(target=target, text=row.label)
            if target.kind is EmbeddingKind.IMAGE:
                return EmbeddingSource(
                    target=target, image=ImageRef(url=row.image_url, label=row.image_label)
                )
            return EmbeddingSource(
                target=target,
                descriptions={
                    dim: getattr(row, f"{dim.value}_description") for dim in DIMENSIONS
                },
            )

    async def store_vector(
        self,
        target: EmbeddingTarget,
        vector: Vector,
        generated_at: datetime,
        dimension: Dimension | None = None,
    ) -> None:
        values = [float(x) for x in vector]
        async with self._session_factory() as db:
            async with db.begin():
                row = await self._load_target_row(db, target)
                if target.kind is EmbeddingKind.PHOTOGRAPHER_PROFILE:
                    if dimension is None:
                        raise ValidationError("A dimension is required for photographer vectors")
                    setattr(row, f"{dimension.value}_embedding", values)
                    row.embeddings_generated_at = generated_at
                    row.profile_completed = all(
                        getattr(row, f"{dim.value}_embedding") is not None for dim in DIMENSIONS
                    )
                else:
                    row.embedding = values
                    row.embedding_generated_at = generated_at

    async def update_label(self, target: EmbeddingTarget, label: str) -> None:
        if not label or not label.strip():
            raise ValidationError("Label must not be empty")
        async with self._session_factory() as db:
            async with db.begin():
                row = await self._load_target_row(db, target)
                if target.kind is EmbeddingKind.CHOICE:
                    row.label = label
                elif target.kind is EmbeddingKind.IMAGE:
                    row.image_label = label
                else:
                    raise ValidationError("Only choice and image labels can be edited")
                row.embedding = None
                row.embedding_generated_at = None

    async def list_missing_targets(self) -> list[EmbeddingTarget]:
        async with self._session_factory() as db:
            choices = await db.execute(
                select(SurveyChoice.id)
                .where(SurveyChoice.is_active.is_(True), SurveyChoice.embedding.is_(None))
                .order_by(SurveyChoice.id)
            )
            images = await db.execute(
                select(SurveyImage.id)
                .where(SurveyImage.is_active.is_(True), SurveyImage.embedding.is_(None))
                .order_by(SurveyImage.id)
            )
            profiles = await db.execute(
                select(PhotographerProfile.id)
                .where(PhotographerProfile.profile_completed.is_(False))
                .order_by(PhotographerProfile.created_at, PhotographerProfile.id)
            )
            return (
                [EmbeddingTarget(EmbeddingKind.CHOICE, i) for i in choices.scalars()]
                + [EmbeddingTarget(EmbeddingKind.IMAGE, i) for i in images.scalars()]
                + [EmbeddingTarget(EmbeddingKind.PHOTOGRAPHER_PROFILE, i) for i in profiles.scalars()]
            )

    async def count_embedding_coverage(self) -> dict[EmbeddingKind, EmbeddingCoverage]:
        async with self._session_factory() as db:
            choices = await db.execute(
                select(func.count(SurveyChoice.id), func.count(SurveyChoice.embedding)).where(
                    SurveyChoice.is_active.is_(True)
                )
            )
            images = await db.execute(
                select(func.count(SurveyImage.id), func.count(SurveyImage.embedding)).where(
                    SurveyImage.is_active.is_(True)
                )
            )
            profiles = await db.execute(
                select(
                    func.count(PhotographerProfile.id),
                    func.count(case((PhotographerProfile.profile_completed.is_(True), 1))),
                )
            )
            return {
                kind: EmbeddingCoverage(total=total or 0, generated=generated or 0)
                for kind, (total, generated) in (
                    (EmbeddingKind.CHOICE, choices.one()),
                    (EmbeddingKind.IMAGE, images.one()),
                    (EmbeddingKind.PHOTOGRAPHER_PROFILE, profiles.one()),
                )
            }

    # -------------------------------------------------------------------------
    # SessionStore
    # -------------------------------------------------------------------------

    async def create_session(self) -> SessionSnapshot:
        async with self._session_factory() as db:
            async with db.begin():
                row = MatchingSession(
                    session_token=secrets.token_urlsafe(24),
                    status=SessionStatus.STARTED.value,
                )
                db.add(row)
                await db.flush()
                return _snapshot(row)

    async def get_session(self, session_id: uuid.UUID) -> SessionSnapshot | None:
        async with self._session_factory() as db:
            row = await db.get(MatchingSession, session_id)
            return _snapshot(row) if row is not None else None

    async def record_answer(
        self, session_id: uuid.UUID, question_id: uuid.UUID, choice_id: uuid.UUID
    ) -> SessionSnapshot:
        async with self._session_factory() as db:
            async with db.begin():
                session_row = await self._load_session(db, session_id)
                ensure_transition(session_row.status, SessionStatus.ANSWERING)

                question = await db.get(SurveyQuestion, question_id)
                if question is None or not question.is_active:
                    raise NotFoundError("Question", question_id)

                is_image = question.question_type == "image_choice"
                option = await db.get(SurveyImage if is_image else SurveyChoice, choice_id)
                if option is None or not option.is_active:
                    raise NotFoundError("Image" if is_image else "Choice", choice_id)
                if option.question_id != question_id:
                    raise ValidationError(
                        f"Choice {choice_id} does not belong to question {question_id}"
                    )

                # conditional update on the session row: serialises with the
                # READY compare-and-set in save_aggregates
                claimed = await db.execute(
                    update(MatchingSession)
                    .where(
                        MatchingSession.id == session_id,
                        MatchingSession.status.in_(_ANSWERABLE),
                    )
                    .values(
                        status=SessionStatus.ANSWERING.value,
                        answers_version=MatchingSession.answers_version + 1,
                    )
                    .execution_options(synchronize_session=False)
                )
                if claimed.rowcount == 0:
                    await db.refresh(session_row)
                    raise InvalidSessionTransition(
                        session_row.status, SessionStatus.ANSWERING.value
                    )

                existing = (
                    await db.execute(
                        select(SessionAnswer).where(
                            SessionAnswer.session_id == session_id,
                            SessionAnswer.question_id == question_id,
                        )
                    )
                ).scalar_one_or_none()
                if existing is None:
                    existing = SessionAnswer(session_id=session_id, question_id=question_id)
                    db.add(existing)
                existing.choice_id = None if is_image else choice_id
                existing.image_id = choice_id if is_image else None
                existing.answered_at = _utcnow()

                await db.flush()
                await db.refresh(session_row)
                return _snapshot(session_row)

    async def get_answered_choices(self, session_id: uuid.UUID) -> list[AnsweredChoice]:
        async with self._session_factory() as db:
            await self._load_session(db, session_id)
            rows = await db.execute(
                select(SessionAnswer, SurveyQuestion)
                .join(SurveyQuestion, SurveyQuestion.id == SessionAnswer.question_id)
                .where(SessionAnswer.session_id == session_id)
                .order_by(SurveyQuestion.question_order, SurveyQuestion.id)
            )
            answered: list[AnsweredChoice] = []
            for answer, question in rows.all():
                if answer.image_id is not None:
                    option = await db.get(SurveyImage, answer.image_id)
                else:
                    option = await db.get(SurveyChoice, answer.choice_id)
                if option is None:
                    raise NotFoundError("Choice", answer.image_id or answer.choice_id)
                answered.append(
                    AnsweredChoice(
                        question_id=question.id,
                        question_order=question.question_order,
                        choice_id=option.id,
                        vector=vector_state(option.embedding, option.embedding_generated_at),
                        weights=parse_dimension_weights(question.dimension_weights),
                    )
                )
            return answered

    async def save_aggregates(
        self,
        session_id: uuid.UUID,
        vectors: dict[Dimension, Vector],
        degraded: Sequence[Dimension],
        answers_version: int,
    ) -> SessionSnapshot:
        async with self._session_factory() as db:
            async with db.begin():
                row = await self._load_session(db, session_id)
                current = SessionStatus(row.status)
                target = SessionStatus.SCORED if current is SessionStatus.SCORED else SessionStatus.READY
                ensure_transition(current, target)

                if target is SessionStatus.READY:
                    # compare-and-set: only the answer set that was aggregated may freeze
                    frozen = await db.execute(
                        update(MatchingSession)
                        .where(
                            MatchingSession.id == session_id,
                            MatchingSession.status.in_(_AGGREGATABLE),
                            MatchingSession.answers_version == answers_version,
                        )
                        .values(status=SessionStatus.READY.value, ready_at=_utcnow())
                        .execution_options(synchronize_session=False)
                    )
                    await db.refresh(row)
                    if frozen.rowcount == 0:
                        if row.status not in _AGGREGATABLE:
                            raise InvalidSessionTransition(row.status, SessionStatus.READY.value)
                        logger.info(
                            "aggregates_stale",
                            session_id=str(session_id),
                            read_version=answers_version,
                            current_version=row.answers_version,
                        )
                        raise AnswersChangedError(session_id, answers_version, row.answers_version)

                row.aggregate_vectors = {
                    dim.value: [float(x) for x in vectors[dim]] for dim in DIMENSIONS
                }
                row.degraded_dimensions = sorted(d.value for d in degraded)
                await db.flush()
                return _snapshot(row)

    # -------------------------------------------------------------------------
    # CandidateStore
    # -------------------------------------------------------------------------

    async def list_candidates(self, complete_only: bool = False) -> list[CandidateProfile]:
        async with self._session_factory() as db:
            stmt = select(PhotographerProfile).order_by(
                PhotographerProfile.created_at, PhotographerProfile.id
            )
            if complete_only:
                stmt = stmt.where(PhotographerProfile.profile_completed.is_(True))
            rows = await db.execute(stmt)
            return [_candidate(r) for r in rows.scalars()]

    # -------------------------------------------------------------------------
    # ResultStore
    # -------------------------------------------------------------------------

    async def save_result_set(
        self,
        session_id: uuid.UUID,
        results: Sequence[MatchResult],
        weights: DimensionWeights,
        top_k: int,
        candidates_scored: int,
        replace: bool = False,
    ) -> None:
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    session_row = await self._load_session(db, session_id)
                    current = SessionStatus(session_row.status)

                    if replace:
                        await db.execute(
                            delete(MatchingResult).where(MatchingResult.session_id == session_id)
                        )
                        await db.execute(
                            delete(MatchingResultSet).where(
                                MatchingResultSet.session_id == session_id
                            )
                        )
                    elif current is SessionStatus.SCORED:
                        raise PersistenceConflict(session_id)

                    ensure_transition(current, SessionStatus.SCORED)

                    db.add(
                        MatchingResultSet(
                            session_id=session_id,
                            weights={d.value: w for d, w in weights.normalized().items()},
                            top_k=top_k,
                            candidates_scored=candidates_scored,
                        )
                    )
                    # the header insert is where a concurrent writer collides
                    await db.flush()

                    for result in results:
                        db.add(
                            MatchingResult(
                                session_id=session_id,
                                photographer_id=result.candidate_id,
                                rank_position=result.rank,
                                total_score=result.total_score,
                                **{
                                    f"{dim.value}_score": result.dimension_scores[dim]
                                    for dim in DIMENSIONS
                                },
                            )
                        )

                    session_row.status = SessionStatus.SCORED.value
                    session_row.completed_at = _utcnow()
        except IntegrityError as exc:
            logger.warning(
                "result_set_integrity_conflict",
                session_id=str(session_id),
                error=str(exc.orig),
            )
            raise PersistenceConflict(session_id) from exc

    async def get_results(self, session_id: uuid.UUID) -> list[MatchResult]:
        async with self._session_factory() as db:
            rows = await db.execute(
                select(MatchingResult)
                .where(MatchingResult.session_id == session_id)
                .order_by(MatchingResult.rank_position)
            )
            return [_result(r) for r in rows.scalars()]

    # -------------------------------------------------------------------------
    # JobQueue
    # -------------------------------------------------------------------------

    async def enqueue_job(self, target: EmbeddingTarget) -> tuple[uuid.UUID, bool]:
        async with self._session_factory() as db:
            async with db.begin():
                existing = (
                    await db.execute(
                        select(EmbeddingJob).where(
                            EmbeddingJob.job_type == target.kind.value,
                            EmbeddingJob.target_id == target.target_id,
                            EmbeddingJob.status == JobStatus.PENDING.value,
                        )
                    )
                ).scalars().first()
                if existing is not None:
                    return existing.id, False

                job = EmbeddingJob(
                    job_type=target.kind.value,
                    target_id=target.target_id,
                    status=JobStatus.PENDING.value,
                )
                db.add(job)
                await db.flush()
                return job.id, True

    async def list_pending_jobs(self, limit: int | None = None) -> list[EmbeddingJobRecord]:
        async with self._session_factory() as db:
            stmt = (
                select(EmbeddingJob)
                .where(EmbeddingJob.status == JobStatus.PENDING.value)
                .order_by(EmbeddingJob.created_at, EmbeddingJob.id)
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            rows = await db.execute(stmt)
            return [_job(r) for r in rows.scalars()]

    async def update_job_status(
        self, job_id: uuid.UUID, status: JobStatus, error_message: str | None = None
    ) -> None:
        async with self._session_factory() as db:
            async with db.begin():
                job = await db.get(EmbeddingJob, job_id)
                if job is None:
                    raise NotFoundError("EmbeddingJob", job_id)
                job.status = JobStatus(status).value
                job.error_message = error_message
                if job.status in (JobStatus.COMPLETED.value, JobStatus.FAILED.value):
                    job.processed_at = _utcnow()
