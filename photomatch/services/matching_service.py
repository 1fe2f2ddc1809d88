"""
photomatch — Session lifecycle and exactly-once result computation.

Orchestrates finalisation of a matching session:
  1. Cache hit: a ``scored`` session returns its persisted results unless forced
  2. Aggregate the session's answers per dimension (blocks if any is undefined)
  3. Persist the aggregates and move the session to ``ready``; an answer
     recorded after the read makes this step fail and the read is retried
  4. Score every complete photographer profile; incomplete ones are excluded
  5. Persist the full top-K set atomically and move the session to ``scored``

Concurrent finalisers race on the result-set primary key.  The loser sees
``PersistenceConflict`` and re-reads the winner's rows, so every caller gets
the one canonical persisted set.
"""

from __future__ import annotations

import uuid

import structlog

from photomatch.domain import (
    CompleteCandidate,
    DimensionWeights,
    MatchResult,
    SessionSnapshot,
    SessionStatus,
    ensure_transition,
)
from photomatch.exceptions import (
    AnswersChangedError,
    IncompleteProfileError,
    NotFoundError,
    PersistenceConflict,
    ValidationError,
)
from photomatch.repositories.base import CandidateStore, ResultStore, SessionStore
from photomatch.services.aggregation_service import DimensionAggregator
from photomatch.services.scoring_service import SimilarityScorer

logger = structlog.get_logger("photomatch.matching_service")


class MatchingService:
    """Finalise sessions and serve their persisted results.

    Dependencies are injected at construction so that the service can be
    tested with in-memory stores.
    """

    def __init__(
        self,
        sessions: SessionStore,
        candidates: CandidateStore,
        results: ResultStore,
        weights: DimensionWeights | None = None,
        top_k: int = 3,
        aggregator: DimensionAggregator | None = None,
        max_aggregate_attempts: int = 3,
    ) -> None:
        if top_k < 1:
            raise ValidationError(f"top_k must be at least 1, got {top_k}")
        self.sessions = sessions
        self.candidates = candidates
        self.results = results
        self.weights = weights or DimensionWeights.equal()
        self.top_k = top_k
        self.aggregator = aggregator or DimensionAggregator()
        self.max_aggregate_attempts = max(1, max_aggregate_attempts)
        self.scorer = SimilarityScorer(self.weights)

    # ── Session lifecycle ───────────────────────────────────────────

    async def start_session(self) -> SessionSnapshot:
        snapshot = await self.sessions.create_session()
        logger.info("session_started", session_id=str(snapshot.session_id))
        return snapshot

    async def record_answer(
        self, session_id: uuid.UUID, question_id: uuid.UUID, choice_id: uuid.UUID
    ) -> SessionSnapshot:
        """Record or replace the answer to one question.

        Raises ``InvalidSessionTransition`` once the session is ``ready`` or
        ``scored``; answers are frozen from then on.
        """
        session = await self._require_session(session_id)
        ensure_transition(session.status, SessionStatus.ANSWERING)
        return await self.sessions.record_answer(session_id, question_id, choice_id)

    async def get_session(self, session_id: uuid.UUID) -> SessionSnapshot:
        return await self._require_session(session_id)

    async def get_results(self, session_id: uuid.UUID) -> list[MatchResult]:
        """Return the persisted ranked results; empty until the session is scored."""
        session = await self._require_session(session_id)
        if session.status is not SessionStatus.SCORED:
            return []
        return await self.results.get_results(session_id)

    # ── Finalisation ────────────────────────────────────────────────

    async def compute(self, session_id: uuid.UUID, force: bool = False) -> list[MatchResult]:
        """Compute (or return cached) ranked results for a session.

        Parameters
        ----------
        session_id:
            The session to finalise.
        force:
            Administrative recompute: replace an existing result set.

        Returns
        -------
        list[MatchResult]
            Always the rows as persisted, ordered by rank.

        Raises
        ------
        NotFoundError, ValidationError, DegradedAggregateError,
        VectorDimensionError
            Nothing is persisted when any of these is raised.
        """
        log = logger.bind(session_id=str(session_id), force=force)

        for attempt in range(1, self.max_aggregate_attempts + 1):
            session = await self._require_session(session_id)

            if session.status is SessionStatus.SCORED and not force:
                log.info("match_results_cache_hit")
                return await self.results.get_results(session_id)

            if session.status is SessionStatus.STARTED:
                raise ValidationError(f"Session {session_id} has no answers yet")

            answers = await self.sessions.get_answered_choices(session_id)
            if not answers:
                raise ValidationError(f"Session {session_id} has no answers yet")

            profile = self.aggregator.aggregate(answers).require_complete(session_id)
            try:
                await self.sessions.save_aggregates(
                    session_id,
                    dict(profile.vectors),
                    sorted(profile.degraded),
                    answers_version=session.answers_version,
                )
                break
            except AnswersChangedError:
                if attempt == self.max_aggregate_attempts:
                    raise
                log.info("answers_changed_during_compute", attempt=attempt)

        eligible = await self._eligible_candidates(log)
        ranked = self.scorer.rank(profile.vectors, eligible, self.top_k, session_id)

        try:
            await self.results.save_result_set(
                session_id,
                ranked,
                weights=self.weights,
                top_k=self.top_k,
                candidates_scored=len(eligible),
                replace=force,
            )
            log.info(
                "match_results_persisted",
                results=len(ranked),
                candidates_scored=len(eligible),
                degraded=sorted(d.value for d in profile.degraded),
            )
        except PersistenceConflict:
            log.info("match_already_exists")

        return await self.results.get_results(session_id)

    # ── Internal helpers ────────────────────────────────────────────

    async def _require_session(self, session_id: uuid.UUID) -> SessionSnapshot:
        session = await self.sessions.get_session(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        return session

    async def _eligible_candidates(self, log) -> list[CompleteCandidate]:
        eligible: list[CompleteCandidate] = []
        excluded = 0
        for profile in await self.candidates.list_candidates(complete_only=False):
            try:
                eligible.append(profile.as_complete())
            except IncompleteProfileError as exc:
                excluded += 1
                log.debug(
                    "candidate_excluded",
                    candidate_id=str(exc.candidate_id),
                    missing=list(exc.missing),
                )
        if excluded:
            log.info("candidates_excluded", excluded=excluded, eligible=len(eligible))
        return eligible
