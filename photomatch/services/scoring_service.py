"""
photomatch — Weighted cross-dimension similarity scoring and ranking.

Scores each complete photographer profile against a session's aggregate
profile:

  1. Per dimension: cosine(user_d, candidate_d); zero norm on either side -> 0
  2. Overall: Σ normalized_weight_d × cosine_d
  3. Clamp the overall score to [-1, 1]
  4. Rank by descending raw score, then creation time, then candidate id
  5. Keep the top K; the rest are discarded
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Iterable, Mapping

import structlog

from photomatch.domain import (
    DIMENSIONS,
    CompleteCandidate,
    Dimension,
    DimensionWeights,
    MatchResult,
    Vector,
)
from photomatch.exceptions import ValidationError
from photomatch.ml.vectors import cosine_similarity

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CandidateScore:
    candidate: CompleteCandidate
    raw_score: float
    dimension_scores: Mapping[Dimension, float]

    @property
    def total_score(self) -> float:
        return max(-1.0, min(1.0, self.raw_score))

    def sort_key(self) -> tuple:
        return (-self.raw_score, self.candidate.created_at, str(self.candidate.candidate_id))


class SimilarityScorer:
    """Rank complete candidates against one aggregate profile.

    Only ``CompleteCandidate`` values are accepted, so an incomplete profile
    can never be scored on a subset of dimensions.
    """

    def __init__(self, weights: DimensionWeights | None = None) -> None:
        self.weights = weights or DimensionWeights.equal()

    # ── Public API ──────────────────────────────────────────────────

    def score_candidate(
        self,
        profile: Mapping[Dimension, Vector],
        candidate: CompleteCandidate,
    ) -> CandidateScore:
        """Compute per-dimension cosines and the weighted overall score.

        Raises ``VectorDimensionError`` when a candidate vector and the
        matching user vector differ in length.
        """
        normalized = self.weights.normalized()
        dimension_scores: dict[Dimension, float] = {}
        raw = 0.0
        for dim in DIMENSIONS:
            sim = cosine_similarity(
                profile[dim],
                candidate.vectors[dim],
                context=f"{dim.value} candidate={candidate.candidate_id}",
            )
            dimension_scores[dim] = sim
            raw += normalized[dim] * sim
        return CandidateScore(candidate=candidate, raw_score=raw, dimension_scores=dimension_scores)

    def rank(
        self,
        profile: Mapping[Dimension, Vector],
        candidates: Iterable[CompleteCandidate],
        top_k: int,
        session_id: uuid.UUID,
    ) -> list[MatchResult]:
        """Score every candidate and return the top ``top_k`` as ranked results.

        Ranks start at 1.  Ordering is fully determined by the inputs.
        """
        if top_k < 1:
            raise ValidationError(f"top_k must be at least 1, got {top_k}")
        missing = [d.value for d in DIMENSIONS if d not in profile]
        if missing:
            raise ValidationError(f"Aggregate profile is missing dimensions: {missing}")

        scored = [self.score_candidate(profile, c) for c in candidates]
        scored.sort(key=CandidateScore.sort_key)

        results = [
            MatchResult(
                session_id=session_id,
                candidate_id=s.candidate.candidate_id,
                rank=position,
                total_score=s.total_score,
                dimension_scores=dict(s.dimension_scores),
            )
            for position, s in enumerate(scored[:top_k], start=1)
        ]

        logger.info(
            "candidates_ranked",
            session_id=str(session_id),
            scored=len(scored),
            returned=len(results),
            top_score=results[0].total_score if results else None,
        )
        return results
