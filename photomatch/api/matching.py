"""
photomatch — Matching API

Compute (or return cached) photographer matches for a session, read
persisted results, and force a recompute as an administrator.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends

from photomatch.api.deps import get_matching_service
from photomatch.domain import MatchResult, SessionStatus
from photomatch.schemas.match import (
    DimensionScores,
    MatchResultItem,
    MatchResultsResponse,
    RecomputeRequest,
)
from photomatch.services.matching_service import MatchingService

logger = structlog.get_logger("photomatch.api.matching")

router = APIRouter()
admin_router = APIRouter()


def _to_items(results: list[MatchResult]) -> list[MatchResultItem]:
    return [
        MatchResultItem(
            rank=r.rank,
            photographer_id=r.candidate_id,
            total_score=r.total_score,
            display_score=r.display_score,
            dimension_scores=DimensionScores(
                **{dim.value: score for dim, score in r.dimension_scores.items()}
            ),
        )
        for r in results
    ]


# ──────────────────────────────────────────────────────────────────────────────
# POST /calculate/{session_id}: Finalise a session (cached once scored)
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/calculate/{session_id}",
    response_model=MatchResultsResponse,
    summary="Compute or return cached matches for a session",
)
async def calculate_matches(
    session_id: uuid.UUID,
    service: MatchingService = Depends(get_matching_service),
) -> MatchResultsResponse:
    before = await service.get_session(session_id)
    results = await service.compute(session_id)
    return MatchResultsResponse(
        session_id=session_id,
        status=SessionStatus.SCORED.value,
        cached=before.status is SessionStatus.SCORED,
        results=_to_items(results),
    )


@router.get(
    "/results/{session_id}",
    response_model=MatchResultsResponse,
    summary="Read persisted matches for a session",
)
async def get_results(
    session_id: uuid.UUID,
    service: MatchingService = Depends(get_matching_service),
) -> MatchResultsResponse:
    session = await service.get_session(session_id)
    results = await service.get_results(session_id)
    return MatchResultsResponse(
        session_id=session_id,
        status=session.status.value,
        cached=session.status is SessionStatus.SCORED,
        results=_to_items(results),
    )


# ──────────────────────────────────────────────────────────────────────────────
# POST /admin/matching/recompute/{session_id}: Replace a persisted set
# ──────────────────────────────────────────────────────────────────────────────

@admin_router.post(
    "/recompute/{session_id}",
    response_model=MatchResultsResponse,
    summary="Force a recompute of a session's matches",
)
async def recompute_matches(
    session_id: uuid.UUID,
    body: RecomputeRequest | None = None,
    service: MatchingService = Depends(get_matching_service),
) -> MatchResultsResponse:
    force = body.force if body is not None else True
    logger.warning(
        "match_recompute_requested",
        session_id=str(session_id),
        force=force,
        reason=body.reason if body is not None else None,
    )
    results = await service.compute(session_id, force=force)
    return MatchResultsResponse(
        session_id=session_id,
        status=SessionStatus.SCORED.value,
        cached=False,
        results=_to_items(results),
    )
