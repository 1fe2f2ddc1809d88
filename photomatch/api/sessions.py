"""
photomatch — Session API

Start a matching session and record survey answers against it.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, status

from photomatch.api.deps import get_matching_service
from photomatch.domain import SessionSnapshot
from photomatch.schemas.session import AnswerCreate, SessionResponse
from photomatch.services.matching_service import MatchingService

logger = structlog.get_logger("photomatch.api.sessions")

router = APIRouter()


def _to_response(snapshot: SessionSnapshot) -> SessionResponse:
    return SessionResponse(
        session_id=snapshot.session_id,
        session_token=snapshot.session_token,
        status=snapshot.status.value,
        created_at=snapshot.created_at,
        ready_at=snapshot.ready_at,
        completed_at=snapshot.completed_at,
    )


@router.post(
    "",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a matching session",
)
async def start_session(
    service: MatchingService = Depends(get_matching_service),
) -> SessionResponse:
    return _to_response(await service.start_session())


@router.get(
    "/{session_id}",
    response_model=SessionResponse,
    summary="Get session status",
)
async def get_session(
    session_id: uuid.UUID,
    service: MatchingService = Depends(get_matching_service),
) -> SessionResponse:
    return _to_response(await service.get_session(session_id))


@router.post(
    "/{session_id}/answers",
    response_model=SessionResponse,
    summary="Record or replace the answer to one question",
)
async def record_answer(
    session_id: uuid.UUID,
    body: AnswerCreate,
    service: MatchingService = Depends(get_matching_service),
) -> SessionResponse:
    snapshot = await service.record_answer(session_id, body.question_id, body.choice_id)
    logger.info(
        "answer_recorded",
        session_id=str(session_id),
        question_id=str(body.question_id),
    )
    return _to_response(snapshot)
