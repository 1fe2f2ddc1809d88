"""
photomatch — Personality quiz API
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends

from photomatch.api.deps import get_personality_classifier
from photomatch.schemas.personality import (
    PersonalityChoiceResponse,
    PersonalityClassifyRequest,
    PersonalityClassifyResponse,
    PersonalityQuestionResponse,
    PersonalityTypeResponse,
)
from photomatch.services.personality_service import PersonalityClassifier, list_personality_types

logger = structlog.get_logger("photomatch.api.personality")

router = APIRouter()


@router.get(
    "/questions",
    response_model=list[PersonalityQuestionResponse],
    summary="List the personality quiz questions",
)
async def list_questions(
    classifier: PersonalityClassifier = Depends(get_personality_classifier),
) -> list[PersonalityQuestionResponse]:
    return [
        PersonalityQuestionResponse(
            question_id=q.question_id,
            part=q.part,
            text=q.text,
            choices=[PersonalityChoiceResponse(choice_id=c.choice_id, text=c.text) for c in q.choices],
        )
        for q in classifier.questions
    ]


@router.get(
    "/types",
    response_model=list[PersonalityTypeResponse],
    summary="List the nine personality types",
)
async def list_types() -> list[PersonalityTypeResponse]:
    return [
        PersonalityTypeResponse(
            code=t.code,
            name=t.name,
            description=t.description,
            style_keywords=list(t.style_keywords),
        )
        for t in list_personality_types()
    ]


@router.post(
    "/classify",
    response_model=PersonalityClassifyResponse,
    summary="Classify a completed personality quiz",
)
async def classify(
    body: PersonalityClassifyRequest,
    classifier: PersonalityClassifier = Depends(get_personality_classifier),
) -> PersonalityClassifyResponse:
    result = classifier.classify([(a.question_id, a.choice_id) for a in body.answers])
    logger.info("personality_classify_request", code=result.code, answered=result.answered_count)
    return PersonalityClassifyResponse(**result.as_dict())
