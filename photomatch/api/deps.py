"""
photomatch — Service wiring for the HTTP layer.

Lazy singletons in the same shape as every route module uses; each getter
doubles as a FastAPI dependency so tests can override it.
"""

from __future__ import annotations

from fastapi import Depends, status

from photomatch.config import get_settings
from photomatch.database import get_session_factory
from photomatch.exceptions import (
    AnswersChangedError,
    DegradedAggregateError,
    IncompleteProfileError,
    InvalidSessionTransition,
    NotFoundError,
    PersistenceConflict,
    PhotomatchError,
    ProviderError,
    ValidationError,
)
from photomatch.repositories.matching_repository import SqlAlchemyMatchingRepository
from photomatch.services.embedding_queue_service import EmbeddingQueueService
from photomatch.services.embedding_service import EmbeddingService, build_embedding_service
from photomatch.services.matching_service import MatchingService
from photomatch.services.personality_service import PersonalityClassifier

# ── Service singletons ────────────────────────────────────────────────────────

_repository: SqlAlchemyMatchingRepository | None = None
_embedding_service: EmbeddingService | None = None
_personality_classifier: PersonalityClassifier | None = None


def get_repository() -> SqlAlchemyMatchingRepository:
    global _repository
    if _repository is None:
        _repository = SqlAlchemyMatchingRepository(get_session_factory())
    return _repository


def get_embedding_service() -> EmbeddingService:
    # one instance so the batch scheduler spaces calls across requests
    global _embedding_service
    if _embedding_service is None:
        _embedding_service = build_embedding_service(get_repository())
    return _embedding_service


def get_personality_classifier() -> PersonalityClassifier:
    global _personality_classifier
    if _personality_classifier is None:
        _personality_classifier = PersonalityClassifier()
    return _personality_classifier


def get_matching_service(
    repository: SqlAlchemyMatchingRepository = Depends(get_repository),
) -> MatchingService:
    settings = get_settings()
    return MatchingService(
        sessions=repository,
        candidates=repository,
        results=repository,
        weights=settings.dimension_weights,
        top_k=settings.MATCH_TOP_K,
    )


def get_queue_service(
    repository: SqlAlchemyMatchingRepository = Depends(get_repository),
    embedding_service: EmbeddingService = Depends(get_embedding_service),
) -> EmbeddingQueueService:
    return EmbeddingQueueService(
        queue=repository, store=repository, embedding_service=embedding_service
    )


# ── Error mapping ─────────────────────────────────────────────────────────────

def http_status_for(exc: PhotomatchError) -> int:
    """Map a core error to the HTTP status the API reports it with."""
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    conflicts = (
        InvalidSessionTransition,
        DegradedAggregateError,
        PersistenceConflict,
        AnswersChangedError,
    )
    if isinstance(exc, conflicts):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, (ValidationError, IncompleteProfileError)):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(exc, ProviderError):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR
