"""
photomatch — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from photomatch.models.survey import SurveyChoice, SurveyImage, SurveyQuestion
from photomatch.models.photographer import PhotographerProfile
from photomatch.models.session import MatchingSession, SessionAnswer
from photomatch.models.match import MatchingResult, MatchingResultSet
from photomatch.models.embedding_job import EmbeddingJob

__all__ = [
    "SurveyQuestion",
    "SurveyChoice",
    "SurveyImage",
    "PhotographerProfile",
    "MatchingSession",
    "SessionAnswer",
    "MatchingResultSet",
    "MatchingResult",
    "EmbeddingJob",
]
