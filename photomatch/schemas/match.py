from pydantic import BaseModel
from uuid import UUID
from typing import Optional

class DimensionScores(BaseModel):
    style_emotion: float
    communication_psychology: float
    purpose_story: float
    companion: float

class MatchResultItem(BaseModel):
    rank: int
    photographer_id: UUID
    total_score: float
    display_score: float  # total_score mapped from [-1, 1] to [0, 1]
    dimension_scores: DimensionScores

class MatchResultsResponse(BaseModel):
    session_id: UUID
    status: str
    cached: bool = False
    results: list[MatchResultItem]

class RecomputeRequest(BaseModel):
    force: bool = True
    reason: Optional[str] = None
