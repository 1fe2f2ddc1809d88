from pydantic import BaseModel, Field
from uuid import UUID
from typing import Optional, Literal

TargetType = Literal["choice_embedding", "image_embedding", "photographer_profile"]

class EmbeddingTargetRequest(BaseModel):
    type: TargetType
    target_id: UUID

class EmbeddingBatchRequest(BaseModel):
    items: list[EmbeddingTargetRequest] = Field(..., min_length=1)

class EmbeddingTextRequest(BaseModel):
    text: str = Field(..., min_length=1)

class EmbeddingTextResponse(BaseModel):
    dimensions: int
    embedding: list[float]

class EmbeddingItemResponse(BaseModel):
    target_type: str
    target_id: UUID
    success: bool
    dimensions: Optional[int] = None
    vectors_written: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None

class EmbeddingBatchResponse(BaseModel):
    success_count: int
    failure_count: int
    cancelled: bool
    items: list[EmbeddingItemResponse]

class EnqueueResponse(BaseModel):
    job_id: UUID
    created: bool

class EnqueueMissingResponse(BaseModel):
    queued: int
    created: int

class LabelUpdateRequest(BaseModel):
    label: str = Field(..., min_length=1)
    kind: Literal["choice_embedding", "image_embedding"] = "choice_embedding"

class EmbeddingCoverageResponse(BaseModel):
    total: int
    generated: int
    pending: int

class EmbeddingStatusResponse(EmbeddingCoverageResponse):
    by_type: dict[TargetType, EmbeddingCoverageResponse]
