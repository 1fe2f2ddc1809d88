"""
photomatch — Admin Embeddings API

Trigger vector generation for stored targets (single or batch), embed raw
text, report vector coverage, and manage the embedding job queue.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Query, status

from photomatch.api.deps import get_embedding_service, get_queue_service
from photomatch.domain import EmbeddingKind, EmbeddingTarget
from photomatch.schemas.embedding import (
    EmbeddingBatchRequest,
    EmbeddingBatchResponse,
    EmbeddingCoverageResponse,
    EmbeddingItemResponse,
    EmbeddingStatusResponse,
    EmbeddingTargetRequest,
    EmbeddingTextRequest,
    EmbeddingTextResponse,
    EnqueueMissingResponse,
    EnqueueResponse,
    LabelUpdateRequest,
)
from photomatch.services.embedding_queue_service import EmbeddingQueueService
from photomatch.services.embedding_service import EmbeddingService

logger = structlog.get_logger("photomatch.api.admin.embeddings")

router = APIRouter()


def _target(item: EmbeddingTargetRequest) -> EmbeddingTarget:
    return EmbeddingTarget(EmbeddingKind(item.type), item.target_id)


@router.post(
    "/generate",
    response_model=EmbeddingItemResponse,
    summary="Generate the embedding for one stored target",
)
async def generate_one(
    body: EmbeddingTargetRequest,
    service: EmbeddingService = Depends(get_embedding_service),
) -> EmbeddingItemResponse:
    item = await service.generate_for_target(_target(body))
    return EmbeddingItemResponse(**item.as_dict())


@router.post(
    "/batch",
    response_model=EmbeddingBatchResponse,
    summary="Generate embeddings for several targets, one at a time",
)
async def generate_batch(
    body: EmbeddingBatchRequest,
    service: EmbeddingService = Depends(get_embedding_service),
) -> EmbeddingBatchResponse:
    result = await service.generate_batch([_target(i) for i in body.items])
    return EmbeddingBatchResponse(**result.as_dict())


@router.post(
    "/text",
    response_model=EmbeddingTextResponse,
    summary="Embed raw text without storing it",
)
async def embed_text(
    body: EmbeddingTextRequest,
    service: EmbeddingService = Depends(get_embedding_service),
) -> EmbeddingTextResponse:
    vector = await service.generate(body.text)
    return EmbeddingTextResponse(dimensions=len(vector), embedding=vector)


@router.get(
    "/status",
    response_model=EmbeddingStatusResponse,
    summary="Count choices, images and profiles still waiting for vectors",
)
async def embedding_status(
    queue: EmbeddingQueueService = Depends(get_queue_service),
) -> EmbeddingStatusResponse:
    report = await queue.status()
    return EmbeddingStatusResponse(
        total=report.total,
        generated=report.generated,
        pending=report.pending,
        by_type={
            kind.value: EmbeddingCoverageResponse(
                total=c.total, generated=c.generated, pending=c.pending
            )
            for kind, c in report.by_kind.items()
        },
    )


@router.post(
    "/queue",
    response_model=EnqueueResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue one target for embedding",
)
async def enqueue(
    body: EmbeddingTargetRequest,
    queue: EmbeddingQueueService = Depends(get_queue_service),
) -> EnqueueResponse:
    result = await queue.enqueue(_target(body))
    return EnqueueResponse(job_id=result.job_id, created=result.created)


@router.post(
    "/queue/missing",
    response_model=EnqueueMissingResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue every target that has no vector yet",
)
async def enqueue_missing(
    queue: EmbeddingQueueService = Depends(get_queue_service),
) -> EnqueueMissingResponse:
    results = await queue.enqueue_missing()
    return EnqueueMissingResponse(
        queued=len(results), created=sum(1 for r in results if r.created)
    )


@router.post(
    "/queue/process",
    response_model=EmbeddingBatchResponse,
    summary="Drain pending embedding jobs",
)
async def process_queue(
    limit: int | None = Query(None, ge=1),
    queue: EmbeddingQueueService = Depends(get_queue_service),
) -> EmbeddingBatchResponse:
    result = await queue.process_pending(limit=limit)
    return EmbeddingBatchResponse(**result.as_dict())


@router.patch(
    "/labels/{target_id}",
    response_model=EnqueueResponse,
    summary="Edit a choice or image label and queue it for re-embedding",
)
async def update_label(
    target_id: uuid.UUID,
    body: LabelUpdateRequest,
    queue: EmbeddingQueueService = Depends(get_queue_service),
) -> EnqueueResponse:
    result = await queue.edit_label(EmbeddingTarget(EmbeddingKind(body.kind), target_id), body.label)
    logger.info("label_updated", target_id=str(target_id), kind=body.kind)
    return EnqueueResponse(job_id=result.job_id, created=result.created)
