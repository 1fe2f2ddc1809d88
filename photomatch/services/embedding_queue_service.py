"""
photomatch — Embedding job queue.

Targets that need (re)vectorising are queued as ``embedding_jobs`` rows and
drained in one sequential batch through ``EmbeddingService``.  A target has
at most one pending job at a time.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass

import structlog

from photomatch.domain import EmbeddingKind, EmbeddingTarget
from photomatch.exceptions import ValidationError
from photomatch.repositories.base import EmbeddingCoverage, JobQueue, JobStatus, VectorStore
from photomatch.services.embedding_service import BatchItemResult, BatchResult, EmbeddingService

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class EnqueueResult:
    job_id: uuid.UUID
    created: bool


@dataclass(frozen=True)
class EmbeddingStatus:
    by_kind: dict[EmbeddingKind, EmbeddingCoverage]

    @property
    def total(self) -> int:
        return sum(c.total for c in self.by_kind.values())

    @property
    def generated(self) -> int:
        return sum(c.generated for c in self.by_kind.values())

    @property
    def pending(self) -> int:
        return self.total - self.generated


class EmbeddingQueueService:
    def __init__(
        self,
        queue: JobQueue,
        store: VectorStore,
        embedding_service: EmbeddingService,
    ) -> None:
        self.queue = queue
        self.store = store
        self.embedding_service = embedding_service

    async def enqueue(self, target: EmbeddingTarget) -> EnqueueResult:
        job_id, created = await self.queue.enqueue_job(target)
        logger.info(
            "embedding_job_enqueued" if created else "embedding_job_already_pending",
            target=str(target),
            job_id=str(job_id),
        )
        return EnqueueResult(job_id=job_id, created=created)

    async def enqueue_missing(self) -> list[EnqueueResult]:
        """Queue every active choice/image without a vector and every incomplete profile."""
        targets = await self.store.list_missing_targets()
        results = [await self.enqueue(t) for t in targets]
        logger.info(
            "embedding_missing_enqueued",
            targets=len(targets),
            created=sum(1 for r in results if r.created),
        )
        return results

    async def status(self) -> EmbeddingStatus:
        """Report how many choices, images and profiles still lack vectors."""
        report = EmbeddingStatus(by_kind=await self.store.count_embedding_coverage())
        logger.info(
            "embedding_status_checked",
            total=report.total,
            generated=report.generated,
            pending=report.pending,
        )
        return report

    async def edit_label(self, target: EmbeddingTarget, label: str) -> EnqueueResult:
        """Change a choice or image label; its vector goes back to pending and is queued."""
        if target.kind is EmbeddingKind.PHOTOGRAPHER_PROFILE:
            raise ValidationError("Only choice and image labels can be edited")
        await self.store.update_label(target, label)
        return await self.enqueue(target)

    async def process_pending(
        self,
        limit: int | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchResult:
        """Run pending jobs through the batch embedder, recording each outcome.

        Jobs the batch never settles, whether through cancellation or an
        error escaping the embedder or a status write, go back to ``pending``.
        """
        jobs = await self.queue.list_pending_jobs(limit)
        if not jobs:
            logger.info("embedding_queue_empty")
            return BatchResult()

        settled: set[int] = set()

        async def _record(index: int, item: BatchItemResult) -> None:
            job = jobs[index]
            if item.success:
                await self.queue.update_job_status(job.job_id, JobStatus.COMPLETED)
            else:
                await self.queue.update_job_status(job.job_id, JobStatus.FAILED, item.error)
            settled.add(index)

        try:
            for job in jobs:
                await self.queue.update_job_status(job.job_id, JobStatus.PROCESSING)
            result = await self.embedding_service.generate_batch(
                [job.target for job in jobs],
                cancel_event=cancel_event,
                on_item=_record,
            )
        finally:
            unsettled = [job for i, job in enumerate(jobs) if i not in settled]
            for job in unsettled:
                await self.queue.update_job_status(job.job_id, JobStatus.PENDING)
            if unsettled:
                logger.info("embedding_jobs_released", jobs=len(unsettled))

        logger.info(
            "embedding_queue_processed",
            jobs=len(jobs),
            completed=result.success_count,
            failed=result.failure_count,
            cancelled=result.cancelled,
        )
        return result
