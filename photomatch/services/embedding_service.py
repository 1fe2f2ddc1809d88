"""
photomatch — Embedding generation for survey choices, images and photographer profiles.

Responsibilities:
- Single calls: ``generate(text | ImageRef)`` with a bounded timeout and a
  fixed dimensionality per vector family
- Stored targets: ``generate_for_target`` reads the source, embeds it and
  overwrites the stored vector with a fresh timestamp
- Batches: ``generate_batch`` runs targets one at a time behind a
  rate-limited scheduler, isolating each item's failure
- Providers: Gemini text embeddings (with tenacity retry on transient API
  errors) and Replicate CLIP image embeddings over httpx
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol, Sequence

import google.generativeai as genai
import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from photomatch.config import Settings, get_settings
from photomatch.domain import (
    DIMENSIONS,
    EmbeddingKind,
    EmbeddingTarget,
    ImageRef,
)
from photomatch.exceptions import (
    IncompleteProfileError,
    PhotomatchError,
    ProviderError,
    ValidationError,
    VectorDimensionError,
)
from photomatch.repositories.base import VectorStore
from photomatch.services.rate_limiter import FixedDelayScheduler, Scheduler, build_scheduler

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_retryable_api_error(exc: BaseException) -> bool:
    """Return True if the exception signals a transient provider error.

    Retries cover HTTP 429 (rate limit) and 500/503 (server-side transient).
    Timeouts are never retried.
    """
    if isinstance(exc, ProviderError):
        return exc.retryable
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return False

    exc_str = str(exc).lower()
    exc_type = type(exc).__name__.lower()

    if "429" in exc_str or "resource_exhausted" in exc_str:
        return True
    if "500" in exc_str or "503" in exc_str or "internal" in exc_str:
        return True
    if "resourceexhausted" in exc_type or "serviceunavailable" in exc_type:
        return True

    return False


# ──────────────────────────────────────────────────────────────────────────────
# Providers
# ──────────────────────────────────────────────────────────────────────────────


class TextEmbeddingProvider(Protocol):
    async def embed_text(self, text: str) -> list[float]: ...


class ImageEmbeddingProvider(Protocol):
    async def embed_image(self, image: ImageRef) -> list[float]: ...


class _RetryingProvider:
    """Shared tenacity policy for provider calls."""

    provider_name = "provider"

    def __init__(self, max_attempts: int, wait_min: float, wait_max: float) -> None:
        self.max_attempts = max_attempts
        self.wait_min = wait_min
        self.wait_max = wait_max

    async def _with_retry(self, call: Callable[[], Awaitable[list[float]]]) -> list[float]:
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_retryable_api_error),
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=1, min=self.wait_min, max=self.wait_max, exp_base=2),
            ):
                with attempt:
                    logger.debug(
                        "embedding_call_attempt",
                        provider=self.provider_name,
                        attempt_number=attempt.retry_state.attempt_number,
                    )
                    return await call()
        except RetryError as retry_err:
            last = retry_err.last_attempt.exception()
            logger.error(
                "embedding_retry_exhausted",
                provider=self.provider_name,
                attempts=self.max_attempts,
                last_error=str(last),
            )
            raise ProviderError(
                f"{self.provider_name} failed after {self.max_attempts} attempts: {last}",
                retryable=True,
            ) from last


class GeminiEmbeddingProvider(_RetryingProvider):
    """Text embeddings through ``google-generativeai``."""

    provider_name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_attempts: int | None = None,
        task_type: str = "SEMANTIC_SIMILARITY",
        wait_min: float = 1.0,
        wait_max: float = 30.0,
    ) -> None:
        settings = get_settings()
        super().__init__(
            max_attempts=max_attempts or settings.EMBEDDING_MAX_ATTEMPTS,
            wait_min=wait_min,
            wait_max=wait_max,
        )
        self.model = model or settings.EMBEDDING_MODEL
        self.task_type = task_type
        genai.configure(api_key=api_key if api_key is not None else settings.GEMINI_API_KEY)

    async def embed_text(self, text: str) -> list[float]:
        async def _call() -> list[float]:
            response = await genai.embed_content_async(
                model=self.model,
                content=text,
                task_type=self.task_type,
            )
            embedding = response.get("embedding") if isinstance(response, dict) else None
            if not embedding:
                raise ProviderError(f"Gemini returned no embedding for model {self.model}")
            return [float(x) for x in embedding]

        return await self._with_retry(_call)


class ClipImageEmbeddingProvider(_RetryingProvider):
    """CLIP image embeddings through the Replicate predictions API."""

    provider_name = "replicate_clip"

    def __init__(
        self,
        api_token: str | None = None,
        model_version: str | None = None,
        api_url: str | None = None,
        timeout_seconds: float | None = None,
        max_attempts: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        wait_min: float = 1.0,
        wait_max: float = 30.0,
    ) -> None:
        settings = get_settings()
        super().__init__(
            max_attempts=max_attempts or settings.EMBEDDING_MAX_ATTEMPTS,
            wait_min=wait_min,
            wait_max=wait_max,
        )
        self.api_token = api_token if api_token is not None else settings.REPLICATE_API_TOKEN
        self.model_version = model_version or settings.CLIP_MODEL_VERSION
        self.api_url = api_url or settings.REPLICATE_API_URL
        self.timeout_seconds = timeout_seconds or settings.EMBEDDING_TIMEOUT_SECONDS
        self._transport = transport

    async def embed_image(self, image: ImageRef) -> list[float]:
        if not image.url:
            raise ValidationError("CLIP embedding requires an image URL")

        async def _call() -> list[float]:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(
                    self.api_url,
                    headers={
                        "Authorization": f"Token {self.api_token}",
                        "Prefer": "wait",
                    },
                    json={"version": self.model_version, "input": {"image": image.url}},
                )
            if response.status_code in (429, 500, 502, 503):
                raise ProviderError(
                    f"Replicate returned HTTP {response.status_code}", retryable=True
                )
            if response.status_code >= 400:
                raise ProviderError(f"Replicate returned HTTP {response.status_code}")
            return self._parse_output(response.json())

        return await self._with_retry(_call)

    @staticmethod
    def _parse_output(payload: dict[str, Any]) -> list[float]:
        status = payload.get("status")
        if status not in (None, "succeeded"):
            raise ProviderError(f"Replicate prediction ended with status {status!r}")
        output = payload.get("output")
        if isinstance(output, list) and output and isinstance(output[0], dict):
            output = output[0]
        if isinstance(output, dict):
            output = output.get("embedding")
        if not isinstance(output, list) or not output:
            raise ProviderError("Replicate returned no embedding")
        return [float(x) for x in output]


# ──────────────────────────────────────────────────────────────────────────────
# Results
# ──────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BatchItemResult:
    target: EmbeddingTarget
    success: bool
    dimensions: int | None = None
    vectors_written: int = 0
    error: str | None = None
    error_type: str | None = None

    def as_dict(self) -> dict:
        return {
            "target_type": self.target.kind.value,
            "target_id": str(self.target.target_id),
            "success": self.success,
            "dimensions": self.dimensions,
            "vectors_written": self.vectors_written,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass
class BatchResult:
    items: list[BatchItemResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def success_count(self) -> int:
        return sum(1 for i in self.items if i.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for i in self.items if not i.success)

    def as_dict(self) -> dict:
        return {
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "cancelled": self.cancelled,
            "items": [i.as_dict() for i in self.items],
        }


ProgressCallback = Callable[[int, BatchItemResult], Awaitable[None]]


# ──────────────────────────────────────────────────────────────────────────────
# Service
# ──────────────────────────────────────────────────────────────────────────────


class EmbeddingService:
    """Vectorise text, images and stored targets.

    Dependencies are injected so tests can swap providers, the store and
    the scheduler.
    """

    def __init__(
        self,
        store: VectorStore,
        text_provider: TextEmbeddingProvider,
        image_provider: ImageEmbeddingProvider | None = None,
        scheduler: Scheduler | None = None,
        *,
        text_dimensions: int = 768,
        image_dimensions: int = 768,
        timeout_seconds: float = 20.0,
        image_strategy: str = "label",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if image_strategy not in ("label", "clip"):
            raise ValidationError(f"Unknown image strategy {image_strategy!r}")
        if image_strategy == "clip" and image_provider is None:
            raise ValidationError("The clip image strategy needs an image provider")
        self.store = store
        self.text_provider = text_provider
        self.image_provider = image_provider
        self.scheduler = scheduler or FixedDelayScheduler(0.1)
        self.text_dimensions = text_dimensions
        self.image_dimensions = image_dimensions
        self.timeout_seconds = timeout_seconds
        self.image_strategy = image_strategy
        self._clock = clock

    # ── Single input ────────────────────────────────────────────────

    async def generate(self, value: str | ImageRef) -> list[float]:
        """Embed one text or image reference.

        Raises
        ------
        ValidationError
            Empty text, or an image with nothing usable to embed.
        ProviderError
            Provider failure, timeout, or a malformed vector.
        VectorDimensionError
            The provider returned a vector of the wrong length for its family.
        """
        if isinstance(value, ImageRef):
            if self.image_strategy == "clip":
                family, expected = "image", self.image_dimensions
                call = self.image_provider.embed_image(value)
            else:
                text = (value.label or "").strip()
                if not text:
                    raise ValidationError("Image has no label to embed")
                family, expected = "text", self.text_dimensions
                call = self.text_provider.embed_text(text)
        else:
            text = (value or "").strip()
            if not text:
                raise ValidationError("Text to embed must not be empty")
            family, expected = "text", self.text_dimensions
            call = self.text_provider.embed_text(text)

        try:
            vector = await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise ProviderError(
                f"Embedding call timed out after {self.timeout_seconds}s"
            ) from exc
        except PhotomatchError:
            raise
        except Exception as exc:
            raise ProviderError(str(exc), retryable=_is_retryable_api_error(exc)) from exc

        if not vector or any(not math.isfinite(float(x)) for x in vector):
            raise ProviderError("Provider returned an empty or non-finite vector")
        if len(vector) != expected:
            raise VectorDimensionError(expected, len(vector), f"{family} embedding")
        return [float(x) for x in vector]

    # ── Stored targets ──────────────────────────────────────────────

    async def generate_for_target(self, target: EmbeddingTarget) -> BatchItemResult:
        """Embed one stored target and overwrite its vector(s).

        Photographer profiles write every described dimension before
        failing on any missing description, so partial work stays durable.
        """
        source = await self.store.get_embedding_source(target)
        log = logger.bind(target=str(target))

        if target.kind is EmbeddingKind.PHOTOGRAPHER_PROFILE:
            missing: list[str] = []
            written = 0
            dims = None
            for dim in DIMENSIONS:
                description = source.descriptions.get(dim)
                if not description or not description.strip():
                    missing.append(dim.value)
                    continue
                vector = await self.generate(description)
                await self.store.store_vector(target, tuple(vector), self._clock(), dimension=dim)
                written += 1
                dims = len(vector)
            if missing:
                log.warning("profile_descriptions_missing", missing=missing, written=written)
                raise IncompleteProfileError(target.target_id, missing)
            log.info("profile_embeddings_generated", dimensions=dims)
            return BatchItemResult(target, success=True, dimensions=dims, vectors_written=written)

        value: str | ImageRef | None
        value = source.image if target.kind is EmbeddingKind.IMAGE else source.text
        if value is None:
            raise ValidationError(f"{target} has nothing to embed")
        vector = await self.generate(value)
        await self.store.store_vector(target, tuple(vector), self._clock())
        log.info("embedding_generated", dimensions=len(vector))
        return BatchItemResult(target, success=True, dimensions=len(vector), vectors_written=1)

    async def generate_batch(
        self,
        targets: Sequence[EmbeddingTarget],
        cancel_event: asyncio.Event | None = None,
        on_item: ProgressCallback | None = None,
    ) -> BatchResult:
        """Embed targets sequentially; one failure never aborts the batch.

        Cancellation is checked between items.  Each item's write is already
        durable when the next item starts.
        """
        result = BatchResult()
        logger.info("embedding_batch_started", total=len(targets))

        for index, target in enumerate(targets):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                logger.info(
                    "embedding_batch_cancelled",
                    processed=len(result.items),
                    remaining=len(targets) - index,
                )
                break

            await self.scheduler.acquire()
            try:
                item = await self.generate_for_target(target)
            except PhotomatchError as exc:
                logger.warning(
                    "embedding_item_failed",
                    target=str(target),
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                item = BatchItemResult(
                    target, success=False, error=str(exc), error_type=type(exc).__name__
                )
            except Exception as exc:
                logger.exception("embedding_item_error", target=str(target))
                item = BatchItemResult(
                    target, success=False, error=str(exc), error_type=type(exc).__name__
                )

            result.items.append(item)
            if on_item is not None:
                await on_item(index, item)

        logger.info(
            "embedding_batch_complete",
            success_count=result.success_count,
            failure_count=result.failure_count,
            cancelled=result.cancelled,
        )
        return result


def build_embedding_service(store: VectorStore, settings: Settings | None = None) -> EmbeddingService:
    """Wire an ``EmbeddingService`` from configuration."""
    settings = settings or get_settings()
    image_provider = (
        ClipImageEmbeddingProvider() if settings.IMAGE_EMBEDDING_STRATEGY == "clip" else None
    )
    return EmbeddingService(
        store=store,
        text_provider=GeminiEmbeddingProvider(),
        image_provider=image_provider,
        scheduler=build_scheduler(settings),
        text_dimensions=settings.TEXT_EMBEDDING_DIM,
        image_dimensions=settings.IMAGE_EMBEDDING_DIM,
        timeout_seconds=settings.EMBEDDING_TIMEOUT_SECONDS,
        image_strategy=settings.IMAGE_EMBEDDING_STRATEGY,
    )
