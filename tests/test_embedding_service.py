"""Unit tests for EmbeddingService and its providers."""
import asyncio
import json
import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from photomatch.domain import DIMENSIONS, Dimension, EmbeddingKind, EmbeddingTarget, ImageRef, Vectorized
from photomatch.exceptions import (
    IncompleteProfileError,
    ProviderError,
    ValidationError,
    VectorDimensionError,
)
from photomatch.services.embedding_service import (
    ClipImageEmbeddingProvider,
    EmbeddingService,
    GeminiEmbeddingProvider,
)

from conftest import T0, FakeTextProvider


class SteppingClock:
    def __init__(self):
        self.ticks = 0

    def __call__(self):
        self.ticks += 1
        return T0 + timedelta(minutes=self.ticks)


class FakeImageProvider:
    def __init__(self, dimensions=8):
        self.dimensions = dimensions
        self.calls = []

    async def embed_image(self, image):
        self.calls.append(image)
        return [0.5] * self.dimensions


def _service(store, provider, scheduler=None, **kwargs):
    kwargs.setdefault("text_dimensions", 8)
    kwargs.setdefault("image_dimensions", 8)
    kwargs.setdefault("timeout_seconds", 1.0)
    return EmbeddingService(store, provider, scheduler=scheduler, **kwargs)


def _choices(store, count):
    qid = store.add_question(1, {"style_emotion": 1.0})
    return [
        EmbeddingTarget(EmbeddingKind.CHOICE, store.add_choice(qid, text=f"item-{i}"))
        for i in range(count)
    ]


class TestGenerate:

    @pytest.mark.asyncio
    async def test_text_vector_has_family_dimensions(self, store, text_provider):
        vector = await _service(store, text_provider).generate("warm and cosy")
        assert len(vector) == 8

    @pytest.mark.asyncio
    async def test_empty_text_rejected(self, store, text_provider):
        with pytest.raises(ValidationError):
            await _service(store, text_provider).generate("   ")
        assert text_provider.calls == []

    @pytest.mark.asyncio
    async def test_wrong_dimensionality_is_a_hard_error(self, store):
        service = _service(store, FakeTextProvider(dimensions=8), text_dimensions=16)
        with pytest.raises(VectorDimensionError):
            await service.generate("anything")

    @pytest.mark.asyncio
    async def test_timeout_becomes_provider_error(self, store):
        service = _service(store, FakeTextProvider(hang_on={"slow"}), timeout_seconds=0.05)
        with pytest.raises(ProviderError) as exc:
            await service.generate("slow")
        assert not exc.value.retryable

    @pytest.mark.asyncio
    async def test_unexpected_provider_exception_is_wrapped(self, store):
        provider = AsyncMock()
        provider.embed_text.side_effect = RuntimeError("connection reset")
        with pytest.raises(ProviderError, match="connection reset"):
            await _service(store, provider).generate("text")

    @pytest.mark.asyncio
    async def test_non_finite_vector_rejected(self, store):
        provider = AsyncMock()
        provider.embed_text.return_value = [float("nan")] * 8
        with pytest.raises(ProviderError):
            await _service(store, provider).generate("text")

    @pytest.mark.asyncio
    async def test_image_label_strategy_uses_text_provider(self, store, text_provider):
        service = _service(store, text_provider)
        await service.generate(ImageRef(url="https://img/1.jpg", label="misty forest"))
        assert text_provider.calls == ["misty forest"]

    @pytest.mark.asyncio
    async def test_image_without_label_rejected_under_label_strategy(self, store, text_provider):
        with pytest.raises(ValidationError):
            await _service(store, text_provider).generate(ImageRef(url="https://img/1.jpg"))

    @pytest.mark.asyncio
    async def test_clip_strategy_uses_image_provider(self, store, text_provider):
        image_provider = FakeImageProvider()
        service = _service(store, text_provider, image_provider=image_provider, image_strategy="clip")
        vector = await service.generate(ImageRef(url="https://img/1.jpg", label="ignored"))
        assert vector == [0.5] * 8
        assert text_provider.calls == []

    def test_clip_strategy_requires_image_provider(self, store, text_provider):
        with pytest.raises(ValidationError):
            _service(store, text_provider, image_strategy="clip")


class TestGenerateForTarget:

    @pytest.mark.asyncio
    async def test_regeneration_overwrites_vector_and_timestamp(self, store, text_provider):
        target = _choices(store, 1)[0]
        service = _service(store, text_provider, clock=SteppingClock())

        await service.generate_for_target(target)
        first = store.options[target.target_id]["vector"]
        await service.generate_for_target(target)
        second = store.options[target.target_id]["vector"]

        assert isinstance(second, Vectorized)
        assert second.vector == first.vector
        assert second.generated_at > first.generated_at

    @pytest.mark.asyncio
    async def test_profile_writes_all_four_dimensions(self, store, text_provider):
        pid = store.add_candidate(descriptions={dim: f"{dim.value} text" for dim in DIMENSIONS})
        target = EmbeddingTarget(EmbeddingKind.PHOTOGRAPHER_PROFILE, pid)
        item = await _service(store, text_provider).generate_for_target(target)

        assert item.success and item.vectors_written == 4
        assert store._profile(pid).profile_completed
        assert store._profile(pid).as_complete().candidate_id == pid

    @pytest.mark.asyncio
    async def test_missing_description_fails_after_writing_the_rest(self, store, text_provider):
        descriptions = {dim: f"{dim.value} text" for dim in DIMENSIONS}
        descriptions[Dimension.COMPANION] = None
        pid = store.add_candidate(descriptions=descriptions)
        target = EmbeddingTarget(EmbeddingKind.PHOTOGRAPHER_PROFILE, pid)

        with pytest.raises(IncompleteProfileError) as exc:
            await _service(store, text_provider).generate_for_target(target)

        assert exc.value.missing == ("companion",)
        assert len(store.stored) == 3
        assert not store._profile(pid).profile_completed


class TestGenerateBatch:

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self, store, scheduler):
        targets = _choices(store, 10)
        provider = FakeTextProvider(fail_on={"item-2", "item-6"})
        result = await _service(store, provider, scheduler).generate_batch(targets)

        assert result.success_count == 8
        assert result.failure_count == 2
        assert not result.cancelled
        failed = [i for i, item in enumerate(result.items) if not item.success]
        assert failed == [2, 6]
        assert result.items[2].error_type == "ProviderError"
        assert scheduler.acquired == 10
        assert len(store.stored) == 8

    @pytest.mark.asyncio
    async def test_items_run_sequentially_in_order(self, store, text_provider, scheduler):
        targets = _choices(store, 5)
        await _service(store, text_provider, scheduler).generate_batch(targets)
        assert text_provider.calls == [f"item-{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_timeout_counts_as_item_failure(self, store, scheduler):
        targets = _choices(store, 3)
        provider = FakeTextProvider(hang_on={"item-1"})
        service = _service(store, provider, scheduler, timeout_seconds=0.05)
        result = await service.generate_batch(targets)
        assert (result.success_count, result.failure_count) == (2, 1)

    @pytest.mark.asyncio
    async def test_unknown_target_counts_as_failure(self, store, text_provider, scheduler):
        targets = _choices(store, 1) + [EmbeddingTarget(EmbeddingKind.CHOICE, uuid.uuid4())]
        result = await _service(store, text_provider, scheduler).generate_batch(targets)
        assert result.items[1].error_type == "NotFoundError"
        assert result.failure_count == 1

    @pytest.mark.asyncio
    async def test_cancellation_stops_after_current_item(self, store, text_provider, scheduler):
        targets = _choices(store, 6)
        cancel = asyncio.Event()
        seen = []

        async def on_item(index, item):
            seen.append(index)
            if index == 2:
                cancel.set()

        result = await _service(store, text_provider, scheduler).generate_batch(
            targets, cancel_event=cancel, on_item=on_item
        )
        assert result.cancelled
        assert seen == [0, 1, 2]
        assert result.success_count == 3
        assert len(store.stored) == 3

    @pytest.mark.asyncio
    async def test_batch_result_serialises(self, store, text_provider, scheduler):
        result = await _service(store, text_provider, scheduler).generate_batch(_choices(store, 2))
        payload = result.as_dict()
        assert payload["success_count"] == 2
        assert payload["items"][0]["target_type"] == "choice_embedding"


class TestGeminiProvider:

    @pytest.mark.asyncio
    async def test_returns_embedding(self):
        with patch("photomatch.services.embedding_service.genai") as genai:
            genai.embed_content_async = AsyncMock(return_value={"embedding": [0.1, 0.2]})
            provider = GeminiEmbeddingProvider(api_key="k", model="models/test", max_attempts=2)
            assert await provider.embed_text("hello") == [0.1, 0.2]
            genai.configure.assert_called_once_with(api_key="k")
            kwargs = genai.embed_content_async.call_args.kwargs
            assert kwargs["model"] == "models/test"
            assert kwargs["content"] == "hello"

    @pytest.mark.asyncio
    async def test_retries_rate_limit(self):
        with patch("photomatch.services.embedding_service.genai") as genai:
            genai.embed_content_async = AsyncMock(
                side_effect=[Exception("429 Resource has been exhausted"), {"embedding": [1.0]}]
            )
            provider = GeminiEmbeddingProvider(api_key="k", max_attempts=3, wait_min=0, wait_max=0)
            assert await provider.embed_text("hello") == [1.0]
            assert genai.embed_content_async.await_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_raised_immediately(self):
        with patch("photomatch.services.embedding_service.genai") as genai:
            genai.embed_content_async = AsyncMock(side_effect=Exception("400 invalid argument"))
            provider = GeminiEmbeddingProvider(api_key="k", max_attempts=3, wait_min=0, wait_max=0)
            with pytest.raises(Exception, match="400 invalid argument"):
                await provider.embed_text("hello")
            assert genai.embed_content_async.await_count == 1

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_provider_error(self):
        with patch("photomatch.services.embedding_service.genai") as genai:
            genai.embed_content_async = AsyncMock(side_effect=Exception("503 service unavailable"))
            provider = GeminiEmbeddingProvider(api_key="k", max_attempts=2, wait_min=0, wait_max=0)
            with pytest.raises(ProviderError):
                await provider.embed_text("hello")
            assert genai.embed_content_async.await_count == 2


class TestClipProvider:

    @pytest.mark.asyncio
    async def test_posts_prediction_and_parses_embedding(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"status": "succeeded", "output": {"embedding": [0.25, 0.75]}})

        provider = ClipImageEmbeddingProvider(
            api_token="tok",
            model_version="v1",
            api_url="https://replicate.test/v1/predictions",
            transport=httpx.MockTransport(handler),
        )
        vector = await provider.embed_image(ImageRef(url="https://img/1.jpg"))

        assert vector == [0.25, 0.75]
        body = json.loads(requests[0].content)
        assert body == {"version": "v1", "input": {"image": "https://img/1.jpg"}}
        assert requests[0].headers["Authorization"] == "Token tok"

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        responses = iter([
            httpx.Response(503),
            httpx.Response(200, json={"output": [{"embedding": [1.0]}]}),
        ])
        provider = ClipImageEmbeddingProvider(
            api_token="tok",
            transport=httpx.MockTransport(lambda request: next(responses)),
            wait_min=0,
            wait_max=0,
        )
        assert await provider.embed_image(ImageRef(url="https://img/1.jpg")) == [1.0]

    @pytest.mark.asyncio
    async def test_failed_prediction_raises(self):
        provider = ClipImageEmbeddingProvider(
            api_token="tok",
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"status": "failed"})),
        )
        with pytest.raises(ProviderError):
            await provider.embed_image(ImageRef(url="https://img/1.jpg"))

    @pytest.mark.asyncio
    async def test_requires_url(self):
        provider = ClipImageEmbeddingProvider(api_token="tok")
        with pytest.raises(ValidationError):
            await provider.embed_image(ImageRef(label="no url"))
