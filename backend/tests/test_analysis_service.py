"""
SightEd Backend — Analysis Service Unit Tests
===============================================

What:  Upload orchestration, fallbacks, cache behaviour and the quiz and
       explanation flows, with Vision and Gemini replaced by AsyncMocks.
"""

import json
from unittest.mock import AsyncMock

import pytest

from sighted.exceptions import (
    CircuitBreakerOpenError,
    LLMServiceError,
    NotFoundError,
    QuotaExceededError,
    StorageError,
    ValidationError,
    VisionServiceError,
)
from sighted.services.analysis_service import (
    IMAGE_NOT_FOUND_MESSAGE,
    IMAGES,
    SAVED_MESSAGE,
    ImageCache,
)


async def upload(analysis, store, content, **kwargs):
    return await analysis.analyze_upload(
        store,
        filename=kwargs.get("filename", "fuji.png"),
        content=content,
        content_type=kwargs.get("content_type", "image/png"),
    )


class TestImageCache:

    def test_evicts_least_recently_used(self):
        cache = ImageCache(max_size=2)
        cache.put("a", {"id": "a"})
        cache.put("b", {"id": "b"})
        cache.get("a")
        cache.put("c", {"id": "c"})
        assert "a" in cache
        assert "b" not in cache
        assert len(cache) == 2

    def test_returns_copies(self):
        cache = ImageCache(max_size=2)
        cache.put("a", {"id": "a"})
        cache.get("a")["id"] = "changed"
        assert cache.get("a") == {"id": "a"}

    def test_rejects_zero_size(self):
        with pytest.raises(ValueError):
            ImageCache(max_size=0)


class TestAnalyzeUpload:

    async def test_builds_and_stores_record(self, analysis, memory_store, sample_image_bytes):
        result = await upload(analysis, memory_store, sample_image_bytes)

        assert result["message"] == SAVED_MESSAGE
        assert result["id"].startswith("img-")
        assert result["fileName"] == "fuji.png"
        assert result["contentType"] == "image/png"
        assert result["aiDescription"] == "A snow-capped volcano rises above the clouds."
        assert len(result["scientificFacts"]) == 3
        assert result["quickQuiz"][0]["correctAnswer"] == 1
        assert result["landmarks"][0]["description"] == "Mount Fuji"

        stored = await memory_store.get(IMAGES, result["id"])
        assert "message" not in stored
        assert stored["labels"] == result["labels"]
        assert result["id"] in analysis.cache

    async def test_invalid_image_stops_before_vision(self, analysis, memory_store, fake_vision):
        with pytest.raises(ValidationError):
            await upload(analysis, memory_store, b"plain text", content_type="text/plain")
        fake_vision.detect.assert_not_awaited()
        assert await memory_store.count(IMAGES) == 0

    @pytest.mark.parametrize("error", [LLMServiceError(), CircuitBreakerOpenError(recovery_time=30)])
    async def test_gemini_failure_falls_back_to_labels(
        self, analysis, memory_store, fake_llm, sample_image_bytes, error
    ):
        fake_llm.generate_text.side_effect = error
        result = await upload(analysis, memory_store, sample_image_bytes)
        assert result["aiDescription"] == "Volcano, Mountain, Sky"
        assert result["scientificFacts"] == []
        assert result["quickQuiz"] == []

    async def test_empty_gemini_description_falls_back(
        self, analysis, memory_store, fake_llm, sample_image_bytes
    ):
        fake_llm.generate_text.return_value = json.dumps({"sceneDescription": ""})
        result = await upload(analysis, memory_store, sample_image_bytes)
        assert result["aiDescription"] == "Volcano, Mountain, Sky"

    async def test_gemini_quota_propagates(
        self, analysis, memory_store, fake_llm, sample_image_bytes
    ):
        fake_llm.generate_text.side_effect = QuotaExceededError(service="gemini")
        with pytest.raises(QuotaExceededError):
            await upload(analysis, memory_store, sample_image_bytes)

    async def test_vision_failure_propagates(
        self, analysis, memory_store, fake_vision, fake_llm, sample_image_bytes
    ):
        fake_vision.detect.side_effect = VisionServiceError()
        with pytest.raises(VisionServiceError):
            await upload(analysis, memory_store, sample_image_bytes)
        fake_llm.generate_text.assert_not_awaited()

    async def test_storage_failure_still_serves_from_cache(
        self, analysis, memory_store, sample_image_bytes
    ):
        memory_store.set = AsyncMock(side_effect=StorageError())
        result = await upload(analysis, memory_store, sample_image_bytes)
        fetched = await analysis.get_analysis(memory_store, result["id"])
        assert fetched["aiDescription"] == result["aiDescription"]


class TestReadBack:

    async def test_get_analysis_reads_store_on_cache_miss(self, analysis, memory_store):
        await memory_store.set(IMAGES, "img-1", {"fileName": "x.png", "createdAt": "2024-01-01"})
        record = await analysis.get_analysis(memory_store, "img-1")
        assert record["id"] == "img-1"
        assert "img-1" in analysis.cache

    async def test_get_analysis_unknown_id(self, analysis, memory_store):
        with pytest.raises(NotFoundError, match="Please upload the image again") as exc_info:
            await analysis.get_analysis(memory_store, "img-missing")
        assert exc_info.value.message == IMAGE_NOT_FOUND_MESSAGE

    async def test_list_saved_pages_newest_first(self, analysis, memory_store):
        for day in range(1, 6):
            await memory_store.set(IMAGES, f"img-{day}", {"createdAt": f"2024-01-0{day}T00:00:00"})

        first = await analysis.list_saved(memory_store, page=1, limit=2)
        assert [image["id"] for image in first["images"]] == ["img-5", "img-4"]
        assert first["total"] == 5

        last = await analysis.list_saved(memory_store, page=3, limit=2)
        assert [image["id"] for image in last["images"]] == ["img-1"]

    @pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (-1, 5)])
    async def test_list_saved_rejects_non_positive(self, analysis, memory_store, page, limit):
        with pytest.raises(ValidationError):
            await analysis.list_saved(memory_store, page=page, limit=limit)

    async def test_list_all_counts(self, analysis, memory_store):
        await memory_store.set(IMAGES, "img-1", {"createdAt": "2024-01-01"})
        result = await analysis.list_all(memory_store)
        assert result["count"] == 1


class TestQuizAndExplanation:

    @pytest.fixture
    async def stored_id(self, memory_store):
        await memory_store.set(IMAGES, "img-fuji", {
            "aiDescription": "A volcano.",
            "labels": [{"description": "Volcano", "score": 0.9}],
            "landmarks": [],
            "createdAt": "2024-01-01",
        })
        return "img-fuji"

    async def test_generate_quiz(self, analysis, memory_store, fake_llm, stored_id):
        fake_llm.generate_text.return_value = json.dumps([
            {"question": f"Q{i}?", "options": ["a", "b", "c", "d"], "correctAnswer": 0}
            for i in range(5)
        ])
        result = await analysis.generate_quiz(memory_store, stored_id)
        assert result["imageId"] == stored_id
        assert len(result["quiz"]) == 5

    async def test_generate_quiz_unusable_output(self, analysis, memory_store, fake_llm, stored_id):
        fake_llm.generate_text.return_value = "Sorry, no quiz today."
        with pytest.raises(LLMServiceError):
            await analysis.generate_quiz(memory_store, stored_id)

    async def test_generate_quiz_unknown_image(self, analysis, memory_store):
        with pytest.raises(NotFoundError):
            await analysis.generate_quiz(memory_store, "img-nope")

    async def test_generate_explanation(self, analysis, memory_store, fake_llm, stored_id):
        fake_llm.generate_text.return_value = "  Because it erupts.  "
        result = await analysis.generate_explanation(
            memory_store, stored_id, "What is it?", ["Lake", "Volcano"], 1
        )
        assert result == {"explanation": "Because it erupts."}
        prompt = fake_llm.generate_text.await_args.args[0]
        assert "Correct answer: B. Volcano" in prompt

    async def test_explanation_answer_out_of_range(self, analysis, memory_store, stored_id):
        with pytest.raises(ValidationError):
            await analysis.generate_explanation(memory_store, stored_id, "Q?", ["a", "b"], 2)
