"""
SightEd Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the whole suite.
How:   Environment variables are set before any `sighted` import so the
       settings singleton never points at a real database or Google key.

Fixtures:
    memory_store:        fresh MemoryDocumentStore
    sample_image_bytes:  1x1 PNG that Pillow can verify
    huge_png_bytes:      tiny PNG declaring 20000x20000 pixels
    fake_llm / fake_vision: AsyncMock stand-ins for Gemini and Cloud Vision
    analysis:            AnalysisService wired to the fakes
    test_client:         httpx AsyncClient on the ASGI app, with the memory
                         store and the fake-backed AnalysisService installed
"""

import base64
import json
import os
import struct
import zlib
from unittest.mock import AsyncMock, MagicMock

os.environ["STORAGE_BACKEND"] = "memory"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id"
os.environ["GOOGLE_CLIENT_SECRET"] = "test-client-secret"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from sighted.services.analysis_service import AnalysisService, ImageCache
from sighted.services.file_service import FileService
from sighted.storage.memory_store import MemoryDocumentStore

PNG_1X1 = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8z8DwHwAFBQIAX8jx0gAAAABJRU5ErkJggg=="
)

SAMPLE_LABELS = [
    {"description": "Volcano", "score": 0.97},
    {"description": "Mountain", "score": 0.95},
    {"description": "Sky", "score": 0.9},
]
SAMPLE_LANDMARKS = [
    {
        "description": "Mount Fuji",
        "score": 0.88,
        "locations": [{"latitude": 35.36, "longitude": 138.73}],
    }
]

SAMPLE_ANALYSIS = {
    "sceneDescription": "A snow-capped volcano rises above the clouds.",
    "scientificFacts": [
        "Mount Fuji is a stratovolcano.",
        "Its last eruption was in 1707.",
        "It stands 3,776 metres tall.",
    ],
    "quickQuiz": [
        {
            "question": "What type of volcano is Mount Fuji?",
            "options": ["Shield", "Stratovolcano", "Cinder cone", "Caldera"],
            "correctAnswer": 1,
            "explanation": "Fuji is built from layers of lava and ash.",
        }
    ],
}


@pytest.fixture
def memory_store():
    return MemoryDocumentStore()


@pytest.fixture
def sample_image_bytes():
    """Smallest PNG Pillow accepts; real enough for validation, never sent anywhere."""
    return PNG_1X1


def png_with_size(width: int, height: int) -> bytes:
    """Minimal PNG whose IHDR declares the given dimensions."""

    def chunk(tag: bytes, data: bytes) -> bytes:
        crc = zlib.crc32(tag + data) & 0xFFFFFFFF
        return struct.pack(">I", len(data)) + tag + data + struct.pack(">I", crc)

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", ihdr)
        + chunk(b"IDAT", zlib.compress(b"\x00"))
        + chunk(b"IEND", b"")
    )


@pytest.fixture
def huge_png_bytes():
    return png_with_size(20000, 20000)


@pytest.fixture
def fake_llm():
    llm = MagicMock()
    llm.generate_text = AsyncMock(return_value=json.dumps(SAMPLE_ANALYSIS))
    llm.health_check = AsyncMock(return_value=True)
    return llm


@pytest.fixture
def fake_vision():
    vision = MagicMock()
    vision.detect = AsyncMock(return_value=(list(SAMPLE_LABELS), list(SAMPLE_LANDMARKS)))
    return vision


@pytest.fixture
def analysis(fake_llm, fake_vision):
    return AnalysisService(
        llm=fake_llm,
        vision=fake_vision,
        files=FileService(),
        cache=ImageCache(max_size=16),
    )


@pytest_asyncio.fixture
async def test_client(memory_store, analysis):
    """
    Async HTTP client talking to the app in-process.

    ASGITransport does not run the lifespan, so the store is attached to
    app.state here.
    """
    from sighted.main import app
    from sighted.services.analysis_service import get_analysis_service

    app.state.store = memory_store
    app.dependency_overrides[get_analysis_service] = lambda: analysis
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
    app.state.store = None
