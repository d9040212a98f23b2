"""
SightEd Backend — Application Package
======================================

What: Educational image analysis API. A photo goes in; detected labels and
      landmarks, a generated description, scientific facts and a quiz come out.
Who:  Imported by uvicorn (`sighted.main:app`), Alembic and pytest.

Layering:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Vision, Gemini, Photos, users
    ├─────────────────────────────────────┤
    │             Schemas (Data)          │  ← Pydantic request/response models
    ├─────────────────────────────────────┤
    │        Storage (DocumentStore)      │  ← SQL or in-memory, chosen by config
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
