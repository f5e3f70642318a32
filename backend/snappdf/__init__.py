"""
SnapPDF Backend — Application Package Initializer
=================================================

What: Marks the `snappdf` directory as a Python package.
Who:  Used by uvicorn (`uvicorn snappdf.main:app`), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← compress, assemble, audit
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← optional audit store
    └─────────────────────────────────────┘

    Routes translate multipart/JSON requests into service calls.
    Services never touch the HTTP layer and can be tested directly.
"""

__version__ = "1.0.0"
