"""
Canopy Backend: Application Package Initializer
================================================

What: Marks the `canopy` directory as a Python package.
Who:  Imported by uvicorn (`canopy.main:app`), Alembic, and pytest.

Architecture Note:
    The backend is layered the same way top to bottom:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Business Logic)         │  ← permissions, planner, bulk runs
    ├─────────────────────────────────────┤
    │   Tree Engine (pure functions)      │  ← paths, invariants, resolver
    ├─────────────────────────────────────┤
    │   Repositories / Models / Schemas   │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    The tree engine (`canopy.tree`) never touches the database: it receives
    paths and membership grants and returns decisions. Services load the rows,
    ask the engine, and write the outcome inside one transaction.
"""

__version__ = "1.0.0"
