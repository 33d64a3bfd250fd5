"""
conftest.py - Shared pytest fixtures for the insulation catalog test suite.

Pure unit tests use the in-memory definition fixtures below.  Database-backed
tests (migration drivers, relationship repair, API routes) run against a
temporary SQLite file through aiosqlite; each test gets a fresh schema.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``app.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any app imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Property definition fixtures
# ---------------------------------------------------------------------------

DEFINITION_DATA = [
    {
        "key": "pipe_diameter",
        "label": "Pipe Diameter",
        "description": "Nominal pipe size the insulation fits",
        "category": "dimension",
        "data_type": "fraction",
        "unit": "in",
        "normalization": {"function": "parseInches", "tolerance": 0.01},
        "aliases": ["pipe_size", "diameter", "pipesize", "nominal_pipe_size"],
        "display": {"order": 1, "placeholder": 'e.g. 1 1/2"'},
    },
    {
        "key": "insulation_thickness",
        "label": "Insulation Thickness",
        "category": "dimension",
        "data_type": "fraction",
        "unit": "in",
        "normalization": {"function": "parseInches", "tolerance": 0.01},
        "aliases": ["thickness", "wall_thickness"],
    },
    {
        "key": "material",
        "label": "Material",
        "category": "material",
        "data_type": "enum",
        "normalization": {"function": "toLowerCase"},
        "aliases": ["insulation_material", "material_type"],
        "enum_options": [
            {"value": "fiberglass", "label": "Fiberglass", "aliases": ["fibreglass", "fg"]},
            {"value": "mineral_wool", "label": "Mineral Wool", "aliases": ["mw", "rockwool"]},
        ],
    },
    {
        "key": "jacket_type",
        "label": "Jacket Type",
        "category": "specification",
        "data_type": "text",
        "normalization": {"function": "toLowerCase"},
        "aliases": ["jacket", "facing"],
    },
    {
        "key": "length",
        "label": "Length",
        "category": "dimension",
        "data_type": "number",
        "unit": "ft",
        "normalization": {"function": "parseNumber"},
        "aliases": ["length_ft"],
    },
]


@pytest.fixture
def definitions():
    """Five active definitions covering fraction, enum, text and number keys."""
    from app.models.catalog_schema import PropertyDefinitionRead
    return [PropertyDefinitionRead.model_validate(d) for d in DEFINITION_DATA]


@pytest.fixture
def index(definitions):
    """Alias index snapshot over the definition fixtures."""
    from app.services.property_index import build_index
    return build_index(definitions)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
async def session_factory(tmp_path):
    """
    async_sessionmaker bound to a fresh SQLite database with all tables.

    Uses a file (not :memory:) so every session opened by a driver sees the
    same database.
    """
    from app.db import create_tables, make_engine, make_session_factory

    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    await create_tables(engine)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def seed(session_factory):
    """Insert ORM objects and return them with ids populated."""
    async def _seed(*objects):
        async with session_factory() as session:
            session.add_all(objects)
            await session.commit()
        return objects
    return _seed


@pytest.fixture
async def seeded_definitions(seed):
    """The definition fixtures persisted as PropertyDefinition rows."""
    from app.models.orm_models import PropertyDefinition
    return await seed(*[PropertyDefinition(**d) for d in DEFINITION_DATA])


@pytest.fixture
async def client(session_factory):
    """httpx client against the FastAPI app with get_db bound to the test database."""
    import httpx
    from app.db import get_db
    from app.main import app

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
