"""Pytest configuration and shared fixtures."""

import pytest
import sys
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from strategy_engine.entity_performance.queries import EntityQueries
from strategy_engine.entity_performance.schema import metadata
from tests.fixtures.seed_data import ORG_ID, Q1_2024, seed_organization


@pytest.fixture
def engine():
    """In-memory SQLite engine with the schema created."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def seeded_engine(engine):
    """Engine holding the seed organisation."""
    seed_organization(engine)
    return engine


@pytest.fixture
def queries(seeded_engine):
    return EntityQueries(seeded_engine)


@pytest.fixture
def org_id():
    return ORG_ID


@pytest.fixture
def window():
    """Q1 2024, the window every seeded value lives in."""
    return Q1_2024
