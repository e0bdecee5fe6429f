"""
Shared fixtures: an in-memory SQLite database with the full schema.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from clinicapi.database import create_clinic, create_schema


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def clinic_a(engine):
    return create_clinic(engine, "Clinic A")


@pytest.fixture
def clinic_b(engine):
    return create_clinic(engine, "Clinic B")
