"""
Test fixtures for the NeuroRisk backend test suite.
"""
import os
import sys
import pytest
import pytest_asyncio

# Disable rate limiting during tests
os.environ["TESTING"] = "true"

# Ensure the backend directory is on sys.path
BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

# Override DB_PATH BEFORE importing any app modules so that init_db()
# and all subsequent imports use a separate test database.
import neurorisk.models.database as _db_mod  # noqa: E402

_TEST_DB_PATH = os.path.join(BACKEND_DIR, "test_database.db")
_db_mod.DB_PATH = _TEST_DB_PATH


def _reset_test_db():
    """Drop and recreate all tables in the test database."""
    if os.path.exists(_TEST_DB_PATH):
        os.remove(_TEST_DB_PATH)
    _db_mod.init_db()


_reset_test_db()

from httpx import AsyncClient, ASGITransport  # noqa: E402
from neurorisk.main import app  # noqa: E402


@pytest.fixture(autouse=True)
def clean_db():
    """Reset the test database before each test."""
    _reset_test_db()
    yield
    if os.path.exists(_TEST_DB_PATH):
        os.remove(_TEST_DB_PATH)


@pytest.fixture
def db():
    """Return the SimpleDB helper bound to the test database."""
    from neurorisk.models.database import db
    return db


@pytest.fixture
def assessment(db):
    return db.create_assessment({"user_id": "user-1", "assessment_type": "cognitive"})


@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
