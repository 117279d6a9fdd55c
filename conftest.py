"""
pytest configuration – point the app at a throwaway SQLite file, create
tables once, and give every test a clean students table plus a fresh,
permissive rate limiter.
"""
import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="facesmash-tests-")
os.environ["FACESMASH_DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'facesmash.db')}"
os.environ.setdefault("FACESMASH_LOG_FORMAT", "text")
os.environ.setdefault("FACESMASH_LOG_LEVEL", "warning")

import pytest  # noqa: E402
from sqlalchemy import delete  # noqa: E402

from facesmash.database import create_tables, db_session, drop_tables  # noqa: E402
from facesmash.main import app  # noqa: E402
from facesmash.models import Student  # noqa: E402
from facesmash.rate_limit import SlidingWindowRateLimiter  # noqa: E402


@pytest.fixture(autouse=True, scope="session")
def create_schema():
    create_tables()
    yield
    drop_tables()


@pytest.fixture(autouse=True)
def clean_students():
    yield
    with db_session() as session:
        session.execute(delete(Student))


@pytest.fixture(autouse=True)
def permissive_rate_limiter():
    """Most tests fire far more requests than the production limit allows."""
    app.state.rate_limiter = SlidingWindowRateLimiter(window_ms=60_000, max_requests=100_000)
    yield app.state.rate_limiter
