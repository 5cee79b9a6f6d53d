"""
conftest.py — Pytest fixtures for the practice-management API.

Uses a file-backed SQLite database in a temp dir rather than :memory:. The
reference store claims on its own sessions, and an in-memory database would
hand every session the same shared connection, hiding the isolation the
store relies on. Bucket capacity is 3 so rollover is cheap to reach.
"""

import os
import sys
import pytest

# Put backend on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

os.environ.setdefault("FLASK_ENV",         "testing")
os.environ.setdefault("FLASK_SECRET_KEY",  "test-secret")
os.environ.setdefault("REDIS_URL",         "redis://localhost:6379/0")

TEST_CAPACITY = 3


@pytest.fixture(scope="session")
def db_uri(tmp_path_factory):
    return f"sqlite:///{tmp_path_factory.mktemp('db') / 'practice_manager.db'}"


@pytest.fixture(scope="session")
def app(db_uri):
    """Create application against the temp SQLite database."""
    from app import create_app
    from config import Config
    from database import db

    class TestConfig(Config):
        TESTING                    = True
        DEBUG                      = False
        SQLALCHEMY_DATABASE_URI    = db_uri
        SQLALCHEMY_ENGINE_OPTIONS  = {"connect_args": {"timeout": 30}}
        CLIENT_REF_BUCKET_CAPACITY = TEST_CAPACITY
        CLIENT_REF_MAX_ATTEMPTS    = 8
        CLIENT_REF_BACKOFF_BASE    = 0.0

    test_app = create_app(TestConfig)
    with test_app.app_context():
        db.create_all()

    yield test_app


@pytest.fixture
def app_ctx(app):
    """
    Fresh tables for each test, with portfolios 1–3 seeded.
    Yields the app with its context pushed.
    """
    from database import db
    from models import Portfolio

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.create_all()

        for code in (1, 2, 3):
            db.session.add(Portfolio(code=code, name=f"Portfolio {code}"))
        db.session.commit()

        yield app

        db.session.remove()


@pytest.fixture
def client(app_ctx):
    return app_ctx.test_client()


@pytest.fixture
def service(app_ctx):
    from utils.client_refs import get_reference_service
    return get_reference_service()


@pytest.fixture
def seed_bucket(app_ctx):
    """Write a bucket row directly, bypassing the allocator (test setup only)."""
    from database import db
    from models import ReferenceBucket

    def _seed(portfolio_code, alpha, next_index):
        db.session.add(ReferenceBucket(portfolio_code=portfolio_code, alpha=alpha, next_index=next_index))
        db.session.commit()

    return _seed
