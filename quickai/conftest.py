# quickai/conftest.py
import os
import sys
import tempfile
from pathlib import Path

import pytest

# Add project root to PYTHONPATH
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Settings are read at import time; pin the test environment first.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="quickai-tests-")
os.environ["ENV"] = "test"
os.environ["TEST_DATABASE_URL"] = f"sqlite:///{_TEST_DB_DIR}/quickai.db"
os.environ["CLERK_JWT_SECRET"] = "test-secret-key-for-quickai"
os.environ["IDENTITY_BACKEND"] = "memory"
os.environ["FREE_USAGE_LIMIT"] = "10"


@pytest.fixture(scope="session")
def db_url():
    return os.environ["TEST_DATABASE_URL"]


@pytest.fixture(scope="function", autouse=True)
def reset_db(db_url):
    """Drop and recreate all tables so each test starts from an empty store."""
    from quickai.core.database import init_engine, reset_database

    init_engine(db_url)
    reset_database()
    yield


@pytest.fixture
def identity_store():
    """In-memory identity store wired into the app."""
    from quickai.features.identity.store import InMemoryIdentityStore
    from quickai.main import app

    store = InMemoryIdentityStore()
    previous = getattr(app.state, "identity_store", None)
    app.state.identity_store = store
    yield store
    app.state.identity_store = previous


@pytest.fixture
def providers():
    """Fake provider registry wired into the app."""
    from quickai.main import app
    from quickai.tests.mocks import make_fake_registry

    registry = make_fake_registry()
    previous = getattr(app.state, "providers", None)
    app.state.providers = registry
    yield registry
    app.state.providers = previous


@pytest.fixture
def client(identity_store, providers):
    from fastapi.testclient import TestClient
    from quickai.main import app

    return TestClient(app)


@pytest.fixture
def auth_headers():
    """Build bearer headers for a user, optionally carrying a plan claim."""
    from quickai.core.clerk_auth import create_test_jwt

    def _make(user_id: str, plan=None) -> dict:
        return {"Authorization": f"Bearer {create_test_jwt(sub=user_id, plan=plan)}"}

    return _make
