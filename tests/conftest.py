# Pytest configuration file for the Games Inc Jr test suite
import sys
import os
import pytest

# Add the project root to Python path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Isolated settings: in-memory database, no KV store, no AI provider
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["KV_REST_API_URL"] = ""
os.environ["KV_REST_API_TOKEN"] = ""
os.environ["AI_ENABLED"] = "false"
os.environ["OPENAI_API_KEY"] = ""
os.environ["SERVERLESS"] = "false"
os.environ.pop("VERCEL", None)
os.environ["DEBUG_MODE"] = "false"

from gamesjr.db.models import Base, get_engine  # noqa: E402
from gamesjr.services.analytics_service import tracker  # noqa: E402
from gamesjr.services.catalog_service import GameCatalog  # noqa: E402
from gamesjr.services.community_service import CommunityStore, post_limiter  # noqa: E402
from gamesjr.services import imaginary_friends_service  # noqa: E402

BUNDLED_CATALOG = GameCatalog._path


# Configure pytest markers
def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests for isolated components")
    config.addinivalue_line("markers", "integration: Integration tests for multiple components")
    config.addinivalue_line("markers", "slow: Tests that take longer to run")


@pytest.fixture(autouse=True)
def fresh_state():
    """Recreate the schema and clear in-memory stores around every test."""
    engine = get_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    tracker.reset()
    CommunityStore.clear()
    post_limiter.reset()
    GameCatalog.reset(BUNDLED_CATALOG)
    imaginary_friends_service.set_service(None)
    yield
    GameCatalog.reset(BUNDLED_CATALOG)
    imaginary_friends_service.set_service(None)
