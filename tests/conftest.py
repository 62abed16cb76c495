import httpx
import pytest
from focus_companion.core import config
from focus_companion.main import app

TEST_TOKEN = "test-token"

@pytest.fixture(autouse=True)
def setup_test_environment():
    """Setup test environment with fast, deterministic settings"""
    # Store original values
    original = {
        "API_TOKEN": config.settings.API_TOKEN,
        "USE_MOCK": config.settings.USE_MOCK,
        "FETCH_BACKOFF_BASE_MS": config.settings.FETCH_BACKOFF_BASE_MS,
        "ADVICE_API_URL": config.settings.ADVICE_API_URL,
        "MEALDB_API_URL": config.settings.MEALDB_API_URL,
    }

    # Override settings for tests - no real backoff pauses, fixed upstream hosts
    config.settings.API_TOKEN = TEST_TOKEN
    config.settings.USE_MOCK = False
    config.settings.FETCH_BACKOFF_BASE_MS = 0
    config.settings.ADVICE_API_URL = "https://advice.test"
    config.settings.MEALDB_API_URL = "https://mealdb.test/api/json/v1/1"

    yield

    # Restore original values
    for key, value in original.items():
        setattr(config.settings, key, value)
    app.dependency_overrides.clear()

@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {TEST_TOKEN}"}

class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler):
        self.requests = []

        def recording_handler(request):
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)

@pytest.fixture
def make_transport():
    return RecordingTransport

@pytest.fixture
def sleep_recorder():
    """Replacement for asyncio.sleep that records requested delays without waiting."""
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    fake_sleep.delays = delays
    return fake_sleep
