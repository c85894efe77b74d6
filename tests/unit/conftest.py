"""
Shared fixtures for API unit tests.
"""
import pytest
from fastapi.testclient import TestClient

from thread_memory.api.main import app, get_services
from thread_memory.config.settings import Settings, StoreCfg
from thread_memory.services import build_services
from thread_memory.summary.schemas import MemorySettings


@pytest.fixture
def services(tmp_path, extractor):
    """Real service stack on a temporary database with the scripted extractor."""
    settings = Settings(store=StoreCfg(db_path=str(tmp_path / "api.db")))
    svc = build_services(settings, extractor=extractor)

    svc.messages.create_thread("t1", "user_1")
    svc.memory_settings.upsert_memory_settings(MemorySettings(user_id="user_1", use_summarization=True))
    svc.memory_settings.set_api_key("user_1", "sk-test")
    svc.messages.add_message("t1", "user", "What should we call the project?", message_id="u1")
    svc.messages.add_message("t1", "assistant", "Let's call it Atlas.", message_id="a1")

    yield svc
    svc.close()


@pytest.fixture
def client(services):
    """Create test client with the service dependency overridden."""
    app.dependency_overrides[get_services] = lambda: services

    client = TestClient(app)
    yield client

    # Clean up
    app.dependency_overrides.clear()
