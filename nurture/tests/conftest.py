"""
Pytest configuration and shared fixtures.
The AI service is replaced by FakeProvider so tests never touch the network.
"""
import pytest
from fastapi.testclient import TestClient

from fakes import FakeProvider


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def config_manager(tmp_path, monkeypatch):
    from core.config import ConfigManager
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    return ConfigManager(tmp_path)


@pytest.fixture
def app(config_manager, provider):
    from api.server import create_app
    return create_app(config_manager, provider=provider)


@pytest.fixture
def client(app):
    return TestClient(app)
