"""
Pytest configuration and fixtures for backend tests.

Provides fixtures for:
- Temporary gateway home directory
- Helper for writing config documents into it
- Profile service, provider and FastAPI test client bound to that home
"""
import sys
from pathlib import Path
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

# Add project root to path before importing project modules
PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from userfiles_auth.api.main import create_app  # noqa: E402
from userfiles_auth.config import AuthSettings  # noqa: E402
from userfiles_auth.services.auth_provider import UserFilesAuthProvider  # noqa: E402
from userfiles_auth.services.config_service import ProfileConfigService  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "unit: marks tests as unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (filesystem + HTTP)"
    )


SAMPLE_DOCUMENT = """<?xml version="1.0" encoding="UTF-8"?>
<configs valid_to="2099-01-01T00:00:00Z">
  <config name="srv1" protocol="rdp">
    <param name="hostname" value="10.0.0.1"/>
    <param name="port" value="3389"/>
  </config>
</configs>
"""


@pytest.fixture
def home_dir(tmp_path: Path) -> Path:
    """Create a temporary gateway home directory."""
    home = tmp_path / "guacamole"
    home.mkdir()
    return home


@pytest.fixture
def write_config(home_dir: Path) -> Callable[..., Path]:
    """Return a helper writing a document under the home directory."""

    def _write(content: str, filename: str = "noauth-config.xml") -> Path:
        path = home_dir / filename
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def service(home_dir: Path) -> ProfileConfigService:
    """Profile service with caching enabled."""
    return ProfileConfigService(home_dir=home_dir)


@pytest.fixture
def provider(service: ProfileConfigService) -> UserFilesAuthProvider:
    return UserFilesAuthProvider(service)


@pytest.fixture
def settings(home_dir: Path) -> AuthSettings:
    return AuthSettings(home_dir=home_dir, log_level="DEBUG")


@pytest.fixture
def client(settings: AuthSettings) -> Generator[TestClient, None, None]:
    """FastAPI test client bound to the temporary home directory."""
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_document() -> str:
    """Single rdp profile, valid until 2099."""
    return SAMPLE_DOCUMENT
