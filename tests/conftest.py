"""Shared fixtures for the Site Sentinel test suite."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from site_sentinel.config import settings
from site_sentinel.main import app
from site_sentinel.models import Site
from site_sentinel.services.auth import current_user
from site_sentinel.state import app_state


@pytest.fixture(autouse=True)
def fresh_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Give every test an empty app state, a private store file and instant timers."""
    app_state.reset()
    monkeypatch.setattr(settings, "STORE_FILE", str(tmp_path / "store.json"))
    monkeypatch.setattr(settings, "FIX_DELAY_SECONDS", 0)
    monkeypatch.setattr(settings, "FIX_ALL_STEP_SECONDS", 0)
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)
    monkeypatch.setattr(settings, "AI_API_KEY", "test-key")
    yield
    app_state.reset()


@pytest.fixture
def user():
    return current_user()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_client(client: TestClient) -> TestClient:
    response = client.post(
        "/auth/login", json={"email": settings.ADMIN_EMAIL, "password": settings.ADMIN_PASSWORD})
    assert response.status_code == 200
    return client


def make_site(site_id: str, name: str, url: str = "https://example.com", status: str = "online",
              uptime: float = 99.9, response_time: int = 200, tags=None) -> Site:
    return Site(id=site_id, name=name, url=url, status=status, uptime=uptime,
                response_time=response_time, last_checked="2026-01-01T00:00:00+00:00",
                added_at="2026-01-01", tags=tags)


@pytest.fixture
def site_factory():
    return make_site


@pytest.fixture
def ai_payload() -> dict:
    """A well-formed structured response as the AI service would return it."""
    return {
        "strengths": ["CDN in front of static assets"],
        "weaknesses": ["Large uncompressed images"],
        "securityConcerns": ["Admin panel exposed"],
        "recommendations": ["Enable HSTS", "Rate limit the login form"],
        "cyberCrimeDetection": "Credential stuffing patterns are common for shops.",
        "vulnerabilities": [
            {
                "id": "v1",
                "title": "Missing CSP",
                "description": "No Content-Security-Policy header.",
                "severity": "high",
                "status": "detected",
                "remediation": "Add a strict CSP.",
                "detailedSteps": ["Audit inline scripts", "Add header", "Monitor reports"],
            },
            {
                "id": "v2",
                "title": "Outdated jQuery",
                "description": "jQuery 1.x in use.",
                "severity": "medium",
                "status": "detected",
                "remediation": "Upgrade jQuery.",
                "detailedSteps": ["Pin version", "Run tests", "Deploy"],
            },
            {
                "id": "v3",
                "title": "Verbose errors",
                "description": "Stack traces returned to clients.",
                "severity": "low",
                "status": "detected",
                "remediation": "Disable debug output.",
                "detailedSteps": ["Set production mode", "Add error pages", "Verify"],
            },
        ],
    }
