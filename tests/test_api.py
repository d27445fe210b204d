"""Tests for the HTTP API."""

import json

import pytest
from fastapi.testclient import TestClient

from site_sentinel.api import endpoints
from site_sentinel.config import settings
from site_sentinel.errors import AnalysisError
from site_sentinel.services.analysis import parse_analysis
from site_sentinel.state import app_state


@pytest.fixture
def fake_ai(monkeypatch, ai_payload):
    calls = []

    async def fake_analysis(client, url):
        calls.append(url)
        return parse_analysis(url, json.dumps(ai_payload))

    monkeypatch.setattr(endpoints, "perform_ai_analysis", fake_analysis)
    return calls


@pytest.fixture
def subscribed(auth_client: TestClient) -> TestClient:
    app_state.user.plan = "monthly"
    return auth_client


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class TestSession:
    def test_protected_routes_need_login(self, client):
        assert client.get("/sites").status_code == 401
        assert client.get("/account").status_code == 401

    def test_login_and_logout(self, client):
        bad = client.post("/auth/login", json={"email": settings.ADMIN_EMAIL, "password": "nope"})
        assert bad.status_code == 401
        assert "Credentials do not match" in bad.json()["detail"]

        ok = client.post("/auth/login", json={"email": "ADMIN@gmtsss.io", "password": settings.ADMIN_PASSWORD})
        assert ok.status_code == 200
        assert "password_hash" not in ok.json()["user"]
        assert client.get("/auth/session").json() == {"authenticated": True}

        client.post("/auth/logout")
        assert client.get("/sites").status_code == 401

    def test_recovery_flow(self, client):
        assert client.post("/auth/recovery/request", json={"email": settings.ADMIN_EMAIL}).json()["step"] == "otp"
        assert client.post("/auth/recovery/verify", json={"otp": "123456"}).json()["step"] == "new-password"
        assert client.post("/auth/recovery/reset", json={"new_password": "fresh-key-99"}).status_code == 200

        assert client.post("/auth/login", json={"email": settings.ADMIN_EMAIL,
                                                "password": settings.ADMIN_PASSWORD}).status_code == 401
        assert client.post("/auth/login", json={"email": settings.ADMIN_EMAIL,
                                                "password": "fresh-key-99"}).status_code == 200


class TestSites:
    def test_seeded_sites_sorted(self, auth_client):
        names = [s["name"] for s in auth_client.get("/sites", params={"sort_by": "latency"}).json()["sites"]]
        assert names == ["E-Commerce Store", "Portfolio Site"]

    def test_bad_sort_option(self, auth_client):
        assert auth_client.get("/sites", params={"sort_by": "size"}).status_code == 400

    def test_add_site(self, auth_client):
        response = auth_client.post("/sites", json={"name": "My Site 1", "url": "mysite.dev", "tags": "Prod"})
        assert response.status_code == 201
        site = response.json()
        assert site["url"] == "https://mysite.dev"
        assert auth_client.get("/sites").json()["sites"][1]["id"] == site["id"]

    def test_add_site_rejects_bad_name(self, auth_client):
        response = auth_client.post("/sites", json={"name": "My Site!", "url": "https://a.com"})
        assert response.status_code == 400
        assert "alphanumeric" in response.json()["detail"]

    def test_groups(self, auth_client):
        groups = auth_client.get("/sites/groups", params={"by": "status"}).json()["groups"]
        assert set(groups) == {"online", "warning"}

    def test_details_settings_and_removal(self, auth_client):
        details = auth_client.get("/sites/2").json()
        assert details["breaches"]["latency_breach"] is True

        updated = auth_client.patch("/sites/2/settings", json={
            "thresholds": {"latency_ms": 1000, "error_rate_percent": 1.0, "uptime_percent": 98.0},
            "uptime_sla": 98.0,
        }).json()
        assert updated["breaches"]["latency_breach"] is False
        assert updated["breaches"]["sla_breach"] is False

        assert auth_client.delete("/sites/2").status_code == 200
        assert auth_client.get("/sites/2").status_code == 404

    def test_partial_thresholds_use_configured_defaults(self, auth_client):
        updated = auth_client.patch("/sites/1/settings", json={"thresholds": {"latency_ms": 200}}).json()
        assert updated["breaches"]["thresholds"] == {
            "latency_ms": 200,
            "error_rate_percent": settings.DEFAULT_ERROR_RATE_PERCENT,
            "uptime_percent": settings.DEFAULT_UPTIME_THRESHOLD,
        }
        assert updated["breaches"]["latency_breach"] is True

    def test_metrics_by_range(self, auth_client):
        data = auth_client.get("/sites/1/metrics", params={"range": "Weekly"}).json()
        assert len(data["points"]) == 7
        assert data["points"][0]["date"] == "Day 1"
        assert auth_client.get("/sites/1/metrics", params={"range": "Hourly"}).status_code == 422

    def test_stats(self, auth_client):
        stats = auth_client.get("/stats").json()
        assert stats["active_properties"] == 2
        assert stats["security_alerts"] == 1


def test_security_feeds(auth_client):
    events = auth_client.get("/security/events").json()["events"]
    assert [e["severity"] for e in events] == ["critical", "high", "medium", "low"]
    assert len(auth_client.get("/security/overview").json()["cards"]) == 4


class TestScan:
    def test_free_plan_cannot_scan(self, auth_client, fake_ai):
        assert auth_client.post("/sites/1/scan").status_code == 403
        assert fake_ai == []

    def test_scan_then_fix(self, subscribed, fake_ai):
        response = subscribed.post("/sites/1/scan")
        assert response.status_code == 200
        assert fake_ai == ["https://myshop.com"]
        assert len(response.json()["vulnerabilities"]) == 3

        stored = subscribed.get("/sites/1/analysis").json()
        assert stored["unfixed_count"] == 3

        fixed = subscribed.post("/sites/1/vulnerabilities/v1/fix")
        assert fixed.status_code == 202
        assert fixed.json()["status"] in ("fixing", "patched")
        assert subscribed.post("/sites/1/vulnerabilities/v1/fix").status_code == 409
        assert subscribed.post("/sites/1/vulnerabilities/zzz/fix").status_code == 404

    def test_fix_all_accepted(self, subscribed, fake_ai):
        subscribed.post("/sites/1/scan")
        assert subscribed.post("/sites/1/vulnerabilities/fix-all").status_code == 202

    def test_failed_scan_leaves_no_analysis(self, subscribed, monkeypatch):
        async def failing(client, url):
            raise AnalysisError("Invalid JSON response")

        monkeypatch.setattr(endpoints, "perform_ai_analysis", failing)
        response = subscribed.post("/sites/1/scan")
        assert response.status_code == 502
        assert subscribed.get("/sites/1/analysis").status_code == 404
        assert "1" not in app_state.scans_in_progress

    def test_scan_in_flight_is_rejected(self, subscribed, fake_ai):
        app_state.scans_in_progress.add("1")
        assert subscribed.post("/sites/1/scan").status_code == 409
        assert fake_ai == []


class TestBilling:
    def test_plans_listed_without_login(self, client):
        body = client.get("/plans").json()
        assert [p["id"] for p in body["plans"]] == ["free", "weekly", "monthly", "yearly"]

    def test_insufficient_funds(self, auth_client):
        response = auth_client.post("/billing/checkout", json={"plan": "yearly", "method": "wallet"})
        assert response.status_code == 402
        assert auth_client.get("/account").json()["user"]["plan"] == "free"

    def test_checkout(self, auth_client):
        response = auth_client.post("/billing/checkout", json={"plan": "monthly", "method": "wallet"})
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["plan"] == "monthly"
        assert user["wallet_balance"] == settings.ADMIN_WALLET_BALANCE - 5.0


def test_update_profile(auth_client):
    response = auth_client.patch("/account/profile", json={"address": " 1 Main St "})
    assert response.json()["user"]["address"] == "1 Main St"


class TestReports:
    def test_reports_need_paid_plan(self, auth_client):
        response = auth_client.post("/reports/print", json={"site_ids": ["1"]})
        assert response.status_code == 403

    def test_print_view(self, subscribed):
        response = subscribed.post("/reports/print", json={"site_ids": ["1", "2"], "time_range": "Monthly"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "Monthly Intelligence Report" in response.text
        assert "E-Commerce Store" in response.text and "Portfolio Site" in response.text

    def test_empty_selection(self, subscribed):
        assert subscribed.post("/reports/print", json={"site_ids": []}).status_code == 400

    def test_single_site_audit(self, auth_client):
        response = auth_client.get("/sites/1/audit")
        assert response.status_code == 200
        assert "https://myshop.com" in response.text
