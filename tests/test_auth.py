"""Tests for the simulated authentication and password recovery flow."""

import json

import bcrypt
import pytest

from site_sentinel.config import settings
from site_sentinel.errors import AuthenticationError, RecoveryError
from site_sentinel.services import auth
from site_sentinel.state import app_state


def test_login_with_default_credentials(user):
    logged_in = auth.login(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
    assert logged_in is user
    assert app_state.session_active is True


def test_login_email_is_case_insensitive(user):
    auth.login(settings.ADMIN_EMAIL.upper(), settings.ADMIN_PASSWORD)
    assert app_state.session_active is True


@pytest.mark.parametrize("email,password", [
    ("someone@else.io", "sentinel-admin"),
    ("admin@gmtsss.io", "wrong-password"),
    ("admin@gmtsss.io", "SENTINEL-ADMIN"),
])
def test_login_failure_is_generic(user, email, password):
    with pytest.raises(AuthenticationError) as exc:
        auth.login(email, password)
    assert str(exc.value) == auth.LOGIN_FAILED_MESSAGE
    assert app_state.session_active is False


def test_logout_clears_session(user):
    auth.login(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
    auth.logout()
    assert app_state.session_active is False


def test_store_never_holds_plaintext_password(user):
    auth.login(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
    with open(settings.STORE_FILE, encoding="utf-8") as f:
        raw = f.read()
    assert settings.ADMIN_PASSWORD not in raw
    stored = json.loads(raw)
    assert stored["sentinel_session"] is True
    assert "password" not in stored["sentinel_user"]


def test_password_hash_is_bcrypt_and_salted(user):
    first = auth.hash_password("same-secret")
    second = auth.hash_password("same-secret")
    assert first.startswith("$2b$")
    assert first != second
    assert bcrypt.checkpw(b"same-secret", first.encode())
    assert "password_salt" not in user.model_dump()


def test_unreadable_stored_hash_rejects_login(user):
    user.password_hash = "not-a-bcrypt-hash"
    with pytest.raises(AuthenticationError):
        auth.login(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)


def test_overlong_password_rejects_login(user):
    with pytest.raises(AuthenticationError):
        auth.login(settings.ADMIN_EMAIL, "x" * 100)


class TestPasswordRecovery:
    def run_reset(self, new_password: str):
        auth.request_reset(settings.ADMIN_EMAIL)
        auth.verify_reset_token(settings.PASSWORD_RESET_TOKEN)
        auth.reset_password(new_password)

    def test_reset_changes_accepted_password(self, user):
        self.run_reset("brand-new-key")

        with pytest.raises(AuthenticationError):
            auth.login(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
        auth.login(settings.ADMIN_EMAIL, "brand-new-key")
        assert app_state.session_active is True

    def test_unknown_email(self, user):
        with pytest.raises(RecoveryError, match="Entity not found"):
            auth.request_reset("ghost@nowhere.io")

    def test_wrong_token(self, user):
        auth.request_reset(settings.ADMIN_EMAIL)
        with pytest.raises(RecoveryError, match="Invalid Token"):
            auth.verify_reset_token("000000")
        assert app_state.recovery_step == "otp"

    def test_short_password_rejected(self, user):
        auth.request_reset(settings.ADMIN_EMAIL)
        auth.verify_reset_token(settings.PASSWORD_RESET_TOKEN)
        with pytest.raises(RecoveryError, match="at least 8"):
            auth.reset_password("short")
        auth.login(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)

    def test_password_beyond_bcrypt_limit_rejected(self, user):
        auth.request_reset(settings.ADMIN_EMAIL)
        auth.verify_reset_token(settings.PASSWORD_RESET_TOKEN)
        with pytest.raises(RecoveryError, match="cannot exceed 72"):
            auth.reset_password("k" * 73)

    def test_steps_cannot_be_skipped(self, user):
        with pytest.raises(RecoveryError):
            auth.verify_reset_token(settings.PASSWORD_RESET_TOKEN)
        with pytest.raises(RecoveryError):
            auth.reset_password("long-enough-key")
