# site_sentinel/services/auth.py
import logging
import secrets
import uuid

import bcrypt

from ..config import settings
from ..errors import AuthenticationError, RecoveryError
from ..models import UserProfile
from ..state import app_state
from ..storage import persist_state

logger = logging.getLogger("Runner." + __name__)

LOGIN_FAILED_MESSAGE = "Unauthorized access: Credentials do not match our global database."
BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a password using bcrypt"""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(user: UserProfile, password: str) -> bool:
    encoded = password.encode('utf-8')
    if len(encoded) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, user.password_hash.encode('utf-8'))
    except ValueError:
        # Stored hash is not a bcrypt hash
        logger.warning(f"Unreadable password hash for {user.email}.")
        return False


def default_user() -> UserProfile:
    return UserProfile(
        id=uuid.uuid4().hex[:9],
        email=settings.ADMIN_EMAIL,
        name=settings.ADMIN_NAME,
        plan="free",
        wallet_balance=settings.ADMIN_WALLET_BALANCE,
        password_hash=hash_password(settings.ADMIN_PASSWORD),
    )


def current_user() -> UserProfile:
    if app_state.user is None:
        app_state.user = default_user()
    return app_state.user


def login(email: str, password: str) -> UserProfile:
    """Opens a session iff the email (case-insensitive) and password match the stored profile."""
    user = current_user()
    if email.strip().lower() != user.email.lower() or not verify_password(user, password):
        logger.warning(f"Login rejected for '{email}'.")
        raise AuthenticationError(LOGIN_FAILED_MESSAGE)
    app_state.session_active = True
    persist_state()
    logger.info(f"Session opened for {user.email}.")
    return user


def logout():
    app_state.session_active = False
    app_state.recovery_step = "email"
    persist_state()
    logger.info("Session closed.")


# --- Password Recovery ---


def request_reset(email: str):
    user = current_user()
    if email.strip().lower() != user.email.lower():
        app_state.recovery_step = "email"
        raise RecoveryError(
            "Entity not found: This identity is not registered in GMT SSS.")
    app_state.recovery_step = "otp"
    logger.info(f"Password reset requested for {user.email}.")


def verify_reset_token(otp: str):
    if app_state.recovery_step != "otp":
        raise RecoveryError("Reset sequence not started.")
    if not secrets.compare_digest(otp.strip().encode('utf-8'), settings.PASSWORD_RESET_TOKEN.encode('utf-8')):
        raise RecoveryError("Invalid Token: Neural key verification failed.")
    app_state.recovery_step = "new-password"


def reset_password(new_password: str) -> UserProfile:
    if app_state.recovery_step != "new-password":
        raise RecoveryError("Reset token not verified.")
    if len(new_password) < settings.PASSWORD_MIN_LENGTH:
        raise RecoveryError(
            f"Insecure: Neural keys must be at least {settings.PASSWORD_MIN_LENGTH} characters long.")
    if len(new_password.encode('utf-8')) > BCRYPT_MAX_BYTES:
        raise RecoveryError(f"Insecure: Neural keys cannot exceed {BCRYPT_MAX_BYTES} bytes.")
    user = current_user()
    user.password_hash = hash_password(new_password)
    app_state.recovery_step = "email"
    persist_state()
    logger.info(f"Password reset completed for {user.email}.")
    return user
