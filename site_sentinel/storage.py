# site_sentinel/storage.py
import json
import logging
import os
from typing import Optional, Tuple

from pydantic import ValidationError

from .config import settings
from .errors import StoreError
from .models import UserProfile
from .state import app_state

logger = logging.getLogger("Runner." + __name__)

SESSION_KEY = "sentinel_session"
USER_KEY = "sentinel_user"


def load_store(path: Optional[str] = None) -> Tuple[bool, Optional[UserProfile]]:
    """Reads the session flag and stored profile. Missing or corrupt data yields defaults."""
    store_file = path or settings.STORE_FILE
    if not os.path.exists(store_file):
        return False, None
    with app_state.store_lock:
        try:
            with open(store_file, "r", encoding='utf-8') as f:
                content = f.read()
        except IOError as e:
            raise StoreError(f"Failed to read store {store_file}: {e}") from e
    if not content:
        return False, None
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        logger.warning(f"Store {store_file} corrupt, using defaults.")
        return False, None
    if not isinstance(data, dict):
        logger.warning(f"Store {store_file} not an object, using defaults.")
        return False, None

    session = data.get(SESSION_KEY) in (True, "true")
    user = None
    raw_user = data.get(USER_KEY)
    if raw_user is not None:
        try:
            user = UserProfile.model_validate(raw_user)
        except ValidationError as e:
            logger.warning(
                f"Stored profile in {store_file} is invalid, ignoring: {e.error_count()} error(s).")
    return session, user


def save_store(session: bool, user: Optional[UserProfile], path: Optional[str] = None):
    store_file = path or settings.STORE_FILE
    data = {SESSION_KEY: session,
            USER_KEY: user.model_dump() if user else None}
    with app_state.store_lock:
        try:
            with open(store_file, "w", encoding='utf-8') as f:
                json.dump(data, f, indent=2, default=str)
        except IOError as e:
            logger.error(f"Failed write store {store_file}: {e}")
            raise StoreError(f"Failed to write store {store_file}: {e}") from e


def persist_state():
    """Writes the current session flag and profile from app state."""
    save_store(app_state.session_active, app_state.user)
