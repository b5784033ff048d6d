import json
import logging
import math
import os

from pubg_paths import data_path

LOGGER = logging.getLogger(__name__)

SETTINGS_PATH = data_path("settings.json")
API_BASE = os.getenv("PUBG_API_BASE", "https://api.pubg.com/shards")
DEFAULT_PLATFORM = os.getenv("PUBG_PLATFORM", "kakao")
TIMEZONE = os.getenv("PUBG_TZ", "Asia/Seoul")
WEB_PORT = int(os.getenv("PUBG_WEB_PORT", "8090"))

_RUNTIME_SETTINGS_CACHE: dict = {"mtime": None, "settings": {}}


def get_api_key() -> str | None:
    """Read the API key on every call so a key exported after import is picked up."""
    key = os.getenv("PUBG_API_KEY", "").strip()
    return key or None


def _settings_mtime():
    try:
        return SETTINGS_PATH.stat().st_mtime
    except FileNotFoundError:
        return None
    except OSError as e:
        LOGGER.warning("Could not stat %s: %s", SETTINGS_PATH, e)
        return None


def load_runtime_settings() -> dict:
    """Current contents of settings.json, reparsed only when its mtime changes.

    A POST to /api/settings is therefore seen by the next request, and by a
    CLI run that is already paging through matches.
    """
    mtime = _settings_mtime()
    if mtime is None:
        _RUNTIME_SETTINGS_CACHE.update(mtime=None, settings={})
        return {}
    if _RUNTIME_SETTINGS_CACHE["mtime"] == mtime:
        return _RUNTIME_SETTINGS_CACHE["settings"]

    try:
        settings = json.loads(SETTINGS_PATH.read_text())
    except (OSError, ValueError) as e:
        LOGGER.warning("Could not read %s: %s", SETTINGS_PATH, e)
        settings = {}
    if not isinstance(settings, dict):
        LOGGER.warning("%s does not hold a JSON object, ignoring it", SETTINGS_PATH)
        settings = {}

    _RUNTIME_SETTINGS_CACHE.update(mtime=mtime, settings=settings)
    return settings


def _setting_number(key: str, env_name: str, default: str, cast):
    fallback = cast(os.getenv(env_name, default))
    chosen = load_runtime_settings().get(key, fallback)
    try:
        value = cast(chosen)
    except (TypeError, ValueError):
        return fallback
    return value if value > 0 else fallback


def get_page_limit() -> int:
    """Matches requested per page."""
    return _setting_number("page_limit", "PUBG_PAGE_LIMIT", "20", int)


def get_session_gap_hours() -> float:
    return _setting_number("session_gap_hours", "PUBG_SESSION_GAP_HOURS", "3", float)


def get_request_timeout() -> float:
    return _setting_number("request_timeout", "PUBG_REQUEST_TIMEOUT", "30", float)


def load_settings() -> dict:
    return {
        "page_limit": get_page_limit(),
        "session_gap_hours": get_session_gap_hours(),
        "request_timeout": get_request_timeout(),
        "platform": DEFAULT_PLATFORM,
    }


def save_settings(settings: dict) -> dict:
    """Merge known keys into settings.json and return the effective settings."""
    current = dict(load_runtime_settings())
    for key, cast in (("page_limit", int), ("session_gap_hours", float), ("request_timeout", float)):
        if key not in settings:
            continue
        try:
            value = cast(settings[key])
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be a number") from None
        if not math.isfinite(value) or value <= 0:
            raise ValueError(f"{key} must be positive")
        current[key] = value

    SETTINGS_PATH.parent.mkdir(parents=True, exist_ok=True)
    SETTINGS_PATH.write_text(json.dumps(current, indent=2))
    _RUNTIME_SETTINGS_CACHE["mtime"] = None
    LOGGER.info("Saved settings to %s", SETTINGS_PATH)
    return load_settings()
