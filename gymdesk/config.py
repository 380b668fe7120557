import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

STORE_URL_ENV = "GYMDESK_STORE_URL"
STORE_KEY_ENV = "GYMDESK_STORE_KEY"
LOCAL_DB_ENV = "GYMDESK_LOCAL_DB"
STORE_TIMEOUT_ENV = "GYMDESK_STORE_TIMEOUT"
CHECKIN_DISPLAY_SECONDS_ENV = "GYMDESK_CHECKIN_DISPLAY_SECONDS"

DEFAULT_STORE_TIMEOUT = 10.0
DEFAULT_CHECKIN_DISPLAY_SECONDS = 5


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    store_url: Optional[str] = None
    store_key: Optional[str] = None
    local_db: Optional[str] = None
    store_timeout: float = DEFAULT_STORE_TIMEOUT
    checkin_display_seconds: int = DEFAULT_CHECKIN_DISPLAY_SECONDS

    @property
    def uses_remote_store(self) -> bool:
        return bool(self.store_url and self.store_key)


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got '{raw}'.")
    if value <= 0:
        raise ConfigError(f"{name} must be greater than zero, got '{raw}'.")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Reads settings from the environment (and a .env file, when present).

    The hosted store needs both its URL and API key. Without them a local
    SQLite path must be given instead; having neither is a startup error.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    store_url = (env.get(STORE_URL_ENV) or "").strip() or None
    store_key = (env.get(STORE_KEY_ENV) or "").strip() or None
    local_db = (env.get(LOCAL_DB_ENV) or "").strip() or None

    if bool(store_url) != bool(store_key):
        missing = STORE_KEY_ENV if store_url else STORE_URL_ENV
        raise ConfigError(f"{missing} is required when the other store setting is given.")
    if not store_url and not local_db:
        raise ConfigError(
            f"Set {STORE_URL_ENV} and {STORE_KEY_ENV} for the hosted store, "
            f"or {LOCAL_DB_ENV} for a local database."
        )

    return Settings(
        store_url=store_url.rstrip("/") if store_url else None,
        store_key=store_key,
        local_db=local_db,
        store_timeout=_number(env, STORE_TIMEOUT_ENV, DEFAULT_STORE_TIMEOUT, float),
        checkin_display_seconds=_number(
            env, CHECKIN_DISPLAY_SECONDS_ENV, DEFAULT_CHECKIN_DISPLAY_SECONDS, int
        ),
    )
