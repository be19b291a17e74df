"""
Runtime settings, read from the environment (and a local .env file).
"""
import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

BROADCAST_TARGET = "Todos"

DEFAULT_DATABASE_NAME = "chat"
DEFAULT_SWEEP_INTERVAL = 15  # seconds between sweep cycles
DEFAULT_STALE_AFTER = 10  # seconds without heartbeat before eviction
DEFAULT_PORT = 8000


def _env_number(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Invalid {name} '{raw}'. Falling back to {default}.")
        return default
    if value <= 0:
        logger.warning(f"{name} must be positive, got {raw}. Falling back to {default}.")
        return default
    return value


class Settings:
    """Server settings resolved once at startup."""

    def __init__(
        self,
        database_url: str = None,
        database_name: str = DEFAULT_DATABASE_NAME,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        stale_after: float = DEFAULT_STALE_AFTER,
        log_level: str = "INFO",
        port: int = DEFAULT_PORT,
    ):
        self.database_url = database_url
        self.database_name = database_name
        self.sweep_interval = sweep_interval
        self.stale_after = stale_after
        self.log_level = log_level
        self.port = port

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL") or None,
            database_name=os.getenv("DATABASE_NAME") or DEFAULT_DATABASE_NAME,
            sweep_interval=_env_number("SWEEP_INTERVAL", DEFAULT_SWEEP_INTERVAL),
            stale_after=_env_number("STALE_AFTER", DEFAULT_STALE_AFTER),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            port=int(_env_number("PORT", DEFAULT_PORT)),
        )
