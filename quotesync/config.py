"""Runtime configuration, read from the environment (and a .env file via the CLI)."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .client import DEFAULT_REMOTE_URL
from .sync import DEFAULT_SYNC_INTERVAL

logger = logging.getLogger(__name__)

DEFAULT_FETCH_LIMIT = 5
DEFAULT_TIMEOUT = 10.0


def _default_data_dir() -> Path:
    return Path.home() / ".quotesync"


def _env_number(name: str, default, convert):
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return convert(raw.strip())
    except ValueError:
        logger.warning(f"Ignoring malformed {name}={raw!r}, using {default}")
        return default


@dataclass
class QuoteSyncConfig:
    """Configuration for the store, remote client and auto-sync timer."""

    data_dir: Path = field(default_factory=_default_data_dir)
    remote_url: str = DEFAULT_REMOTE_URL
    fetch_limit: int | None = DEFAULT_FETCH_LIMIT
    sync_interval: float = DEFAULT_SYNC_INTERVAL
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> "QuoteSyncConfig":
        """Create config from QUOTESYNC_* environment variables.

        Malformed numbers are logged and replaced by their defaults.
        """
        data_dir = os.environ.get("QUOTESYNC_DATA_DIR")
        fetch_limit = _env_number("QUOTESYNC_FETCH_LIMIT", DEFAULT_FETCH_LIMIT, int)
        return cls(
            data_dir=Path(data_dir).expanduser() if data_dir else _default_data_dir(),
            remote_url=os.environ.get("QUOTESYNC_REMOTE_URL", DEFAULT_REMOTE_URL),
            fetch_limit=fetch_limit if fetch_limit > 0 else None,
            sync_interval=_env_number(
                "QUOTESYNC_SYNC_INTERVAL", DEFAULT_SYNC_INTERVAL, float
            ),
            timeout=_env_number("QUOTESYNC_TIMEOUT", DEFAULT_TIMEOUT, float),
        )
