"""Runtime settings resolved from flags and the environment."""

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional

import voluptuous as vol

from .const import (
    APP_NAME,
    DATASTORE_FILENAME,
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_STALE_DAYS,
    DEFAULT_WORKERS,
    ENV_API_KEY,
    ENV_DATASTORE,
    ENV_LOG_LEVEL,
    ENV_STALE_DAYS,
    ENV_TIMEOUT,
    ENV_WORKERS,
)
from .exceptions import ConfigError

_LOGGER = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

ENV_SCHEMA = vol.Schema(
    {
        vol.Optional(ENV_DATASTORE): vol.All(str, vol.Length(min=1)),
        vol.Optional(ENV_API_KEY): str,
        vol.Optional(ENV_WORKERS, default=DEFAULT_WORKERS): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=32)
        ),
        vol.Optional(ENV_TIMEOUT, default=DEFAULT_FETCH_TIMEOUT): vol.All(
            vol.Coerce(float), vol.Range(min=1)
        ),
        vol.Optional(ENV_STALE_DAYS, default=DEFAULT_STALE_DAYS): vol.All(
            vol.Coerce(int), vol.Range(min=0)
        ),
        vol.Optional(ENV_LOG_LEVEL, default=DEFAULT_LOG_LEVEL): vol.All(
            vol.Upper, vol.In(LOG_LEVELS)
        ),
    },
    extra=vol.REMOVE_EXTRA,
)


@dataclass
class Settings:
    """Settings for one invocation."""

    datastore_path: Path
    api_key: Optional[str] = None
    workers: int = DEFAULT_WORKERS
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    stale_days: int = DEFAULT_STALE_DAYS
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def stale_after(self) -> Optional[timedelta]:
        """Staleness threshold, None when disabled."""
        return timedelta(days=self.stale_days) if self.stale_days else None


def default_datastore_path(environ: Mapping[str, str]) -> Path:
    """Per-user default location of the datastore."""
    data_home = environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(data_home) / APP_NAME / DATASTORE_FILENAME


def resolve_datastore_path(flag: Optional[str], environ: Mapping[str, str]) -> Path:
    """Pick the datastore path: explicit flag, then environment, then default."""
    if flag:
        return Path(flag).expanduser()
    if environ.get(ENV_DATASTORE):
        return Path(environ[ENV_DATASTORE]).expanduser()
    return default_datastore_path(environ)


def load_settings(
    datastore_flag: Optional[str] = None, environ: Optional[Mapping[str, str]] = None
) -> Settings:
    """Build Settings from flags and environment variables.

    Raises:
        ConfigError: An environment variable has an invalid value
    """
    environ = os.environ if environ is None else environ
    try:
        values = ENV_SCHEMA(dict(environ))
    except vol.Invalid as err:
        raise ConfigError(f"Invalid configuration: {err}") from err

    settings = Settings(
        datastore_path=resolve_datastore_path(datastore_flag, environ),
        api_key=values.get(ENV_API_KEY) or None,
        workers=values[ENV_WORKERS],
        fetch_timeout=values[ENV_TIMEOUT],
        stale_days=values[ENV_STALE_DAYS],
        log_level=values[ENV_LOG_LEVEL],
    )
    _LOGGER.debug("Using datastore %s", settings.datastore_path)
    return settings
