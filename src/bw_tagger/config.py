"""Configuration loader and typed settings for the black & white tagger."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy.engine import URL

from bw_tagger.errors import ConfigError

DEFAULT_CONFIG_PATH = Path("./config.yml")
DEFAULT_MYSQL_PORT = 3306
DEFAULT_GRAYSCALE_TOLERANCE = 0.1
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_PAGE_SIZE = 100
DEFAULT_PAGE_DELAY = 0.1


@dataclass
class DatabaseConfig:
    """Connection settings for the Lychee MySQL database."""

    host: str = ""
    port: int = DEFAULT_MYSQL_PORT
    username: str = ""
    password: str = ""
    database: str = ""
    driver: str = "mysql+pymysql"

    def url(self) -> URL:
        """Return the SQLAlchemy URL for this database."""

        return URL.create(
            self.driver,
            username=self.username,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.database,
            query={"charset": "utf8mb4"},
        )


@dataclass
class Settings:
    """Top-level application settings."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    grayscale_tolerance: float = DEFAULT_GRAYSCALE_TOLERANCE
    image_base_url: str = ""
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    page_size: int = DEFAULT_PAGE_SIZE
    page_delay: float = DEFAULT_PAGE_DELAY


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    return {}


def _resolve_config_path(config_path: Path | str | None) -> Path:
    """Determine which config file to load, honoring overrides."""

    if config_path:
        return Path(config_path).expanduser()

    env_override = os.getenv("BW_TAGGER_CONFIG")
    if env_override:
        return Path(env_override).expanduser()

    return DEFAULT_CONFIG_PATH


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _read_string(raw: dict[str, Any], key: str, label: str) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ConfigError(f"{label} must be a string")
    return str(value)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from a YAML file and validate required options.

    Unlike a best-effort loader, every problem here is fatal: a missing file,
    unparsable YAML, a document that is not a mapping, a wrongly typed value or
    a missing required option raises :class:`ConfigError`.
    """

    path = _resolve_config_path(config_path)
    try:
        with path.open("r", encoding="utf-8") as fp:
            raw: Any = yaml.safe_load(fp) or {}
    except OSError as exc:
        raise ConfigError(f"failed to read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse config file {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"config file {path} must contain a mapping")

    settings = Settings()

    database_raw = _as_dict(raw.get("database"))
    db_cfg = settings.database
    for key in ("host", "username", "password", "database", "driver"):
        value = _read_string(database_raw, key, f"database.{key}")
        if value is not None:
            setattr(db_cfg, key, value)
    port = database_raw.get("port")
    if port is not None:
        if not isinstance(port, int) or isinstance(port, bool) or port < 0:
            raise ConfigError("database.port must be a positive integer")
        # A zero port means "use the MySQL default".
        db_cfg.port = port or DEFAULT_MYSQL_PORT

    tolerance = raw.get("grayscale_tolerance")
    if tolerance is not None:
        if not _is_number(tolerance) or not 0.0 <= float(tolerance) <= 1.0:
            raise ConfigError("grayscale_tolerance must be a number between 0 and 1")
        settings.grayscale_tolerance = float(tolerance)

    base_url = _read_string(raw, "image_base_url", "image_base_url")
    if base_url is not None:
        settings.image_base_url = base_url

    timeout = raw.get("http_timeout")
    if timeout is not None:
        if not _is_number(timeout) or timeout <= 0:
            raise ConfigError("http_timeout must be a positive number")
        settings.http_timeout = float(timeout)

    page_size = raw.get("page_size")
    if page_size is not None:
        if not isinstance(page_size, int) or isinstance(page_size, bool) or page_size <= 0:
            raise ConfigError("page_size must be a positive integer")
        settings.page_size = page_size

    page_delay = raw.get("page_delay")
    if page_delay is not None:
        if not _is_number(page_delay) or page_delay < 0:
            raise ConfigError("page_delay must be a non-negative number")
        settings.page_delay = float(page_delay)

    if not db_cfg.host:
        raise ConfigError("database host is required")
    if not db_cfg.username:
        raise ConfigError("database username is required")
    if not db_cfg.database:
        raise ConfigError("database name is required")
    if not settings.image_base_url:
        raise ConfigError("image_base_url is required")

    return settings


__all__ = [
    "DatabaseConfig",
    "Settings",
    "load_settings",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_GRAYSCALE_TOLERANCE",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_PAGE_DELAY",
]
