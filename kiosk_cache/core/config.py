"""
Configuration management for kiosk-cache.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml, plus the remote
credentials that may instead come from the environment or a .env file.

The configuration file contains:
    - Remote authority URL, API key and request timeout (all optional)
    - Data directory holding the SQLite store, media files and logs
    - Default batch size for media synchronization

Configuration File Location:
    By default config.yaml is read from the current working directory.
    The CLI accepts --config to point elsewhere.

Environment Variables:
    Credentials in the environment take precedence over the YAML file.
    A .env file next to config.yaml, then one in the data directory, is
    loaded first (existing environment variables are not overwritten):
        KIOSK_REMOTE_URL      (fallback: SUPABASE_URL)
        KIOSK_REMOTE_API_KEY  (fallback: SUPABASE_ANON_KEY)

Example config.yaml:
    remote:
      url: "https://project.supabase.co"
      api_key: "your_anon_key_here"
      request_timeout: 10

    storage:
      data_dir: "~/.kiosk-cache"

    sync:
      batch_size: 3
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from kiosk_cache.core.exceptions import ConfigError


# Default configuration file name (in current working directory)
CONFIG_FILENAME = "config.yaml"

# Environment variables checked for each credential, in priority order
URL_ENV_VARS = ("KIOSK_REMOTE_URL", "SUPABASE_URL")
API_KEY_ENV_VARS = ("KIOSK_REMOTE_API_KEY", "SUPABASE_ANON_KEY")

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_BATCH_SIZE = 3

DATABASE_FILENAME = "db.sqlite"
MEDIA_DIRNAME = "media"
LOGS_DIRNAME = "logs"


@dataclass(frozen=True)
class RemoteConfig:
    """
    Remote authority connection settings.

    Attributes:
        url: Base URL of the remote service, without trailing slash.
             Empty when not configured.
        api_key: API key sent as both 'apikey' and bearer token.
                 Empty when not configured.
        request_timeout: Total timeout in seconds for each REST request.
                         Kept short so offline fallback kicks in promptly.
    """
    url: str
    api_key: str
    request_timeout: float

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.api_key)


@dataclass(frozen=True)
class StorageConfig:
    """
    Local storage layout.

    Attributes:
        data_dir: Root directory for all local state (expanded, absolute).
    """
    data_dir: Path

    @property
    def db_path(self) -> Path:
        return self.data_dir / DATABASE_FILENAME

    @property
    def media_dir(self) -> Path:
        return self.data_dir / MEDIA_DIRNAME

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / LOGS_DIRNAME


@dataclass(frozen=True)
class SyncConfig:
    """
    Media synchronization settings.

    Attributes:
        batch_size: Default number of pending tracks downloaded per call.
    """
    batch_size: int


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable.

    Example:
        config = load_config()
        print(f"Data in: {config.storage.data_dir}")
        print(f"Remote configured: {config.remote.is_configured}")
    """
    remote: RemoteConfig
    storage: StorageConfig
    sync: SyncConfig


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml and the environment.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the config file is not found, has invalid YAML syntax,
                     is missing required fields, or contains invalid values.

    Behavior:
        1. Locate config file (explicit path or CWD/config.yaml)
        2. Load a sibling .env file into the environment, if present
        3. Read and parse YAML content
        4. Validate structure (required sections exist)
        5. Parse the storage section, then load <data_dir>/.env if present
        6. Parse remote and sync sections with defaults
        7. Create and return frozen Config object
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    env_file = config_path.parent / ".env"
    if env_file.exists():
        load_dotenv(env_file, override=False)

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    _validate_config(raw_config)

    storage = _parse_storage_config(raw_config["storage"])

    data_env_file = storage.data_dir / ".env"
    if data_env_file.exists():
        load_dotenv(data_env_file, override=False)

    return Config(
        remote=_parse_remote_config(raw_config.get("remote")),
        storage=storage,
        sync=_parse_sync_config(raw_config.get("sync")),
    )


def _validate_config(raw_config: dict[str, Any]) -> None:
    """
    Check that required sections exist and every present section is a mapping.

    Raises:
        ConfigError: If validation fails.
    """
    if "storage" not in raw_config:
        raise ConfigError(
            "Missing required section: 'storage'",
            details={"missing_section": "storage"}
        )

    for section in ("remote", "storage", "sync"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _first_env(names: tuple[str, ...]) -> str:
    for name in names:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return ""


def _parse_remote_config(remote_section: dict[str, Any] | None) -> RemoteConfig:
    """
    Parse the optional 'remote' section, overlaying environment credentials.

    Missing URL or key is allowed: the application runs offline-only and
    remote calls raise NotConfiguredError.

    Raises:
        ConfigError: If a present field has the wrong type, or the
                     timeout is not a positive number.
    """
    section = remote_section or {}

    values = {}
    for field in ("url", "api_key"):
        raw = section.get(field)
        if raw is not None and not isinstance(raw, str):
            raise ConfigError(
                f"'remote.{field}' must be a string",
                details={"field": f"remote.{field}"}
            )
        values[field] = (raw or "").strip()

    url = _first_env(URL_ENV_VARS) or values["url"]
    api_key = _first_env(API_KEY_ENV_VARS) or values["api_key"]

    timeout = section.get("request_timeout", DEFAULT_REQUEST_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(
            "'remote.request_timeout' must be a positive number",
            details={"field": "remote.request_timeout", "value": timeout}
        )

    return RemoteConfig(
        url=url.rstrip("/"),
        api_key=api_key,
        request_timeout=float(timeout),
    )


def _parse_storage_config(storage_section: dict[str, Any]) -> StorageConfig:
    """
    Parse the 'storage' section.

    Expands ~ and converts to an absolute Path. Does NOT create the
    directory (the application context does that on startup).

    Raises:
        ConfigError: If data_dir is missing or empty.
    """
    data_dir = storage_section.get("data_dir", "")

    if not isinstance(data_dir, str) or not data_dir.strip():
        raise ConfigError(
            "'storage.data_dir' must be a non-empty string",
            details={"field": "storage.data_dir"}
        )

    return StorageConfig(data_dir=Path(data_dir.strip()).expanduser().resolve())


def _parse_sync_config(sync_section: dict[str, Any] | None) -> SyncConfig:
    """
    Parse the optional 'sync' section. Default batch_size: 3.

    Raises:
        ConfigError: If batch_size is not a positive integer.
    """
    batch_size = DEFAULT_BATCH_SIZE

    if sync_section is not None:
        raw_batch = sync_section.get("batch_size")
        if raw_batch is not None:
            if isinstance(raw_batch, bool) or not isinstance(raw_batch, int) or raw_batch < 1:
                raise ConfigError(
                    "'sync.batch_size' must be a positive integer",
                    details={"field": "sync.batch_size", "value": raw_batch}
                )
            batch_size = raw_batch

    return SyncConfig(batch_size=batch_size)
