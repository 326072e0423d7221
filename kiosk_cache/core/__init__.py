"""
Core module for kiosk-cache.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - database: Thread-safe SQLite store for tracks, history and activation
    - file_manager: Media directory layout
    - logger: Logging system with multiple outputs
    - progress: Rich progress bar for batched syncs

Usage:
    from kiosk_cache.core import (
        Config, load_config,
        LocalStore,
        setup_logging, get_logger,
        KioskCacheError, ConfigError, StoreUnavailableError
    )
"""

from kiosk_cache.core.config import (
    Config,
    RemoteConfig,
    StorageConfig,
    SyncConfig,
    load_config,
)
from kiosk_cache.core.database import LocalStore
from kiosk_cache.core.exceptions import (
    ConfigError,
    KioskCacheError,
    MalformedResponseError,
    NetworkFailureError,
    NotConfiguredError,
    NotFoundError,
    RemoteError,
    RemoteRejectedError,
    StoreUnavailableError,
)
from kiosk_cache.core.file_manager import FileManager
from kiosk_cache.core.logger import (
    get_logger,
    log_sync_failure,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    # Config
    "Config",
    "RemoteConfig",
    "StorageConfig",
    "SyncConfig",
    "load_config",
    # Store and files
    "LocalStore",
    "FileManager",
    # Exceptions
    "KioskCacheError",
    "ConfigError",
    "StoreUnavailableError",
    "RemoteError",
    "NotConfiguredError",
    "NetworkFailureError",
    "RemoteRejectedError",
    "MalformedResponseError",
    "NotFoundError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_sync_failure",
    "shutdown_logging",
]
