"""
kiosk-cache: offline license and media cache for a karaoke kiosk.

This package keeps the licensing state and the video library of a kiosk
usable without network access, while treating the remote service as the
source of truth whenever it can be reached.

Architecture:
    Two engines share one explicitly constructed local store:

    Activation reconciler (activation/):
        - Validate the activation key against the remote service
        - Merge the fresh record into the local snapshot (remote wins)
        - When offline, decay the last snapshot by elapsed time

    Media synchronizer (library/):
        - Diff the remote catalog against local files and index
        - Download missing videos in bounded batches
        - Reindex videos found on disk but missing from the index

Modules:
    core/        - Configuration, SQLite store, logging, exceptions, files
    remote/      - aiohttp client for the remote service and its records
    activation/  - Activation models and reconciler
    library/     - Track/sync models and media synchronizer
    app.py       - KioskCache application context (command surface)
    cli.py       - Command-line interface

Usage:
    Command Line:
        kiosk-cache activate ABCD-1234
        kiosk-cache sync --until-done
        kiosk-cache status

    Python API:
        from kiosk_cache import KioskCache, load_config, setup_logging

        config = load_config()
        setup_logging(config.storage.logs_dir)

        async with KioskCache.from_config(config) as app:
            status = await app.query_activation_status()
            outcome = await app.download_pending_batch()

Dependencies:
    - aiohttp: Remote service client
    - pyyaml: Configuration file parsing
    - python-dotenv: Credentials from .env files
    - click / rich-click: CLI and colored help
    - rich: Progress bars and tables
    - tqdm: Log output that coexists with progress bars
"""

__version__ = "0.1.0"
__author__ = "kiosk-cache"
__license__ = "MIT"

# Convenience imports for common usage
from kiosk_cache.core import (
    Config,
    ConfigError,
    KioskCacheError,
    LocalStore,
    NotFoundError,
    RemoteError,
    StoreUnavailableError,
    get_logger,
    load_config,
    setup_logging,
)
from kiosk_cache.app import KioskCache

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "LocalStore",
    "setup_logging",
    "get_logger",
    # Exceptions
    "KioskCacheError",
    "ConfigError",
    "StoreUnavailableError",
    "RemoteError",
    "NotFoundError",
    # Application
    "KioskCache",
]
