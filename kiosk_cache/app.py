"""
Application context for kiosk-cache.

KioskCache owns the local store, the remote gateway, the media directory
and the two engines built on them, and exposes the command surface used
by the UI layer (and by the CLI in kiosk_cache.cli).

Usage:
    config = load_config()
    async with KioskCache.from_config(config) as app:
        status = await app.query_activation_status()
        if status.active:
            outcome = await app.download_pending_batch()
"""

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from kiosk_cache.activation.models import ActivationStatus, ValidationResult
from kiosk_cache.activation.reconciler import ActivationReconciler, utc_now
from kiosk_cache.core.config import DEFAULT_BATCH_SIZE, Config
from kiosk_cache.core.database import LocalStore
from kiosk_cache.core.exceptions import NotFoundError
from kiosk_cache.core.file_manager import FileManager
from kiosk_cache.core.logger import get_logger
from kiosk_cache.library.models import (
    DownloadOutcome,
    LocalTrackRecord,
    OfflineStatus,
    ReindexOutcome,
    UsageHistoryRecord,
)
from kiosk_cache.library.synchronizer import MediaSynchronizer
from kiosk_cache.remote.gateway import RemoteGateway
from kiosk_cache.utils import ensure_directory

logger = get_logger(__name__)


# Queries shorter than this (after trimming) return no results
MIN_SEARCH_LENGTH = 2


class KioskCache:
    """
    Explicitly constructed owner of all application state.

    Attributes:
        store: Local SQLite store.
        gateway: Remote authority client.
        file_manager: Media directory layout.
        activation: Activation reconciler.
        library: Media synchronizer.
    """

    def __init__(
        self,
        store: LocalStore,
        gateway: RemoteGateway,
        file_manager: FileManager,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.file_manager = file_manager
        self.activation = ActivationReconciler(store, gateway, clock=clock)
        self.library = MediaSynchronizer(store, gateway, file_manager, batch_size=batch_size)

    @classmethod
    def from_config(cls, config: Config) -> "KioskCache":
        """
        Build the context from configuration, creating directories as needed.

        Raises:
            StoreUnavailableError: If the store cannot be opened.
        """
        ensure_directory(config.storage.data_dir)
        store = LocalStore(config.storage.db_path)
        gateway = RemoteGateway.from_config(config.remote)
        file_manager = FileManager(config.storage.media_dir)

        if not gateway.is_configured:
            logger.warning("Remote service not configured, running offline only")

        return cls(store, gateway, file_manager, batch_size=config.sync.batch_size)

    async def __aenter__(self) -> "KioskCache":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.gateway.close()
        self.store.close()

    # =========================================================================
    # Activation
    # =========================================================================

    async def query_activation_status(self) -> ActivationStatus:
        return await self.activation.query_status()

    async def submit_activation_key(self, raw_key: str) -> ValidationResult:
        return await self.activation.validate_and_adopt(raw_key)

    def clear_activation(self) -> None:
        self.activation.remove_activation()

    # =========================================================================
    # Media sync
    # =========================================================================

    async def get_offline_status(self) -> OfflineStatus:
        return await self.library.get_offline_status()

    async def download_pending_batch(self, batch_size: int | None = None) -> DownloadOutcome:
        return await self.library.download_batch(batch_size)

    async def reindex_local_tracks(self) -> ReindexOutcome:
        return await self.library.reindex_tracks()

    # =========================================================================
    # Library queries
    # =========================================================================

    def search_tracks(self, query: str) -> list[LocalTrackRecord]:
        """Substring search over code, artist and title; at most 50 results."""
        if len(query.strip()) < MIN_SEARCH_LENGTH:
            return []
        return self.store.search_tracks(query)

    def lookup_track_by_code(self, code: str) -> LocalTrackRecord | None:
        return self.store.find_track(code)

    def random_track_code(self) -> str | None:
        return self.store.random_track_code()

    def record_playback(self, code: str) -> UsageHistoryRecord:
        """
        Append a playback event for code.

        When the code is indexed, the event is stored under the indexed
        code and linked to the track and its owner.
        """
        track = self.store.find_track(code)
        if track is None:
            return self.store.append_history(code.strip())
        return self.store.append_history(track.code, track_id=track.id, owner_id=track.owner_id)

    def asset_path(self, code: str) -> Path:
        """
        Path of the playable media file for code.

        Tries the media directory first (every candidate code form and
        recognized extension), then the path stored in the index.

        Raises:
            NotFoundError: If no file exists for the code.
        """
        path = self.file_manager.find_media(code)
        if path is not None:
            return path

        track = self.store.find_track(code)
        if track is not None and Path(track.local_path).is_file():
            return Path(track.local_path)

        raise NotFoundError(f"Video not found for code {code}", details={"code": code})
