"""
Media synchronizer: keeps the local media library in step with the catalog.

Three operations, all invoked on demand (there is no background scheduler):

    get_offline_status()   How much of the catalog is playable offline.
    download_batch(n)      Download up to n pending tracks and index them.
    reindex_tracks()       Index media files that are on disk but missing
                           from the store (e.g. copied in by hand, or left
                           behind by a lost database).

Pending Rule:
    A catalog entry is pending when its media file is missing from the
    media directory OR its code has no record in the store. Both checks go
    through the candidate code forms ("1009" matches "01009").

Consistency:
    A file is only kept if its record was inserted. When the insert fails
    after a successful download, the file is deleted again and the failure
    is reported per item; other items of the batch carry on.

Usage:
    sync = MediaSynchronizer(store, gateway, FileManager(media_dir))
    outcome = await sync.download_batch(3)
    print(outcome.downloaded, outcome.remaining, outcome.errors)
"""

import asyncio
from typing import TYPE_CHECKING

from kiosk_cache.core.config import DEFAULT_BATCH_SIZE
from kiosk_cache.core.exceptions import RemoteError, StoreUnavailableError
from kiosk_cache.core.file_manager import FileManager
from kiosk_cache.core.logger import get_logger, log_sync_failure
from kiosk_cache.library.models import DownloadOutcome, LocalTrackRecord, OfflineStatus, ReindexOutcome
from kiosk_cache.remote.models import CatalogEntry
from kiosk_cache.utils import code_candidates

if TYPE_CHECKING:
    from pathlib import Path

    from kiosk_cache.core.database import LocalStore
    from kiosk_cache.remote.gateway import RemoteGateway

logger = get_logger(__name__)


class MediaSynchronizer:
    """
    Diffs the remote catalog against local holdings and repairs the index.

    Attributes:
        store: Local store holding the track index.
        gateway: Remote gateway for the catalog and file downloads.
        file_manager: Layout of the media directory.
        batch_size: Default number of tracks per download_batch() call.
    """

    def __init__(
        self,
        store: "LocalStore",
        gateway: "RemoteGateway",
        file_manager: FileManager,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.file_manager = file_manager
        self.batch_size = batch_size

    # =========================================================================
    # Status
    # =========================================================================

    async def get_offline_status(self) -> OfflineStatus:
        """
        Summarize local holdings against the catalog.

        When the catalog cannot be fetched, the total falls back to the
        local count and no track is reported as online-only.

        Raises:
            StoreUnavailableError: If the local store fails.
        """
        offline_tracks = self.store.count_tracks()
        bytes_used = self.store.total_bytes()

        try:
            catalog = await self.gateway.fetch_catalog()
        except RemoteError as e:
            logger.info(f"Catalog unavailable, reporting local holdings only: {e.message}")
            return OfflineStatus(
                total_tracks=offline_tracks,
                offline_tracks=offline_tracks,
                online_only_tracks=0,
                bytes_used=bytes_used,
                catalog_reachable=False,
            )

        return OfflineStatus(
            total_tracks=len(catalog),
            offline_tracks=offline_tracks,
            online_only_tracks=max(0, len(catalog) - offline_tracks),
            bytes_used=bytes_used,
        )

    # =========================================================================
    # Download
    # =========================================================================

    def is_pending(self, entry: CatalogEntry) -> bool:
        """True if the entry's file is missing or its code is not indexed."""
        return not self.file_manager.media_exists(entry.code) or not self.store.track_exists(entry.code)

    async def pending_entries(self) -> list[CatalogEntry]:
        """
        Fetch the catalog and return its pending entries, in catalog order.

        Raises:
            RemoteError: If the catalog cannot be fetched.
            StoreUnavailableError: If the local store fails.
        """
        catalog = await self.gateway.fetch_catalog()
        return [entry for entry in catalog if self.is_pending(entry)]

    async def download_batch(self, batch_size: int | None = None) -> DownloadOutcome:
        """
        Download and index up to batch_size pending tracks.

        Items of one batch are downloaded concurrently. Per-item failures
        (download error, disk error, index insert error) are collected in
        outcome.errors and never abort the batch.

        Args:
            batch_size: Maximum tracks to download. Defaults to
                        self.batch_size.

        Returns:
            DownloadOutcome with remaining = pending before the batch
            minus tracks downloaded.

        Raises:
            ValueError: If batch_size < 1.
            RemoteError: If the catalog cannot be fetched.
            StoreUnavailableError: If the pending check cannot read the store.
        """
        if batch_size is None:
            batch_size = self.batch_size
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")

        pending = await self.pending_entries()
        batch = pending[:batch_size]

        if not batch:
            logger.debug("Nothing pending, library is up to date")
            return DownloadOutcome(downloaded=0, remaining=0)

        logger.info(f"Downloading {len(batch)} of {len(pending)} pending tracks")

        results = await asyncio.gather(*(self._download_one(entry) for entry in batch))

        outcome = DownloadOutcome()
        for error in results:
            if error is None:
                outcome.downloaded += 1
            else:
                outcome.errors.append(error)
        outcome.remaining = len(pending) - outcome.downloaded

        logger.info(
            f"Batch done: {outcome.downloaded} downloaded, "
            f"{len(outcome.errors)} failed, {outcome.remaining} remaining"
        )
        return outcome

    async def _download_one(self, entry: CatalogEntry) -> str | None:
        """
        Download one entry and index it.

        Returns:
            None on success, or an error message prefixed with the code.
        """
        dest = self.file_manager.get_media_path(entry.code, entry.asset_url)

        try:
            size = await self.gateway.download(entry.asset_url, dest)
        except RemoteError as e:
            return self._fail(entry, e.message)
        except OSError as e:
            return self._fail(entry, f"write error: {e}")

        record = LocalTrackRecord(
            id=entry.id,
            code=entry.code,
            artist=entry.artist,
            title=entry.title,
            local_path=str(dest),
            file_name=entry.file_name,
            size=size,
            duration=entry.duration,
            owner_id=entry.owner_id,
        )

        try:
            self.store.insert_track(record)
        except StoreUnavailableError as e:
            reason = f"DB error: {e.message}"
            try:
                self.file_manager.remove_media(dest)
            except OSError as remove_error:
                reason += f"; could not remove {dest.name}: {remove_error}"
            return self._fail(entry, reason)

        logger.info(f"Downloaded {entry.code}: {entry.artist} - {entry.title}")
        return None

    def _fail(self, entry: CatalogEntry, reason: str) -> str:
        log_sync_failure(
            logger,
            code=entry.code,
            title=entry.title,
            artist=entry.artist,
            url=entry.asset_url,
            error_message=reason,
        )
        return f"{entry.code}: {reason}"

    # =========================================================================
    # Reindex
    # =========================================================================

    async def reindex_tracks(self) -> ReindexOutcome:
        """
        Index media files present on disk but absent from the store.

        The code of a file is its name without extension. Only orphans that
        match a catalog entry are indexed, using the catalog's metadata and
        the on-disk size; unmatched files are left alone. The catalog is not
        fetched at all when there are no orphans.

        Returns:
            ReindexOutcome. When the catalog is unreachable, reindexed is 0
            and errors holds a single "offline: ..." note.

        Raises:
            StoreUnavailableError: If the orphan check cannot read the store.
        """
        files = self.file_manager.scan_media_files()
        outcome = ReindexOutcome(total_files=len(files))

        orphans = [path for path in files if not self.store.track_exists(path.stem)]
        if not orphans:
            logger.info(f"Reindex: all {len(files)} media files already indexed")
            return outcome

        try:
            catalog = await self.gateway.fetch_catalog()
        except RemoteError as e:
            logger.warning(f"Reindex skipped, catalog unavailable: {e.message}")
            outcome.errors.append(f"offline: {e.message}")
            return outcome

        by_code = {entry.code: entry for entry in catalog}

        for path in orphans:
            entry = self._match_catalog(path.stem, by_code)
            if entry is None:
                logger.debug(f"Reindex: no catalog entry for {path.name}, leaving it untouched")
                continue

            # Two files for one code: the first one indexed wins
            if self.store.track_exists(entry.code):
                continue

            if self._index_file(path, entry, outcome):
                outcome.reindexed += 1

        logger.info(
            f"Reindex done: {outcome.reindexed} of {len(orphans)} orphan files indexed"
        )
        return outcome

    def _match_catalog(self, code: str, by_code: dict[str, CatalogEntry]) -> CatalogEntry | None:
        for candidate in code_candidates(code):
            entry = by_code.get(candidate)
            if entry is not None:
                return entry
        return None

    def _index_file(self, path: "Path", entry: CatalogEntry, outcome: ReindexOutcome) -> bool:
        try:
            size = path.stat().st_size
            self.store.insert_track(LocalTrackRecord(
                id=entry.id,
                code=entry.code,
                artist=entry.artist,
                title=entry.title,
                local_path=str(path),
                file_name=entry.file_name,
                size=size,
                duration=entry.duration,
                owner_id=entry.owner_id,
            ))
        except (OSError, StoreUnavailableError) as e:
            reason = e.message if isinstance(e, StoreUnavailableError) else str(e)
            outcome.errors.append(f"{entry.code}: {reason}")
            log_sync_failure(
                logger,
                code=entry.code,
                title=entry.title,
                artist=entry.artist,
                url=None,
                error_message=reason,
            )
            return False

        logger.info(f"Reindexed {path.name} as {entry.code}")
        return True
