"""
Data models for the local media library and sync results.

LocalTrackRecord and UsageHistoryRecord mirror rows of the local store.
DownloadOutcome, ReindexOutcome and OfflineStatus are transient results
returned to the UI layer; all of them expose to_dict().
"""

from dataclasses import asdict, dataclass, field
from typing import Any

from kiosk_cache.utils import format_bytes_mb


@dataclass(frozen=True)
class LocalTrackRecord:
    """
    One downloaded or reindexed track.

    Attributes:
        id: Catalog identifier of the track on the remote side.
        code: Stable track code, unique in the local index
              (e.g. "01009"). This is the join key with the catalog.
        artist: Artist name.
        title: Track title.
        local_path: Absolute path of the media file on disk.
        file_name: Original file name from the catalog, if any.
        size: File size in bytes, if known.
        duration: Duration in seconds, if known.
        owner_id: Owner of the catalog entry, if any.
        synced_at: When the file was downloaded or reindexed (ISO 8601).
        created_at: Row creation time (ISO 8601).
        updated_at: Row last replace time (ISO 8601).
    """
    id: str
    code: str
    artist: str
    title: str
    local_path: str
    file_name: str | None = None
    size: int | None = None
    duration: int | None = None
    owner_id: str | None = None
    synced_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class UsageHistoryRecord:
    """One playback event. Append-only."""
    id: str
    code: str
    played_at: str
    owner_id: str | None = None
    track_id: str | None = None
    synced_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DownloadOutcome:
    """
    Result of one download batch.

    Attributes:
        downloaded: Tracks downloaded and indexed in this batch.
        remaining: Pending tracks left after this batch
                   (pending before the batch minus downloaded).
        errors: One message per failed item, prefixed with its code.
    """
    downloaded: int = 0
    remaining: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def partial_failure(self) -> bool:
        """True when the batch had at least one success and one failure."""
        return self.downloaded > 0 and bool(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "downloaded": self.downloaded,
            "remaining": self.remaining,
            "errors": list(self.errors),
        }


@dataclass
class ReindexOutcome:
    """
    Result of one reindex pass.

    Attributes:
        total_files: Recognized media files found in the media directory.
        reindexed: Orphan files that were matched and indexed.
        errors: Per-item failures, or a single "offline: ..." note when the
                catalog could not be fetched.
    """
    total_files: int = 0
    reindexed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def partial_failure(self) -> bool:
        return self.reindexed > 0 and bool(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_files": self.total_files,
            "reindexed": self.reindexed,
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class OfflineStatus:
    """
    How much of the catalog is available without network.

    Attributes:
        total_tracks: Catalog size when reachable, else the local count.
        offline_tracks: Tracks indexed locally.
        online_only_tracks: Catalog tracks not yet local (0 when offline).
        bytes_used: Sum of indexed file sizes.
        catalog_reachable: Whether the catalog could be fetched.
    """
    total_tracks: int
    offline_tracks: int
    online_only_tracks: int
    bytes_used: int
    catalog_reachable: bool = True

    @property
    def bytes_used_mb(self) -> float:
        return format_bytes_mb(self.bytes_used)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["bytes_used_mb"] = self.bytes_used_mb
        return data
