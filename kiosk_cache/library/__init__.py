"""
Local media library for kiosk-cache.

    - models: LocalTrackRecord, UsageHistoryRecord and sync outcomes
    - synchronizer: Batched downloads and reindexing against the catalog
"""

from kiosk_cache.library.models import (
    DownloadOutcome,
    LocalTrackRecord,
    OfflineStatus,
    ReindexOutcome,
    UsageHistoryRecord,
)
from kiosk_cache.library.synchronizer import MediaSynchronizer

__all__ = [
    "DownloadOutcome",
    "LocalTrackRecord",
    "OfflineStatus",
    "ReindexOutcome",
    "UsageHistoryRecord",
    "MediaSynchronizer",
]
