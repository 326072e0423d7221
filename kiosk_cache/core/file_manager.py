"""
File management for kiosk-cache.

This module owns the on-disk layout of the media library. Media files are
named after their track code so the index can always be rebuilt from the
directory contents (see MediaSynchronizer.reindex_tracks).

Architecture:
    data_dir/
    ├── db.sqlite
    ├── media/                  # One file per track, named by code
    │   ├── 01009.mp4
    │   ├── 01010.mp4
    │   └── 02001.webm
    └── logs/
        └── ...

File Naming:
    {code}{ext}, where ext comes from the asset URL path and defaults to
    .mp4. Only recognized video extensions are considered media.

Usage:
    from kiosk_cache.core.file_manager import FileManager

    fm = FileManager(media_dir)
    dest = fm.get_media_path("01009", "https://.../01009.mp4")
    existing = fm.find_media("1009")   # tries 1009, 01009 across extensions
"""

import re
from pathlib import Path
from urllib.parse import unquote, urlparse

from kiosk_cache.utils import code_candidates


# Recognized media extensions, in lookup priority order
MEDIA_EXTENSIONS = (".mp4", ".mkv", ".avi", ".webm", ".mov", ".wmv")
DEFAULT_EXTENSION = ".mp4"

# Suffix of in-progress downloads; never treated as media
PARTIAL_SUFFIX = ".part"

# Characters that are invalid in filenames on various operating systems
_INVALID_CHARS_PATTERN = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

# Maximum filename length (conservative for cross-platform compatibility)
_MAX_FILENAME_LENGTH = 200


def sanitize_filename(name: str) -> str:
    """
    Sanitize a string for use in a filename.

    Behavior:
        - Replaces invalid characters with underscores
        - Strips leading/trailing whitespace and dots
        - Truncates to maximum length
        - Returns "Unknown" if result is empty
    """
    if not name:
        return "Unknown"

    result = _INVALID_CHARS_PATTERN.sub("_", name)

    # Dots at start can hide files on Unix
    result = result.strip(" .")

    if len(result) > _MAX_FILENAME_LENGTH:
        result = result[:_MAX_FILENAME_LENGTH].rstrip(" .")

    return result if result else "Unknown"


def extension_from_url(url: str) -> str:
    """
    Return the media extension of an asset URL, or DEFAULT_EXTENSION.

    Example:
        extension_from_url("https://cdn/x/01009.WEBM?token=abc")
        # Returns: ".webm"
    """
    suffix = Path(unquote(urlparse(url).path)).suffix.lower()
    return suffix if suffix in MEDIA_EXTENSIONS else DEFAULT_EXTENSION


class FileManager:
    """
    Manages the flat media directory.

    Attributes:
        media_dir: Directory holding one media file per track code.
    """

    def __init__(self, media_dir: Path) -> None:
        """
        Initialize FileManager.

        Creates media_dir if it doesn't exist.
        """
        self.media_dir = media_dir
        self.media_dir.mkdir(parents=True, exist_ok=True)

    def get_media_filename(self, code: str, url: str | None = None) -> str:
        """
        Deterministic file name for a track code.

        Example:
            get_media_filename("01009", "https://cdn/videos/abc.mkv")
            # Returns: "01009.mkv"
        """
        ext = extension_from_url(url) if url else DEFAULT_EXTENSION
        return f"{sanitize_filename(code)}{ext}"

    def get_media_path(self, code: str, url: str | None = None) -> Path:
        return self.media_dir / self.get_media_filename(code, url)

    def find_media(self, code: str) -> Path | None:
        """
        Locate the media file for a code.

        Tries every candidate form of the code against every recognized
        extension; the first existing file wins.

        Returns:
            Path of the file, or None if no candidate exists.
        """
        for candidate in code_candidates(code):
            stem = sanitize_filename(candidate)
            for ext in MEDIA_EXTENSIONS:
                path = self.media_dir / f"{stem}{ext}"
                if path.is_file():
                    return path
        return None

    def media_exists(self, code: str) -> bool:
        return self.find_media(code) is not None

    def scan_media_files(self) -> list[Path]:
        """
        List recognized media files in the media directory, sorted by name.

        Partial downloads and unrelated files are ignored.
        """
        if not self.media_dir.exists():
            return []
        return sorted(
            path
            for path in self.media_dir.iterdir()
            if path.is_file() and path.suffix.lower() in MEDIA_EXTENSIONS
        )

    def get_media_file_count(self) -> int:
        return len(self.scan_media_files())

    def get_total_size_bytes(self) -> int:
        """Get total size of media files on disk."""
        return sum(path.stat().st_size for path in self.scan_media_files())

    def remove_media(self, path: Path) -> bool:
        """
        Delete a media file if it exists.

        Returns:
            True if a file was removed.
        """
        if path.exists():
            path.unlink()
            return True
        return False
