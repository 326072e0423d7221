"""
Utility functions for kiosk-cache.

This module contains helper functions used across the application:
    - code_candidates: Candidate forms of a track code (exact, padded, stripped)
    - normalize_activation_key: Canonical form of a user-entered key
    - parse_remote_timestamp: Flexible timestamp parsing for remote fields
    - ensure_directory: Create a directory if missing
    - format_bytes_mb: Convert a byte count to megabytes for display

These are pure functions with no side effects (except ensure_directory).
"""

from datetime import date, datetime, time, timezone
from pathlib import Path

from kiosk_cache.core.logger import get_logger

logger = get_logger(__name__)


# Canonical width of numeric track codes (e.g. "1009" -> "01009")
CODE_WIDTH = 5

# Naive datetime layouts accepted after RFC 3339 fails, tried in order
_NAIVE_DATETIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
)


def code_candidates(code: str) -> list[str]:
    """
    Return the candidate forms of a track code, in match priority order.

    Track codes are sometimes stored zero-padded ("01009") and sometimes
    entered or named raw ("1009"). Every place that compares codes tries
    these forms in order and takes the first match.

    Args:
        code: Track code as entered, stored, or derived from a file name.

    Returns:
        De-duplicated list: [exact, zero-padded to CODE_WIDTH, zero-stripped].
        Padding and stripping only apply to purely numeric codes.
        An empty or blank code yields an empty list.

    Example:
        >>> code_candidates("1009")
        ['1009', '01009']
        >>> code_candidates("01009")
        ['01009', '1009']
        >>> code_candidates("ABC")
        ['ABC']
    """
    exact = code.strip()
    if not exact:
        return []

    candidates = [exact]
    if exact.isdigit():
        stripped = exact.lstrip("0") or "0"
        padded = stripped.zfill(CODE_WIDTH)
        for form in (padded, stripped):
            if form not in candidates:
                candidates.append(form)

    return candidates


def normalize_activation_key(raw_key: str) -> str:
    """
    Normalize a user-entered activation key.

    Trims surrounding whitespace, uppercases, and replaces every internal
    space with a dash (two spaces become two dashes).

    Example:
        >>> normalize_activation_key("  abcd efgh ")
        'ABCD-EFGH'
    """
    return raw_key.strip().upper().replace(" ", "-")


def parse_remote_timestamp(value: str | None) -> datetime | None:
    """
    Parse a timestamp string sent by the remote authority.

    The remote side is inconsistent about formats, so parsing is an
    ordered chain of attempts. The first one that succeeds wins:
        1. ISO 8601 / RFC 3339 with offset (a trailing 'Z' is accepted)
        2. Naive datetime with fractional seconds, assumed UTC
        3. Naive datetime without fractional seconds, assumed UTC
        4. Date only, taken as the end of that day (23:59:59 UTC)

    Args:
        value: Raw timestamp text, or None.

    Returns:
        Timezone-aware UTC datetime, or None if the value is empty or no
        attempt succeeds. Unparseable values are logged at WARNING and
        treated as absent.
    """
    if value is None:
        return None

    text = value.strip()
    if not text:
        return None

    # 1. RFC 3339 with explicit offset
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        if parsed.tzinfo is not None:
            return parsed.astimezone(timezone.utc)
    except ValueError:
        pass

    # 2-3. Naive datetimes
    for fmt in _NAIVE_DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    # 4. Date only
    try:
        day = date.fromisoformat(text)
        return datetime.combine(day, time(23, 59, 59), tzinfo=timezone.utc)
    except ValueError:
        pass

    logger.warning(f"Unparseable remote timestamp ignored: {value!r}")
    return None


def ensure_directory(path: Path) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists.

    Returns:
        The same path (for chaining).

    Raises:
        OSError: If directory cannot be created (permissions, etc.).
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def format_bytes_mb(size_bytes: int) -> float:
    """Convert bytes to megabytes, rounded to two decimals."""
    return round(size_bytes / (1024 * 1024), 2)
