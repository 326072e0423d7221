"""
Exception classes for kiosk-cache.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus an optional details
dictionary, so callers can log context without parsing strings.

Exception Hierarchy:
    KioskCacheError (base)
        ConfigError - Configuration file issues
        StoreUnavailableError - Local SQLite store cannot be opened/read/written
        RemoteError - Remote authority failures (base for the four below)
            NotConfiguredError - Remote URL or API key missing
            NetworkFailureError - Transport error or timeout
            RemoteRejectedError - Non-2xx HTTP response
            MalformedResponseError - Payload is not the expected shape
        NotFoundError - Requested track/asset does not exist locally

Partial batch failures are NOT exceptions: they are reported through the
``errors`` list of DownloadOutcome / ReindexOutcome.
"""


class KioskCacheError(Exception):
    """
    Base exception for all kiosk-cache errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all kiosk-cache errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., code, URL).

    Example:
        try:
            app.download_pending_batch()
        except KioskCacheError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'code': Track code involved in the error
                     - 'url': URL that caused the error
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(KioskCacheError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - config.yaml not found
        - config.yaml has invalid YAML syntax
        - Required fields missing (storage.data_dir)
        - Invalid field values (e.g., non-positive batch size)

    Missing remote credentials are NOT a configuration error: the
    application still works offline, and the gateway raises
    NotConfiguredError when a remote call is attempted.

    Example:
        raise ConfigError(
            "'storage.data_dir' must be a non-empty string",
            details={'field': 'storage.data_dir'}
        )
    """
    pass


class StoreUnavailableError(KioskCacheError):
    """
    Raised when the local SQLite store cannot be opened, read, or written.

    Store failures always propagate to the caller. They are never folded
    into an offline fallback, because the offline fallback itself depends
    on the store.

    Common causes:
        - Data directory missing or not writable
        - Database file corrupted or locked
        - Disk full
        - Schema version mismatch

    Example:
        raise StoreUnavailableError(
            "Failed to insert track: disk I/O error",
            details={'code': '01009'}
        )
    """
    pass


class RemoteError(KioskCacheError):
    """
    Base class for failures talking to the remote authority.

    The activation reconciler treats every RemoteError as "remote
    unavailable" during status queries and falls back to offline decay.
    The media synchronizer treats a RemoteError while fetching the
    catalog as fatal for DownloadBatch and non-fatal for reindex.

    Attributes:
        reason: Short machine-friendly classification
                ("not-configured", "network", "rejected", "malformed").
    """

    reason = "remote"


class NotConfiguredError(RemoteError):
    """
    Raised when a remote call is attempted without a URL or API key.

    Example:
        raise NotConfiguredError("Remote service not configured")
    """

    reason = "not-configured"


class NetworkFailureError(RemoteError):
    """
    Raised on transport failures: DNS, refused connection, reset, or timeout.

    Example:
        raise NetworkFailureError(
            "Request timed out after 10s",
            details={'url': 'https://example.supabase.co/rest/v1/musicas'}
        )
    """

    reason = "network"


class RemoteRejectedError(RemoteError):
    """
    Raised when the remote authority answers with a non-2xx HTTP status.

    Attributes:
        status: The HTTP status code returned by the server.

    Example:
        raise RemoteRejectedError(
            "Catalog request failed with HTTP 401",
            status=401,
            details={'body': 'Invalid API key'}
        )
    """

    reason = "rejected"

    def __init__(self, message: str, status: int, details: dict | None = None) -> None:
        """
        Initialize the rejection error.

        Args:
            message: Human-readable error description.
            status: HTTP status code returned by the server.
            details: Optional dictionary with additional context.
        """
        super().__init__(message, details)
        self.status = status


class MalformedResponseError(RemoteError):
    """
    Raised when a response body is not valid JSON or lacks required fields.

    Example:
        raise MalformedResponseError(
            "Catalog entry missing 'codigo'",
            details={'entry': {...}}
        )
    """

    reason = "malformed"


class NotFoundError(KioskCacheError):
    """
    Raised when a requested track or media file does not exist locally.

    Used by asset path lookups after all candidate code forms and
    recognized extensions have been tried.

    Example:
        raise NotFoundError(
            "Video not found for code 1009",
            details={'code': '1009'}
        )
    """
    pass
