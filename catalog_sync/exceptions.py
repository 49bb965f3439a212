"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class CatalogSyncError(Exception):
    """Base exception for all application-specific errors."""


class StoreUnavailable(CatalogSyncError):
    """
    Raised when the local persistent store cannot be opened or has been closed.
    The application can still run network-only.
    """


class WriteFailed(CatalogSyncError):
    """Raised when a transactional write to the persistent store fails."""


class CacheWriteFailed(CatalogSyncError):
    """Raised when the catalog snapshot could not be persisted."""


class RemoteFetchFailed(CatalogSyncError):
    """Raised when the remote version or catalog rows cannot be fetched or parsed."""


class NoCatalogAvailable(CatalogSyncError):
    """Raised when the remote catalog is unreachable and nothing is cached."""


class MediaProbeFailed(CatalogSyncError):
    """Raised when the freshness probe for a media URL fails."""


class MediaDownloadFailed(CatalogSyncError):
    """Raised when a media payload download fails or returns a non-2xx status."""


class ConfigurationError(CatalogSyncError):
    """Raised for issues related to configuration loading or validation."""
