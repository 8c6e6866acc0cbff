"""Errors raised by the parcel tracker."""


class ParcelTrackerError(Exception):
    """Base error for the parcel tracker."""


class ConfigError(ParcelTrackerError):
    """Error to indicate invalid configuration."""


class StorageError(ParcelTrackerError):
    """Error to indicate the datastore could not be read or written."""


class CorruptStore(StorageError):
    """Error to indicate the datastore exists but cannot be parsed."""


class PackageNotFound(ParcelTrackerError):
    """Error to indicate no tracked package has the given id."""

    def __init__(self, tracking_number: str):
        super().__init__(f"Package {tracking_number} is not tracked")
        self.tracking_number = tracking_number


class NoAdapterFound(ParcelTrackerError):
    """Error to indicate no carrier adapter matches a package."""

    def __init__(self, tracking_number: str):
        super().__init__(f"No carrier recognizes tracking number {tracking_number}")
        self.tracking_number = tracking_number


class FetchError(ParcelTrackerError):
    """Base error for a failed carrier fetch."""

    retryable = False


class NotFound(FetchError):
    """The carrier does not know the tracking number."""


class Transient(FetchError):
    """Network, timeout or rate-limit failure; worth retrying later."""

    retryable = True


class ParseError(FetchError):
    """The carrier response did not have the expected shape."""


class Unauthorized(FetchError):
    """The carrier API rejected our credentials."""
