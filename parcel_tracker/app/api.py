"""Package bookkeeping: track, untrack and rename packages in a datastore."""

import logging
from typing import List, Optional

from ..carriers import normalize_tracking_number
from ..datastore import Datastore
from ..exceptions import PackageNotFound
from .models import Carrier, Package

_LOGGER = logging.getLogger(__name__)


def find_package(packages: List[Package], tracking_number: str) -> Optional[Package]:
    """Find a package by tracking number."""
    for package in packages:
        if package.tracking_number == tracking_number:
            return package
    return None


class ParcelTrackingAPI:
    """Explicit user operations on the tracked package collection."""

    def __init__(self, datastore: Datastore):
        """Initialize with the datastore holding the collection."""
        self._datastore = datastore

    def track(
        self,
        tracking_number: str,
        title: Optional[str] = None,
        carrier: Carrier = Carrier.UNKNOWN,
    ) -> bool:
        """Add a new package to track.

        Args:
            tracking_number: The tracking number to add
            title: Optional display name for the package
            carrier: Carrier if known, UNKNOWN to detect on first refresh

        Returns:
            True if added, False if the tracking number was already tracked
        """
        tracking_number = normalize_tracking_number(tracking_number)
        if not tracking_number:
            raise ValueError("Tracking number must not be empty")

        packages = self._datastore.load()
        if find_package(packages, tracking_number):
            _LOGGER.warning("Tracking number %s is already tracked, leaving it as is", tracking_number)
            return False

        packages.append(Package(tracking_number=tracking_number, title=title, carrier=carrier))
        self._datastore.save(packages)
        _LOGGER.info("Added tracking: %s", tracking_number)
        return True

    def untrack(self, tracking_number: str) -> Package:
        """Remove a package from tracking.

        Returns:
            The removed package

        Raises:
            PackageNotFound: The tracking number is not tracked
        """
        tracking_number = normalize_tracking_number(tracking_number)
        packages = self._datastore.load()
        package = find_package(packages, tracking_number)
        if package is None:
            raise PackageNotFound(tracking_number)

        packages.remove(package)
        self._datastore.save(packages)
        _LOGGER.info("Removed tracking: %s", tracking_number)
        return package

    def edit(self, tracking_number: str, title: Optional[str]) -> Package:
        """Set or reset the title of a package.

        Args:
            tracking_number: The tracking number
            title: The new title (None or empty resets it to the tracking number)

        Raises:
            PackageNotFound: The tracking number is not tracked
        """
        tracking_number = normalize_tracking_number(tracking_number)
        packages = self._datastore.load()
        package = find_package(packages, tracking_number)
        if package is None:
            raise PackageNotFound(tracking_number)

        package.title = title or package.tracking_number
        self._datastore.save(packages)
        _LOGGER.info("Renamed %s to %r", tracking_number, package.title)
        return package

    def get_all_packages(self) -> List[Package]:
        """Get all tracked packages without writing anything back."""
        return self._datastore.load()
