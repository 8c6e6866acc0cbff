"""Refresh coordinator: fetches, merges and persists package updates."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional

from .app.backend import CarrierAdapter
from .app.models import FetchResult, Package, PackageStatus
from .app.status import apply_events
from .carriers import ProviderRegistry
from .const import DEFAULT_FETCH_TIMEOUT, DEFAULT_WORKERS
from .datastore import Datastore
from .exceptions import FetchError, NoAdapterFound, Transient

_LOGGER = logging.getLogger(__name__)


class Outcome(str, Enum):
    """What happened to one package during a refresh."""

    UPDATED = "updated"
    UNCHANGED = "unchanged (terminal)"
    SKIPPED = "skipped (transient failure)"
    ATTENTION = "needs attention"


@dataclass
class PackageResult:
    """Per-package line of a refresh report."""

    tracking_number: str
    outcome: Outcome
    status: PackageStatus
    new_events: int = 0
    message: Optional[str] = None
    changed: bool = True


@dataclass
class RefreshReport:
    """Summary of one refresh over the working set."""

    results: List[PackageResult] = field(default_factory=list)

    def by_outcome(self) -> Dict[Outcome, List[PackageResult]]:
        grouped: Dict[Outcome, List[PackageResult]] = {outcome: [] for outcome in Outcome}
        for result in self.results:
            grouped[result.outcome].append(result)
        return grouped

    def get(self, tracking_number: str) -> Optional[PackageResult]:
        for result in self.results:
            if result.tracking_number == tracking_number:
                return result
        return None

    def summary(self) -> str:
        """Human readable report, one line per package plus totals."""
        lines = []
        for result in self.results:
            line = f"{result.tracking_number}: {result.outcome.value} [{result.status.value}]"
            if result.outcome == Outcome.UPDATED:
                line += f" +{result.new_events} events" if result.changed else " no changes"
            if result.message:
                line += f" - {result.message}"
            lines.append(line)

        grouped = self.by_outcome()
        lines.append(
            "{} updated, {} unchanged, {} skipped, {} need attention".format(
                len(grouped[Outcome.UPDATED]),
                len(grouped[Outcome.UNCHANGED]),
                len(grouped[Outcome.SKIPPED]),
                len(grouped[Outcome.ATTENTION]),
            )
        )
        return "\n".join(lines)


class RefreshCoordinator:
    """Class to manage refreshing tracked packages."""

    def __init__(
        self,
        registry: ProviderRegistry,
        datastore: Optional[Datastore] = None,
        max_workers: int = DEFAULT_WORKERS,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        stale_after: Optional[timedelta] = None,
    ) -> None:
        """Initialize coordinator.

        Args:
            registry: Resolves packages to carrier adapters
            datastore: Store read and written by update()
            max_workers: Maximum number of concurrent carrier fetches
            fetch_timeout: Seconds before a fetch counts as a transient failure
            stale_after: Halt packages whose newest event is older than this
        """
        self.registry = registry
        self.datastore = datastore
        self.max_workers = max(1, max_workers)
        self.fetch_timeout = fetch_timeout
        self.stale_after = stale_after

    async def _fetch(self, semaphore: asyncio.Semaphore, adapter: CarrierAdapter, package: Package):
        """Fetch one package; returns a FetchResult or the exception raised."""
        async with semaphore:
            try:
                return await asyncio.wait_for(
                    adapter.fetch(package.tracking_number), timeout=self.fetch_timeout
                )
            except asyncio.TimeoutError:
                return Transient(f"Timed out after {self.fetch_timeout}s")
            except FetchError as err:
                return err
            except Exception as err:
                _LOGGER.exception("Unexpected error fetching %s", package.tracking_number)
                return FetchError(f"Unexpected error: {err}")

    async def refresh_all(self, packages: List[Package], include_all: bool = False) -> RefreshReport:
        """Refresh packages in memory.

        Terminal packages are skipped unless include_all is set. Fetches run
        concurrently; results are applied one package at a time in the
        original order. Failed packages are left exactly as they were.

        Args:
            packages: The working set, mutated in place
            include_all: Also refresh DELIVERED and HALTED packages

        Returns:
            RefreshReport with one entry per package, in input order
        """
        semaphore = asyncio.Semaphore(self.max_workers)
        results: Dict[str, PackageResult] = {}
        pending = []

        for package in packages:
            if package.is_terminal and not include_all:
                results[package.tracking_number] = PackageResult(
                    package.tracking_number, Outcome.UNCHANGED, package.status
                )
                continue
            try:
                carrier, adapter = self.registry.resolve(package)
            except NoAdapterFound as err:
                _LOGGER.warning("Skipping %s: %s", package.tracking_number, err)
                results[package.tracking_number] = PackageResult(
                    package.tracking_number, Outcome.ATTENTION, package.status, message=str(err)
                )
                continue
            pending.append((package, carrier, adapter))

        fetched = await asyncio.gather(
            *(self._fetch(semaphore, adapter, package) for package, _, adapter in pending)
        )

        now = datetime.now(timezone.utc)
        for (package, carrier, _), outcome in zip(pending, fetched):
            results[package.tracking_number] = self._apply(package, carrier, outcome, now, include_all)

        report = RefreshReport([results[package.tracking_number] for package in packages])
        grouped = report.by_outcome()
        _LOGGER.info(
            "Refreshed %d packages: %d updated, %d skipped, %d need attention",
            len(packages),
            len(grouped[Outcome.UPDATED]),
            len(grouped[Outcome.SKIPPED]),
            len(grouped[Outcome.ATTENTION]),
        )
        return report

    def _apply(self, package: Package, carrier, outcome, now: datetime, force: bool) -> PackageResult:
        """Fold one fetch outcome into its package."""
        if isinstance(outcome, FetchError) and outcome.retryable:
            _LOGGER.warning("Transient error updating %s (will retry): %s", package.tracking_number, outcome)
            return PackageResult(
                package.tracking_number, Outcome.SKIPPED, package.status, message=str(outcome)
            )
        if isinstance(outcome, FetchError):
            _LOGGER.error("Error updating %s: %s", package.tracking_number, outcome)
            return PackageResult(
                package.tracking_number, Outcome.ATTENTION, package.status, message=str(outcome)
            )

        result: FetchResult = outcome
        before = len(package.events)
        package.carrier = carrier
        package.meta.update(result.meta)
        changed = apply_events(package, result.events, now=now, stale_after=self.stale_after, force=force)
        return PackageResult(
            package.tracking_number,
            Outcome.UPDATED,
            package.status,
            new_events=len(package.events) - before,
            changed=changed,
        )

    async def update(self, include_all: bool = False) -> RefreshReport:
        """Load the datastore, refresh every eligible package and save once.

        Per-package failures are recorded in the report; the packages that
        did refresh are still written. Datastore errors propagate.
        """
        if self.datastore is None:
            raise ValueError("RefreshCoordinator.update() needs a datastore")
        packages = self.datastore.load()
        report = await self.refresh_all(packages, include_all=include_all)
        self.datastore.save(packages)
        return report
