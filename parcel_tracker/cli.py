"""
Command-line interface for parcel-tracker.

Usage Examples:
    # Track a package, carrier detected from the number
    parcel-tracker track 1Z999AA10123456784 --title "New boots"

    # Refresh every package still on its way
    parcel-tracker update

    # Show packages, including delivered ones
    parcel-tracker list --all

    # Write an Atom feed
    parcel-tracker genfeed --outfile ~/public_html/packages.xml
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import aiohttp

from .app.api import ParcelTrackingAPI
from .app.views import feed_view, format_rows, list_view
from .carriers import ProviderRegistry, parse_carrier
from .config import Settings, load_settings
from .const import APP_NAME, KEY_PACKAGES
from .coordinator import RefreshCoordinator, RefreshReport
from .datastore import Datastore
from .exceptions import ConfigError, PackageNotFound, StorageError
from .ship24.client import Ship24Client

_LOGGER = logging.getLogger(__name__)


def build_registry(settings: Settings, session: aiohttp.ClientSession) -> ProviderRegistry:
    """Create the provider registry used by update."""
    return ProviderRegistry(Ship24Client(settings.api_key, session))


def setup_logging(level: str, verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


async def _run_update(settings: Settings, datastore: Datastore, include_all: bool) -> RefreshReport:
    async with aiohttp.ClientSession() as session:
        coordinator = RefreshCoordinator(
            build_registry(settings, session),
            datastore,
            max_workers=settings.workers,
            fetch_timeout=settings.fetch_timeout,
            stale_after=settings.stale_after,
        )
        return await coordinator.update(include_all=include_all)


def cmd_track(args, settings: Settings, datastore: Datastore) -> int:
    try:
        carrier = parse_carrier(args.carrier)
        added = ParcelTrackingAPI(datastore).track(args.tracking_number, args.title, carrier)
    except ValueError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    if added:
        print(f"Now tracking {args.tracking_number}")
    else:
        print(f"{args.tracking_number} is already tracked")
    return 0


def cmd_untrack(args, settings: Settings, datastore: Datastore) -> int:
    package = ParcelTrackingAPI(datastore).untrack(args.tracking_number)
    print(f"Stopped tracking {package.tracking_number} ({package.title})")
    return 0


def cmd_edit(args, settings: Settings, datastore: Datastore) -> int:
    package = ParcelTrackingAPI(datastore).edit(args.tracking_number, args.title)
    print(f"{package.tracking_number} is now titled {package.title!r}")
    return 0


def cmd_list(args, settings: Settings, datastore: Datastore) -> int:
    packages = ParcelTrackingAPI(datastore).get_all_packages()
    print(format_rows(list_view(packages, include_all=args.all)))
    return 0


def cmd_update(args, settings: Settings, datastore: Datastore) -> int:
    report = asyncio.run(_run_update(settings, datastore, args.all))
    print(report.summary())
    return 0


def cmd_genfeed(args, settings: Settings, datastore: Datastore) -> int:
    document = feed_view(datastore.load()).to_xml()
    if not args.outfile:
        sys.stdout.write(document)
        return 0
    try:
        Path(args.outfile).expanduser().write_text(document, encoding="utf-8")
    except OSError as err:
        print(f"Error: could not write feed to {args.outfile}: {err}", file=sys.stderr)
        return 1
    return 0


def cmd_dump(args, settings: Settings, datastore: Datastore) -> int:
    document = {KEY_PACKAGES: [package.to_dict() for package in datastore.load()]}
    print(json.dumps(document, indent=2, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    # Shared options, accepted before or after the subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--datastore", default=argparse.SUPPRESS, help="Path of the package datastore (JSON)"
    )
    common.add_argument(
        "-v", "--verbose", action="store_true", default=argparse.SUPPRESS, help="Debug logging"
    )

    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Track parcels across carriers",
        parents=[common],
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    track_parser = subparsers.add_parser(
        "track", aliases=["add"], parents=[common], help="Start tracking a package"
    )
    track_parser.add_argument("tracking_number")
    track_parser.add_argument("--title", help="Display name, defaults to the tracking number")
    track_parser.add_argument(
        "--carrier", default="unknown", help="ups, usps, fedex or dhl (detected if omitted)"
    )
    track_parser.set_defaults(func=cmd_track)

    untrack_parser = subparsers.add_parser(
        "untrack", aliases=["remove", "delete"], parents=[common], help="Stop tracking a package"
    )
    untrack_parser.add_argument("tracking_number")
    untrack_parser.set_defaults(func=cmd_untrack)

    edit_parser = subparsers.add_parser("edit", parents=[common], help="Change a package title")
    edit_parser.add_argument("tracking_number")
    edit_parser.add_argument("--title", required=True, help="New title, empty to reset")
    edit_parser.set_defaults(func=cmd_edit)

    list_parser = subparsers.add_parser("list", parents=[common], help="List packages")
    list_parser.add_argument("--all", action="store_true", help="Include old delivered/halted packages")
    list_parser.set_defaults(func=cmd_list)

    update_parser = subparsers.add_parser("update", parents=[common], help="Refresh package status")
    update_parser.add_argument("--all", action="store_true", help="Refresh delivered/halted packages too")
    update_parser.set_defaults(func=cmd_update)

    feed_parser = subparsers.add_parser("genfeed", parents=[common], help="Write an Atom feed")
    feed_parser.add_argument("--outfile", help="Output path, standard output if omitted")
    feed_parser.set_defaults(func=cmd_genfeed)

    dump_parser = subparsers.add_parser("dump", parents=[common], help="Print the raw datastore (debug)")
    dump_parser.set_defaults(func=cmd_dump)

    subparsers.add_parser("help", help="Show this help")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in (None, "help"):
        parser.print_help()
        return 0

    try:
        settings = load_settings(getattr(args, "datastore", None))
    except ConfigError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    setup_logging(settings.log_level, getattr(args, "verbose", False))

    datastore = Datastore(settings.datastore_path)
    try:
        return args.func(args, settings, datastore)
    except PackageNotFound as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    except StorageError as err:
        _LOGGER.debug("Datastore failure", exc_info=True)
        print(f"Error: {err}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
