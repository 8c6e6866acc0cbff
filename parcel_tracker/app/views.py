"""Read-only views over the package collection: a table and an Atom feed."""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from ..carriers import detect_carrier, tracking_url
from ..const import FEED_ID, FEED_TITLE, LIST_HIDE_AFTER, META_ESTIMATED_DELIVERY
from .models import Carrier, Package

ATOM_NS = "http://www.w3.org/2005/Atom"


@dataclass
class DisplayRow:
    """One line of the package list."""

    tracking_number: str
    title: str
    carrier: str
    status: str
    last_update: Optional[datetime] = None
    location: Optional[str] = None
    description: str = ""
    estimated_delivery: Optional[str] = None


@dataclass
class FeedEntry:
    """One Atom entry, summarizing a package."""

    entry_id: str
    title: str
    updated: datetime
    summary: str
    link: Optional[str] = None


@dataclass
class FeedDocument:
    """An Atom feed of tracked packages, newest activity first."""

    title: str
    feed_id: str
    updated: datetime
    entries: List[FeedEntry] = field(default_factory=list)

    def to_element(self) -> ET.Element:
        feed = ET.Element("feed", xmlns=ATOM_NS)
        ET.SubElement(feed, "title").text = self.title
        ET.SubElement(feed, "id").text = self.feed_id
        ET.SubElement(feed, "updated").text = self.updated.isoformat()
        author = ET.SubElement(feed, "author")
        ET.SubElement(author, "name").text = "parcel-tracker"

        for entry in self.entries:
            node = ET.SubElement(feed, "entry")
            ET.SubElement(node, "title").text = entry.title
            ET.SubElement(node, "id").text = entry.entry_id
            ET.SubElement(node, "updated").text = entry.updated.isoformat()
            if entry.link:
                ET.SubElement(node, "link", href=entry.link)
            ET.SubElement(node, "summary").text = entry.summary
        return feed

    def to_xml(self) -> str:
        """Serialize as an Atom 1.0 document."""
        element = self.to_element()
        ET.indent(element)
        body = ET.tostring(element, encoding="unicode")
        return f'<?xml version="1.0" encoding="utf-8"?>\n{body}\n'


def _is_hidden(package: Package, now: datetime) -> bool:
    if not package.is_terminal:
        return False
    latest = package.latest_event
    return latest is None or now - latest.timestamp > LIST_HIDE_AFTER


def list_view(
    packages: List[Package], include_all: bool = False, now: Optional[datetime] = None
) -> List[DisplayRow]:
    """Rows for the package list.

    Terminal packages with no activity in the last week are left out
    unless include_all is set.
    """
    now = now or datetime.now(timezone.utc)
    rows = []
    for package in packages:
        if not include_all and _is_hidden(package, now):
            continue
        latest = package.latest_event
        rows.append(
            DisplayRow(
                tracking_number=package.tracking_number,
                title=package.title,
                carrier=package.carrier.value,
                status=package.status.value,
                last_update=latest.timestamp if latest else None,
                location=latest.location if latest else None,
                description=latest.description if latest else "",
                estimated_delivery=package.meta.get(META_ESTIMATED_DELIVERY),
            )
        )
    return rows


def format_rows(rows: List[DisplayRow]) -> str:
    """Render rows as an aligned text table."""
    if not rows:
        return "No packages to show."

    header = ("TRACKING NUMBER", "TITLE", "CARRIER", "STATUS", "LAST UPDATE", "LATEST EVENT")
    table = [header]
    for row in rows:
        when = row.last_update.strftime("%Y-%m-%d %H:%M") if row.last_update else "-"
        event = row.description or "-"
        if row.location:
            event = f"{event} ({row.location})"
        table.append((row.tracking_number, row.title, row.carrier, row.status, when, event))

    widths = [max(len(line[i]) for line in table) for i in range(len(header) - 1)]
    lines = []
    for line in table:
        cells = [cell.ljust(width) for cell, width in zip(line, widths)]
        cells.append(line[-1])
        lines.append("  ".join(cells).rstrip())
    return "\n".join(lines)


def _entry_for(package: Package, now: datetime) -> FeedEntry:
    latest = package.latest_event
    if latest is None:
        summary = f"{package.status.value}: no tracking information yet"
        updated = now
    else:
        summary = f"{package.status.value}: {latest.description or latest.raw_status or 'update'}"
        if latest.location:
            summary += f" at {latest.location}"
        updated = latest.timestamp

    estimated = package.meta.get(META_ESTIMATED_DELIVERY)
    if estimated and not package.is_terminal:
        summary += f" (expected {estimated})"

    carrier = package.carrier
    if carrier == Carrier.UNKNOWN:
        carrier = detect_carrier(package.tracking_number)

    return FeedEntry(
        entry_id=f"urn:parcel-tracker:package:{package.tracking_number}",
        title=f"{package.title} [{package.status.value}]",
        updated=updated,
        summary=summary,
        link=tracking_url(carrier, package.tracking_number),
    )


def feed_view(packages: List[Package], now: Optional[datetime] = None) -> FeedDocument:
    """Build the Atom feed: one entry per package, newest event first.

    Packages with no events yet come last, ordered by title.
    """
    now = now or datetime.now(timezone.utc)
    with_events = [p for p in packages if p.latest_event is not None]
    without_events = [p for p in packages if p.latest_event is None]

    with_events.sort(key=lambda p: p.latest_event.timestamp, reverse=True)
    without_events.sort(key=lambda p: p.title)

    entries = [_entry_for(package, now) for package in with_events + without_events]
    updated = with_events[0].latest_event.timestamp if with_events else now
    return FeedDocument(title=FEED_TITLE, feed_id=FEED_ID, updated=updated, entries=entries)
