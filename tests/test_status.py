"""
Tests for the package status state machine.

Tests:
- Classification table
- Transitions and terminal states
- Duplicate suppression and ordering
- Staleness policy
"""

from datetime import timedelta

import pytest

from parcel_tracker.app.models import Package, PackageStatus
from parcel_tracker.app.status import apply_events, classify, merge_events, next_status


class TestClassify:
    """Tests for classify"""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("delivered", PackageStatus.DELIVERED),
            ("DELIVERED", PackageStatus.DELIVERED),
            ("out_for_delivery", PackageStatus.IN_TRANSIT),
            ("OUT_FOR_DELIVERY", PackageStatus.IN_TRANSIT),
            ("in transit", PackageStatus.IN_TRANSIT),
            ("in-transit", PackageStatus.IN_TRANSIT),
            ("exception", PackageStatus.HALTED),
            ("return_to_sender", PackageStatus.HALTED),
            ("info_received", PackageStatus.NEW),
        ],
    )
    def test_known_codes(self, raw, expected):
        assert classify(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "teleported", "code_42"])
    def test_unknown_codes(self, raw):
        assert classify(raw) is None


class TestNextStatus:
    """Tests for next_status"""

    def test_new_to_in_transit(self, make_event):
        event = make_event(raw_status="in_transit")
        assert next_status(PackageStatus.NEW, event) == PackageStatus.IN_TRANSIT

    def test_in_transit_to_halted(self, make_event):
        event = make_event(raw_status="exception")
        assert next_status(PackageStatus.IN_TRANSIT, event) == PackageStatus.HALTED

    def test_terminal_is_sticky(self, make_event):
        event = make_event(raw_status="in_transit")
        assert next_status(PackageStatus.DELIVERED, event) == PackageStatus.DELIVERED
        assert next_status(PackageStatus.HALTED, event) == PackageStatus.HALTED

    def test_never_moves_backwards(self, make_event):
        event = make_event(raw_status="info_received")
        assert next_status(PackageStatus.IN_TRANSIT, event) == PackageStatus.IN_TRANSIT

    def test_unknown_code_keeps_status(self, make_event):
        event = make_event(raw_status="mystery")
        assert next_status(PackageStatus.NEW, event) == PackageStatus.NEW


class TestMergeEvents:
    """Tests for merge_events"""

    def test_skips_exact_duplicates(self, make_event):
        stored = [make_event(5, "Picked up"), make_event(3, "Departed")]
        batch = [make_event(5, "Picked up"), make_event(3, "Departed"), make_event(1, "Arrived")]

        added = merge_events(stored, batch)

        assert [e.description for e in added] == ["Arrived"]
        assert len(stored) == 3

    def test_same_time_different_description_is_kept(self, make_event):
        stored = [make_event(2, "Arrived at hub")]
        added = merge_events(stored, [make_event(2, "Departed hub")])
        assert len(added) == 1
        assert len(stored) == 2

    def test_duplicates_within_batch(self, make_event):
        stored = []
        merge_events(stored, [make_event(1, "Arrived"), make_event(1, "Arrived")])
        assert len(stored) == 1

    def test_keeps_ascending_order(self, make_event):
        stored = [make_event(1, "Latest")]
        merge_events(stored, [make_event(10, "Oldest"), make_event(5, "Middle")])
        assert [e.description for e in stored] == ["Oldest", "Middle", "Latest"]


class TestApplyEvents:
    """Tests for apply_events"""

    def test_status_from_latest_event(self, make_event):
        package = Package("1Z999AA10123456784")
        batch = [make_event(1, "Out for delivery", "out_for_delivery"), make_event(5, "Picked up", "info_received")]

        changed = apply_events(package, batch)

        assert changed is True
        assert package.status == PackageStatus.IN_TRANSIT
        assert package.latest_event.description == "Out for delivery"

    def test_delivered_is_terminal(self, make_event):
        package = Package("1Z999AA10123456784")
        apply_events(package, [make_event(1, "Delivered", "delivered")])
        assert package.status == PackageStatus.DELIVERED

        changed = apply_events(package, [make_event(0, "Back in transit?", "in_transit")])

        assert changed is False
        assert package.status == PackageStatus.DELIVERED
        assert len(package.events) == 1

    def test_unknown_status_still_appends(self, make_event):
        package = Package("X", status=PackageStatus.IN_TRANSIT)
        changed = apply_events(package, [make_event(1, "Something odd", "teleported")])

        assert changed is True
        assert package.status == PackageStatus.IN_TRANSIT
        assert len(package.events) == 1

    def test_empty_batch_is_no_change(self):
        package = Package("X")
        assert apply_events(package, []) is False
        assert package.status == PackageStatus.NEW

    def test_repeated_batch_is_no_change(self, make_event):
        package = Package("X")
        batch = [make_event(2, "Picked up", "in_transit")]
        apply_events(package, batch)
        assert apply_events(package, list(batch)) is False
        assert len(package.events) == 1

    def test_force_merges_into_terminal_package(self, make_event):
        package = Package("X", status=PackageStatus.DELIVERED)
        changed = apply_events(package, [make_event(1, "Signed by J", "delivered")], force=True)
        assert changed is True
        assert package.status == PackageStatus.DELIVERED

    def test_stale_package_is_halted(self, make_event, now):
        package = Package("X", status=PackageStatus.IN_TRANSIT)
        apply_events(
            package,
            [make_event(24 * 40, "Departed", "in_transit")],
            now=now,
            stale_after=timedelta(days=30),
        )
        assert package.status == PackageStatus.HALTED

    def test_recent_package_is_not_stale(self, make_event, now):
        package = Package("X", status=PackageStatus.IN_TRANSIT)
        apply_events(package, [make_event(2, "Departed", "in_transit")], now=now, stale_after=timedelta(days=30))
        assert package.status == PackageStatus.IN_TRANSIT

    def test_new_package_without_events_is_not_stale(self, now):
        package = Package("X")
        apply_events(package, [], now=now, stale_after=timedelta(days=1))
        assert package.status == PackageStatus.NEW
