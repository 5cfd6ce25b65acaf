# tests/test_status.py
"""Unit tests for area / event status derivation."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime, timedelta
from crowdwatch.models.enums import AreaStatus, EventStatus
from crowdwatch.services.status import AreaSnapshot, area_status, event_status, occupancy_pct


class TestAreaStatus:
    @pytest.mark.parametrize("count, expected", [
        (0, AreaStatus.GREEN),
        (79, AreaStatus.GREEN),
        (80, AreaStatus.YELLOW),
        (99, AreaStatus.YELLOW),
        (100, AreaStatus.RED),
        (140, AreaStatus.RED),
    ])
    def test_traffic_light(self, count, expected):
        assert area_status(count, threshold=80, capacity=100) == expected

    def test_threshold_equal_to_capacity_goes_straight_to_red(self):
        assert area_status(1, threshold=2, capacity=2) == AreaStatus.GREEN
        assert area_status(2, threshold=2, capacity=2) == AreaStatus.RED

    def test_occupancy_can_exceed_100(self):
        assert occupancy_pct(3, 2) == 150.0
        assert occupancy_pct(0, 0) == 0.0

    def test_snapshot_derives_status(self):
        snap = AreaSnapshot(id=1, name="Hall", owner_email="a@b.c", event_id=None,
                            capacity=5, threshold=3, current_count=3)
        assert snap.status == AreaStatus.YELLOW
        assert snap.occupancy_pct == 60.0


class TestEventStatus:
    start = datetime(2026, 5, 1, 10, 0)
    end = datetime(2026, 5, 1, 18, 0)

    def test_upcoming_before_start(self):
        assert event_status(self.start - timedelta(seconds=1), self.start, self.end) == EventStatus.UPCOMING

    def test_live_inclusive_bounds(self):
        assert event_status(self.start, self.start, self.end) == EventStatus.LIVE
        assert event_status(self.end, self.start, self.end) == EventStatus.LIVE

    def test_completed_after_end(self):
        assert event_status(self.end + timedelta(seconds=1), self.start, self.end) == EventStatus.COMPLETED

    def test_no_end_uses_default_duration(self):
        assert event_status(self.start + timedelta(hours=23), self.start) == EventStatus.LIVE
        assert event_status(self.start + timedelta(hours=25), self.start) == EventStatus.COMPLETED

    def test_custom_default_duration(self):
        now = self.start + timedelta(hours=3)
        assert event_status(now, self.start, None, default_duration=timedelta(hours=2)) == EventStatus.COMPLETED
