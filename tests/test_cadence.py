# -*- coding: utf-8 -*-
"""Cadence window arithmetic tests."""

from datetime import datetime, timedelta, timezone

import pytest

from driftwatch.monitoring.cadence import (
    completed_windows,
    floor_to_boundary,
    latest_completed_window,
    next_boundary,
    to_naive_utc,
)
from driftwatch.monitoring.types import AlertCadence


class TestBoundaries:

    @pytest.mark.parametrize("cadence, expected", [
        (AlertCadence.HOURLY, datetime(2026, 1, 8, 13, 0)),
        (AlertCadence.DAILY, datetime(2026, 1, 8)),
        (AlertCadence.WEEKLY, datetime(2026, 1, 5)),
        (AlertCadence.MONTHLY, datetime(2026, 1, 1)),
    ])
    def test_floor(self, cadence, expected):
        """2026-01-08 is a Thursday; weeks start on Monday."""
        assert floor_to_boundary(datetime(2026, 1, 8, 13, 42, 7), cadence) == expected

    def test_monthly_rolls_over_year(self):
        assert next_boundary(datetime(2025, 12, 1), AlertCadence.MONTHLY) == datetime(2026, 1, 1)

    def test_monthly_variable_length(self):
        assert next_boundary(datetime(2026, 2, 1), AlertCadence.MONTHLY) == datetime(2026, 3, 1)

    def test_aware_timestamps_converted_to_utc(self):
        ts = datetime(2026, 1, 8, 9, 30, tzinfo=timezone(timedelta(hours=9)))
        assert to_naive_utc(ts) == datetime(2026, 1, 8, 0, 30)


class TestLatestCompletedWindow:

    def test_window_not_closed_yet(self):
        assert latest_completed_window(
            datetime(2026, 1, 5, 10), datetime(2026, 1, 5, 10, 5), AlertCadence.HOURLY,
        ) is None

    def test_single_closed_window(self):
        window = latest_completed_window(
            datetime(2026, 1, 5, 10), datetime(2026, 1, 5, 11, 10), AlertCadence.HOURLY,
        )
        assert window == (datetime(2026, 1, 5, 10), datetime(2026, 1, 5, 11))

    def test_boundary_instant_closes_window(self):
        window = latest_completed_window(
            datetime(2026, 1, 5, 10), datetime(2026, 1, 5, 11), AlertCadence.HOURLY,
        )
        assert window == (datetime(2026, 1, 5, 10), datetime(2026, 1, 5, 11))

    def test_missed_windows_not_replayed(self):
        """Only the newest window is returned after downtime."""
        window = latest_completed_window(
            datetime(2026, 1, 5, 10), datetime(2026, 1, 5, 14, 30), AlertCadence.HOURLY,
        )
        assert window == (datetime(2026, 1, 5, 13), datetime(2026, 1, 5, 14))

    def test_monthly_window(self):
        window = latest_completed_window(
            datetime(2025, 11, 1), datetime(2026, 1, 3), AlertCadence.MONTHLY,
        )
        assert window == (datetime(2025, 12, 1), datetime(2026, 1, 1))

    def test_completed_windows_count(self):
        assert completed_windows(
            datetime(2026, 1, 5, 10), datetime(2026, 1, 5, 14, 30), AlertCadence.HOURLY,
        ) == 4
        assert completed_windows(
            datetime(2026, 1, 5), datetime(2026, 1, 11, 23), AlertCadence.WEEKLY,
        ) == 0
