"""Tests for half-open date windows."""

from datetime import date, datetime

import pandas as pd
import pytest

from pos_metrics.exceptions import ComputationInputError
from pos_metrics.window import Window, parse_day


class TestParseDay:
    def test_valid_string(self) -> None:
        assert parse_day("2025-01-15") == date(2025, 1, 15)

    def test_datetime_and_date(self) -> None:
        assert parse_day(datetime(2025, 1, 15, 12, 0)) == date(2025, 1, 15)
        assert parse_day(date(2025, 1, 15)) == date(2025, 1, 15)

    def test_invalid(self) -> None:
        with pytest.raises(ComputationInputError, match="Invalid date"):
            parse_day("15/01/2025")


class TestWindow:
    def test_end_must_be_after_start(self) -> None:
        with pytest.raises(ComputationInputError, match="Invalid window"):
            Window(date(2025, 1, 15), date(2025, 1, 15))
        with pytest.raises(ComputationInputError):
            Window.from_strings("2025-01-20", "2025-01-10")

    def test_trailing_includes_as_of(self) -> None:
        w = Window.trailing(7, date(2025, 1, 31))
        assert w == Window(date(2025, 1, 25), date(2025, 2, 1))
        assert w.length_days == 7

    @pytest.mark.parametrize("days", [0, -5, True, 7.0])
    def test_trailing_rejects_non_positive_length(self, days: int) -> None:
        with pytest.raises(ComputationInputError, match="positive"):
            Window.trailing(days, date(2025, 1, 31))

    def test_previous_has_equal_length(self) -> None:
        w = Window.from_strings("2025-01-25", "2025-02-01")
        prev = w.previous()
        assert prev == Window(date(2025, 1, 18), date(2025, 1, 25))
        assert prev.length_days == w.length_days

    def test_mask_is_half_open(self) -> None:
        w = Window.from_strings("2025-01-10", "2025-01-12")
        dates = pd.Series(pd.to_datetime([
            "2025-01-09 23:59",
            "2025-01-10 00:00",
            "2025-01-11 23:59",
            "2025-01-12 00:00",
            None,
        ]))
        assert w.mask(dates).tolist() == [False, True, True, False, False]

    def test_dict_round_trip(self) -> None:
        w = Window.from_strings("2025-01-10", "2025-01-12")
        assert w.to_dict() == {"start": "2025-01-10", "end": "2025-01-12"}
        assert Window.from_dict(w.to_dict()) == w
