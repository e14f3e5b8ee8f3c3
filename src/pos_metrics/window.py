"""Half-open date windows used by aggregation, comparison and caching."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

import pandas as pd

from pos_metrics.exceptions import ComputationInputError


def parse_day(value: str | date | datetime) -> date:
    """Parse a YYYY-MM-DD string (or date/datetime) into a date.

    Raises:
        ComputationInputError: If the value is not a valid date.

    Examples:
        >>> parse_day("2025-01-15")
        datetime.date(2025, 1, 15)

    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError) as e:
        raise ComputationInputError(f"Invalid date '{value}': expected YYYY-MM-DD") from e


@dataclass(frozen=True)
class Window:
    """Half-open date window [start, end).

    Attributes:
        start: First day included.
        end: First day excluded.
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ComputationInputError(
                f"Invalid window: end ({self.end}) must be after start ({self.start})"
            )

    @classmethod
    def from_strings(cls, start: str | date, end: str | date) -> Window:
        """Build a window from YYYY-MM-DD strings (end exclusive)."""
        return cls(parse_day(start), parse_day(end))

    @classmethod
    def trailing(cls, days: int, as_of: date | None = None) -> Window:
        """Window of ``days`` calendar days ending with (and including) ``as_of``.

        Examples:
            >>> Window.trailing(7, date(2025, 1, 31))
            Window(start=datetime.date(2025, 1, 25), end=datetime.date(2025, 2, 1))

        """
        if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
            raise ComputationInputError(f"Window length must be a positive number of days, got {days!r}")
        as_of = as_of or date.today()
        end = as_of + timedelta(days=1)
        return cls(end - timedelta(days=days), end)

    @property
    def length_days(self) -> int:
        return (self.end - self.start).days

    def previous(self) -> Window:
        """The preceding window of equal length: [start - L, start)."""
        return Window(self.start - timedelta(days=self.length_days), self.start)

    def mask(self, sale_dates: pd.Series) -> pd.Series:
        """Boolean mask of sale_dates falling inside the window (NaT excluded)."""
        start = pd.Timestamp(self.start)
        end = pd.Timestamp(self.end)
        return (sale_dates >= start) & (sale_dates < end)

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> Window:
        return cls.from_strings(data["start"], data["end"])
