"""Tests for ticket-number format classification."""

import logging

import pytest

from pos_metrics.qa import classify_ticket_number, pattern_histogram
from pos_metrics.qa.patterns import ANOMALOUS, PATTERN_NAMES


@pytest.mark.parametrize(
    "ticket_number, expected",
    [
        ("AB-TOR-T001234", "standard"),
        ("AB-TO-T0012345", "standard"),
        ("AB-TO1-T001234", "with_digit"),
        ("AB-TO-1T001234", "with_1T"),
        ("ABTOR1234-01", "alternate"),
        ("TOR-T001234", "without_AB"),
        ("AB-TOR-T12", "other"),
        ("ab-tor-t001234", "other"),
        ("", "other"),
    ],
)
def test_classify_ticket_number(ticket_number: str, expected: str) -> None:
    assert classify_ticket_number(ticket_number) == expected


def test_histogram_counts_distinct_numbers() -> None:
    numbers = [
        "AB-TOR-T000001",
        "AB-TOR-T000001",
        "AB-TOR-T000002",
        "TOR-T000003",
        "ABTOR1234-01",
        "weird-1",
    ]

    histogram = pattern_histogram(numbers)

    assert histogram.total == len(set(numbers))
    assert histogram.counts["standard"] == 2
    assert histogram.counts["without_AB"] == 1
    assert histogram.counts["alternate"] == 1
    assert histogram.counts[ANOMALOUS] == 1
    assert histogram.anomalous == ["weird-1"]


def test_histogram_has_every_bucket() -> None:
    histogram = pattern_histogram([])
    assert list(histogram.counts) == PATTERN_NAMES
    assert histogram.total == 0


def test_anomalies_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="pos_metrics.qa.patterns"):
        pattern_histogram(["AB-TOR-T000001", "???"])

    assert "Unusual ticket pattern: ???" in caplog.text
