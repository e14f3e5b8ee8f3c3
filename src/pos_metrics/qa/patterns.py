"""Ticket-number format classification.

Ticket numbers printed by the POS follow a handful of known layouts. Each
distinct ticket number is matched against them in order; the first match
wins and anything else lands in the ``other`` (anomalous) bucket, which is
logged for operator review. Anomalies are data-quality signals, never errors.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable

logger = logging.getLogger(__name__)

ANOMALOUS = "other"

# Ordered: first match wins
TICKET_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("standard", re.compile(r"^AB-[A-Z]{2,4}-T\d{5,7}$")),  # AB-TOR-T001234
    ("with_digit", re.compile(r"^AB-[A-Z]{1,3}\d-T\d{5,7}$")),  # AB-TO1-T001234
    ("with_1T", re.compile(r"^AB-[A-Z]{2}-1T\d{5,7}$")),  # AB-TO-1T001234
    ("alternate", re.compile(r"^AB[A-Z]{2,4}\d{4,6}-\d{2}$")),  # ABTOR1234-01
    ("without_AB", re.compile(r"^[A-Z]{2,4}-T\d{5,7}$")),  # TOR-T001234
]

PATTERN_NAMES = [name for name, _ in TICKET_PATTERNS] + [ANOMALOUS]


@dataclass
class PatternHistogram:
    """Counts of distinct ticket numbers per format.

    Attributes:
        counts: Pattern name -> count. Every pattern name is present.
        anomalous: Ticket numbers that matched no known format, sorted.
    """

    counts: dict[str, int] = field(default_factory=lambda: dict.fromkeys(PATTERN_NAMES, 0))
    anomalous: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.counts.values())


def classify_ticket_number(ticket_number: str) -> str:
    """Return the name of the first format ticket_number matches, or "other".

    Examples:
        >>> classify_ticket_number("AB-TOR-T001234")
        'standard'
        >>> classify_ticket_number("ABTOR1234-01")
        'alternate'
        >>> classify_ticket_number("garbage")
        'other'

    """
    for name, pattern in TICKET_PATTERNS:
        if pattern.match(ticket_number):
            return name
    return ANOMALOUS


def pattern_histogram(ticket_numbers: Iterable[str]) -> PatternHistogram:
    """Classify each distinct ticket number.

    Args:
        ticket_numbers: Ticket numbers, duplicates allowed.

    Returns:
        PatternHistogram whose counts sum to the number of distinct inputs.

    """
    histogram = PatternHistogram()
    for ticket_number in sorted(set(ticket_numbers)):
        name = classify_ticket_number(ticket_number)
        histogram.counts[name] += 1
        if name == ANOMALOUS:
            histogram.anomalous.append(ticket_number)
            logger.warning("Unusual ticket pattern: %s", ticket_number)
    return histogram
