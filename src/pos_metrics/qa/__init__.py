"""QA module for ticket data quality.

This module provides ticket-number format checks, sequence gap detection and
the ticket validation report.

Example:
    >>> from pos_metrics.config import EngineConfig
    >>> from pos_metrics.qa import run_ticket_validation, run_sequence_check
    >>>
    >>> report = run_ticket_validation(store, "u1", EngineConfig())
    >>> print(report.pattern_histogram)
    >>> gaps = run_sequence_check(store, "u1", "TOR", 1, 500, EngineConfig())
    >>> print(gaps.missing_numbers)

"""

from pos_metrics.qa.api import (
    ValidationReport,
    run_sequence_check,
    run_ticket_validation,
    validate_ticket_totals,
)
from pos_metrics.qa.patterns import PatternHistogram, classify_ticket_number, pattern_histogram
from pos_metrics.qa.sequence import (
    MissingSequenceReport,
    find_missing_ticket_numbers,
    parse_sequence_number,
)

__all__ = [
    "MissingSequenceReport",
    "PatternHistogram",
    "ValidationReport",
    "classify_ticket_number",
    "find_missing_ticket_numbers",
    "parse_sequence_number",
    "pattern_histogram",
    "run_sequence_check",
    "run_ticket_validation",
    "validate_ticket_totals",
]
