"""Domain-specific exceptions for POS Metrics.

This module defines custom exceptions that are part of the public API.
All exceptions inherit from PosMetricsError for easy catching.
"""


class PosMetricsError(Exception):
    """Base exception for all POS Metrics errors.

    Users can catch this exception to handle any error raised by the
    reconciliation and metrics engine.
    """

    pass


class ConfigError(PosMetricsError):
    """Raised when there is a configuration error.

    This exception is raised when:
    - Invalid configuration values are provided
    - Unknown configuration keys are supplied
    """

    pass


class DataQualityError(PosMetricsError):
    """Raised when an input record set cannot be interpreted at all.

    This exception is raised when:
    - Required columns are missing from input data

    Data-quality *findings* (anomalous ticket formats, zero-total tickets,
    unparseable sequence numbers) are never raised; they are reported as
    fields of the output reports.
    """

    pass


class ComputationInputError(PosMetricsError, ValueError):
    """Raised when computation parameters are invalid.

    This exception is raised before any computation starts when:
    - A window ends on or before its start
    - A window length is not positive
    - A sequence range has its lower bound above its upper bound
    - An unknown stream name is requested
    """

    pass


class BatchOperationError(PosMetricsError):
    """Raised when one target of a chunked batch operation fails.

    Batch runners capture this per target and report it in the aggregate
    result instead of aborting sibling targets.
    """

    def __init__(self, table: str, message: str) -> None:
        super().__init__(f"{table}: {message}")
        self.table = table
