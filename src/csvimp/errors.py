"""Exceptions raised by csvimp."""


class CsvImpError(Exception):
    """Base class for csvimp errors."""


class MapConfigurationError(CsvImpError, ValueError):
    """The map, its fields or the dataset cannot be used for an import."""


class StatementError(CsvImpError):
    """A statement failed in the database driver.

    The message is the driver's own error text, which ends up verbatim in the
    run report.
    """


class RowIgnored(CsvImpError):
    """The record has nothing to write; it is counted as ignored."""


class MissingKeyError(CsvImpError):
    """No key column has a value for the record, so it cannot be matched."""

    def __init__(self, message: str = "No Key defined in map."):
        super().__init__(message)
