"""Exception taxonomy for phylodynamic analysis."""


class PhylodynamicsError(Exception):
    """Base class for all errors raised by phylodyn."""


class InsufficientDataError(PhylodynamicsError):
    """Raised when the mandatory distance/tree step has too few sequences."""

    def __init__(self, message: str, n_sequences: int | None = None) -> None:
        super().__init__(message)
        self.n_sequences = n_sequences


class InvalidSequenceError(PhylodynamicsError, ValueError):
    """Raised for malformed input records (empty id, bad date, duplicate id)."""
